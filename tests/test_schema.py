"""Tests for checkpoint schema definitions."""
from datetime import datetime, timezone

import pytest
from marshmallow import ValidationError

from ossmultipart import schema
from ossmultipart.models import Part, TransferKind


def checkpoint_payload(**kwargs: object) -> dict:
    payload = {
        "transaction_id": "abc123",
        "kind": "download",
        "bucket": "my-bucket",
        "object": "dir/object.bin",
        "file": "/tmp/object.bin",
        "creation_time": "2026-10-18T15:50:00+00:00",
        "options": {"part_size": 1024},
        "parts": [
            {
                "number": 2,
                "etag": "abcd",
                "size": 1024,
                "last_modified": "2026-10-18T15:51:00+00:00",
            }
        ],
    }
    payload.update(kwargs)
    return payload


def test_checkpoint_schema_loads_parts_and_times() -> None:
    parsed = schema.checkpoint_schema.load(checkpoint_payload())
    assert parsed["kind"] is TransferKind.download
    assert parsed["creation_time"] == datetime(
        2026, 10, 18, 15, 50, tzinfo=timezone.utc
    )
    assert parsed["parts"] == [
        Part(
            number=2,
            etag="abcd",
            size=1024,
            last_modified=datetime(2026, 10, 18, 15, 51, tzinfo=timezone.utc),
        )
    ]


def test_checkpoint_schema_defaults() -> None:
    payload = checkpoint_payload()
    del payload["parts"]
    parsed = schema.checkpoint_schema.load(payload)
    assert parsed["parts"] == []
    assert parsed["version"] == 0
    assert parsed["source"] == {}


def test_checkpoint_schema_ignores_unknown_keys() -> None:
    parsed = schema.checkpoint_schema.load(checkpoint_payload(future_key=1))
    assert "future_key" not in parsed


@pytest.mark.parametrize(
    "payload",
    [
        {},
        checkpoint_payload(kind="sideload"),
        checkpoint_payload(options={}),
        checkpoint_payload(options={"part_size": 0}),
        checkpoint_payload(creation_time="yesterday"),
        checkpoint_payload(parts=[{"number": 0, "etag": "x", "size": 1}]),
        checkpoint_payload(parts=[{"number": 1, "size": 1}]),
        checkpoint_payload(parts=[{"number": 1, "etag": "x", "size": -1}]),
    ],
)
def test_checkpoint_schema_invalid(payload: dict) -> None:
    with pytest.raises(ValidationError):
        schema.checkpoint_schema.load(payload)


def test_part_schema_dumps_part() -> None:
    part = Part(
        number=3,
        etag="ff",
        size=9,
        last_modified=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    )
    assert schema.PartSchema().dump(part) == {
        "number": 3,
        "etag": "ff",
        "size": 9,
        "last_modified": "2026-01-02T03:04:05+00:00",
    }
