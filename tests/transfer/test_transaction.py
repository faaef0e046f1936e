"""Tests for transaction lifecycle and checkpoint mediation."""
from pathlib import Path

import pytest

from ossmultipart.checkpoint import load_checkpoint, write_checkpoint
from ossmultipart.exc import (
    CheckpointBrokenError,
    CheckpointInvalidError,
    ClientError,
    TransactionStateError,
)
from ossmultipart.models import Part, TransactionState
from ossmultipart.transfer.upload import Upload
from ossmultipart.transport.exc import (
    FatalTransferError,
    TransientTransferError,
)
from tests.helpers import create_file, transfer_options
from tests.mocks.transport import MockTransport


@pytest.fixture
def source(work_dir: Path) -> str:
    return create_file(work_dir / "source.bin", 10)


@pytest.fixture
def cpt_file(work_dir: Path) -> str:
    return str(work_dir / "source.bin.cpt")


@pytest.fixture
def upload(mock_transport: MockTransport, source: str, cpt_file: str) -> Upload:
    return Upload.start(
        mock_transport, "bucket", "object.bin", source, transfer_options(cpt_file)
    )


def test_start_writes_initial_checkpoint(upload: Upload, cpt_file: str) -> None:
    states = load_checkpoint(cpt_file)
    assert states["transaction_id"] == upload.id
    assert states["kind"] == "upload"
    assert states["bucket"] == "bucket"
    assert states["object"] == "object.bin"
    assert states["options"] == {"part_size": 4}
    assert states["parts"] == []
    assert upload.state is TransactionState.active
    assert upload.creation_time is not None


def test_identity_is_read_only(upload: Upload) -> None:
    with pytest.raises(AttributeError):
        upload.bucket = "other"  # type: ignore[misc]
    with pytest.raises(AttributeError):
        upload.id = "other"  # type: ignore[misc]


def test_record_part_persists_checkpoint(upload: Upload, cpt_file: str) -> None:
    upload.record_part(Part(number=2, etag="bb", size=4))
    upload.record_part(Part(number=1, etag="aa", size=4))

    assert [p.number for p in upload.completed_parts] == [1, 2]
    states = load_checkpoint(cpt_file)
    assert [(p["number"], p["etag"]) for p in states["parts"]] == [
        (1, "aa"),
        (2, "bb"),
    ]
    assert states["version"] == 2


def test_record_part_replaces_same_number(upload: Upload, cpt_file: str) -> None:
    upload.record_part(Part(number=3, etag="first", size=2))
    upload.record_part(Part(number=3, etag="second", size=2))

    assert upload.completed_parts == [Part(number=3, etag="second", size=2)]
    states = load_checkpoint(cpt_file)
    assert [(p["number"], p["etag"]) for p in states["parts"]] == [(3, "second")]


def test_record_part_reports_progress(
    mock_transport: MockTransport, source: str, cpt_file: str
) -> None:
    calls = []
    txn = Upload.start(
        mock_transport,
        "bucket",
        "object.bin",
        source,
        transfer_options(cpt_file, progress_callback=lambda *a: calls.append(a)),
    )
    txn.record_part(Part(number=1, etag="aa", size=4))
    txn.record_part(Part(number=3, etag="cc", size=2))
    assert calls == [(4, 10), (6, 10)]


def test_pending_parts_excludes_recorded(upload: Upload) -> None:
    upload.record_part(Part(number=2, etag="bb", size=4))
    assert [r.number for r in upload.pending_parts()] == [1, 3]


def test_finalize_failure_keeps_checkpoint(
    mock_transport: MockTransport, upload: Upload, cpt_file: str
) -> None:
    mock_transport.complete_error = TransientTransferError("try again")
    with pytest.raises(TransientTransferError):
        upload.run()

    assert Path(cpt_file).is_file()
    assert upload.state is TransactionState.active

    mock_transport.complete_error = None
    upload.finalize()
    assert upload.state is TransactionState.finalized
    assert not Path(cpt_file).exists()


def test_finalize_requires_every_part(
    mock_transport: MockTransport, upload: Upload, cpt_file: str
) -> None:
    upload.record_part(Part(number=2, etag="bb", size=4))
    with pytest.raises(TransactionStateError, match=r"\[1, 3\]"):
        upload.finalize()

    assert mock_transport.completed == []
    assert upload.state is TransactionState.active
    assert Path(cpt_file).is_file()


def test_abort_deletes_checkpoint_and_cancels(
    mock_transport: MockTransport, upload: Upload, cpt_file: str
) -> None:
    upload.abort()
    assert mock_transport.cancelled == [upload.id]
    assert upload.state is TransactionState.aborted
    assert not Path(cpt_file).exists()


def test_abort_deletes_checkpoint_even_if_cancel_fails(
    mock_transport: MockTransport, upload: Upload, cpt_file: str
) -> None:
    mock_transport.cancel_error = FatalTransferError("Access denied")
    with pytest.raises(FatalTransferError, match="Access denied"):
        upload.abort()
    assert upload.state is TransactionState.aborted
    assert not Path(cpt_file).exists()


@pytest.mark.parametrize("end", ["finalize", "abort"])
def test_no_transitions_out_of_final_states(upload: Upload, end: str) -> None:
    if end == "finalize":
        upload.run()
    else:
        upload.abort()

    with pytest.raises(TransactionStateError):
        upload.record_part(Part(number=2, etag="y", size=4))
    with pytest.raises(TransactionStateError):
        upload.finalize()
    with pytest.raises(TransactionStateError):
        upload.abort()
    with pytest.raises(TransactionStateError):
        upload.run()


@pytest.mark.parametrize(
    ("bucket", "object", "file"),
    [("", "obj", "f"), ("b", "", "f"), ("b", "obj", "")],
)
def test_missing_arguments(
    mock_transport: MockTransport, bucket: str, object: str, file: str
) -> None:
    with pytest.raises(ClientError, match="Missing arguments"):
        Upload(mock_transport, bucket, object, file)


@pytest.mark.parametrize("part_size", [0, -5, "big", True, 4.0])
def test_invalid_part_size(
    mock_transport: MockTransport, source: str, part_size: object
) -> None:
    with pytest.raises(ClientError, match="part_size"):
        Upload(mock_transport, "b", "obj", source, {"part_size": part_size})


def test_resume_requires_checkpoint_path(
    mock_transport: MockTransport, source: str
) -> None:
    with pytest.raises(ClientError, match="cpt_file"):
        Upload.resume(mock_transport, "b", "obj", source, transfer_options(None))


def test_resume_restores_state(
    mock_transport: MockTransport, upload: Upload, source: str, cpt_file: str
) -> None:
    upload.record_part(Part(number=1, etag="aa", size=4))

    resumed = Upload.resume(
        mock_transport, "bucket", "object.bin", source, transfer_options(cpt_file)
    )
    assert resumed.id == upload.id
    assert resumed.creation_time == upload.creation_time
    assert resumed.completed_parts == upload.completed_parts
    assert resumed.version == upload.version


@pytest.mark.parametrize(
    ("bucket", "object", "part_size"),
    [
        ("other-bucket", "object.bin", 4),
        ("bucket", "other.bin", 4),
        ("bucket", "object.bin", 5),
    ],
)
def test_resume_for_different_transfer_is_invalid(
    mock_transport: MockTransport,
    upload: Upload,
    source: str,
    cpt_file: str,
    bucket: str,
    object: str,
    part_size: int,
) -> None:
    upload.record_part(Part(number=1, etag="aa", size=4))
    with pytest.raises(CheckpointInvalidError, match="does not match"):
        Upload.resume(
            mock_transport,
            bucket,
            object,
            source,
            transfer_options(cpt_file, part_size=part_size),
        )
    assert mock_transport.dispatched == []


def test_resume_after_source_changed_is_invalid(
    mock_transport: MockTransport, upload: Upload, source: str, cpt_file: str
) -> None:
    with Path(source).open("ab") as f:
        f.write(b"more")
    with pytest.raises(CheckpointInvalidError, match="changed"):
        Upload.resume(
            mock_transport, "bucket", "object.bin", source, transfer_options(cpt_file)
        )


def test_resume_broken_checkpoint(
    mock_transport: MockTransport, upload: Upload, source: str, cpt_file: str
) -> None:
    content = Path(cpt_file).read_bytes()
    Path(cpt_file).write_bytes(content.replace(b"object.bin", b"object.bim"))
    with pytest.raises(CheckpointBrokenError):
        Upload.resume(
            mock_transport, "bucket", "object.bin", source, transfer_options(cpt_file)
        )


def test_resume_malformed_checkpoint(
    mock_transport: MockTransport, source: str, cpt_file: str
) -> None:
    write_checkpoint({"transaction_id": "abc"}, cpt_file)
    with pytest.raises(CheckpointInvalidError, match="malformed"):
        Upload.resume(
            mock_transport, "bucket", "object.bin", source, transfer_options(cpt_file)
        )


def test_checkpoint_can_be_disabled(
    mock_transport: MockTransport, source: str, work_dir: Path
) -> None:
    txn = Upload.start(
        mock_transport, "bucket", "object.bin", source, transfer_options(None)
    )
    txn.run()
    assert txn.state is TransactionState.finalized
    assert sorted(p.name for p in work_dir.iterdir()) == ["source.bin"]
