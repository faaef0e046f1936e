"""Checkpoint store: durable, digest-protected transaction state.

A checkpoint is a single JSON object holding the transaction's state,
canonically encoded with sorted keys, followed by a trailing ``md5`` key.
The digest is computed over the canonical encoding of the state alone. On
load both the digest and the exact encoding are checked, so any change to
the file content is detected.
"""
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from ossmultipart.exc import CheckpointBrokenError
from ossmultipart.representation import canonical_json
from ossmultipart.util import content_md5

DIGEST_KEY = "md5"

_log = logging.getLogger(__name__)


def write_checkpoint(states: Mapping[str, Any], file: str) -> str:
    """Persist transaction states to file.

    The file is replaced atomically: content goes to a temporary file in
    the same directory which is flushed to disk and then renamed over the
    target. A crash mid-write leaves the previous checkpoint in place.
    """
    if DIGEST_KEY in states:
        raise ValueError(f"'{DIGEST_KEY}' is a reserved checkpoint key")

    encoded = _encode(states)

    path = Path(file)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(encoded)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    _log.debug("Wrote checkpoint %s (%d bytes)", file, len(encoded))
    return file


def load_checkpoint(file: str) -> dict[str, Any]:
    """Load transaction states from file and validate their digest."""
    content = Path(file).read_bytes()
    try:
        states = json.loads(content)
    except ValueError:
        raise CheckpointBrokenError(
            f"Checkpoint {file} can not be decoded"
        ) from None

    if not isinstance(states, dict):
        raise CheckpointBrokenError(f"Checkpoint {file} is not a mapping")

    digest = states.pop(DIGEST_KEY, None)
    if digest is None:
        raise CheckpointBrokenError(f"Missing :{DIGEST_KEY} in checkpoint {file}")
    if digest != content_md5(canonical_json(states)):
        raise CheckpointBrokenError(f"Unmatched checkpoint MD5 in {file}")
    if content != _encode(states):
        raise CheckpointBrokenError(
            f"Checkpoint {file} is not in canonical form"
        )

    return states


def _encode(states: Mapping[str, Any]) -> bytes:
    """Encode states with their digest appended as the last key."""
    body = canonical_json(states)
    trailer = canonical_json({DIGEST_KEY: content_md5(body)})
    if body == b"{}":
        return trailer
    return body[:-1] + b"," + trailer[1:]


def remove_checkpoint(file: str) -> None:
    """Delete a checkpoint file; a missing file is not an error."""
    Path(file).unlink(missing_ok=True)
    _log.debug("Removed checkpoint %s", file)
