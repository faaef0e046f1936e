"""Test helpers."""
import os
from pathlib import Path
from typing import Any


def create_file(path: Path, size: int) -> str:
    """Create a file of random content and return its path as a string."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        f.write(os.urandom(size))
    return str(path)


def create_object_in_storage(
    storage_path: str, bucket: str, object: str, size: int
) -> bytes:
    """Put an object directly in a local transport's storage path.

    This is useful where we want to test downloads without relying on
    uploads to work.
    """
    content = os.urandom(size)
    path = Path(storage_path) / bucket / object
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return content


def transfer_options(cpt_file: str | None, **kwargs: Any) -> dict[str, Any]:
    """Generate transfer options suitable for deterministic tests."""
    options = {
        "part_size": 4,
        "cpt_file": cpt_file,
        "threads": 1,
        "max_retries": 3,
        "retry_backoff": 0,
    }
    options.update(kwargs)
    return options
