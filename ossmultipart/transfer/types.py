"""Some useful type definitions for persisted transaction state."""
from typing import TypedDict


class PartAttributes(TypedDict):
    """A completed part as stored in a checkpoint."""

    number: int
    etag: str
    size: int
    last_modified: str | None


class TransferOptions(TypedDict):
    """The options snapshot a transaction was created with."""

    part_size: int


class SourceAttributes(TypedDict, total=False):
    """Identity of the transfer source, used to detect changes between runs.

    Uploads record the local file's ``size`` and ``mtime_ns``; downloads
    record the remote object's ``size`` and ``etag``.
    """

    size: int
    mtime_ns: int
    etag: str


class CheckpointStates(TypedDict):
    """Checkpoint content, excluding the integrity digest."""

    transaction_id: str
    kind: str
    bucket: str
    object: str
    file: str
    creation_time: str
    version: int
    options: TransferOptions
    source: SourceAttributes
    parts: list[PartAttributes]
