"""Value types shared by transactions, transports and checkpoints."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import NamedTuple


class TransferKind(Enum):
    """Direction of a multipart transfer."""

    upload = "upload"
    download = "download"


class TransactionState(Enum):
    """Transaction lifecycle states.

    ``active`` is the only state with outgoing transitions; it moves to
    either ``finalized`` or ``aborted``.
    """

    active = "active"
    finalized = "finalized"
    aborted = "aborted"


@dataclass(frozen=True)
class Part:
    """A part in a multipart transaction, as accepted by the service."""

    number: int
    etag: str
    size: int
    last_modified: datetime | None = None


class PartRange(NamedTuple):
    """Byte range of the object covered by one part."""

    number: int
    start: int
    size: int


def calculate_parts(file_size: int, part_size: int) -> list[PartRange]:
    """Calculate the list of part ranges in an object.

    Part numbers start at 1. An empty object still has a single, empty
    part so that there is always something to commit.

    >>> calculate_parts(30, 10)
    [PartRange(number=1, start=0, size=10), PartRange(number=2, start=10, size=10), PartRange(number=3, start=20, size=10)]

    >>> calculate_parts(28, 10)
    [PartRange(number=1, start=0, size=10), PartRange(number=2, start=10, size=10), PartRange(number=3, start=20, size=8)]

    >>> calculate_parts(7, 10)
    [PartRange(number=1, start=0, size=7)]

    >>> calculate_parts(0, 10)
    [PartRange(number=1, start=0, size=0)]
    """  # noqa: E501
    if part_size <= 0:
        raise ValueError(f"Part size must be positive, got {part_size}")
    if file_size == 0:
        return [PartRange(number=1, start=0, size=0)]

    full_parts = file_size // part_size
    last_part_size = file_size % part_size
    parts = [
        PartRange(number=i + 1, start=i * part_size, size=part_size)
        for i in range(full_parts)
    ]

    if last_part_size:
        parts.append(
            PartRange(
                number=full_parts + 1,
                start=full_parts * part_size,
                size=last_part_size,
            )
        )

    return parts
