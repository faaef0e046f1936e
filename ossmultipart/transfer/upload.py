"""Multipart upload of a local file."""
import logging
from pathlib import Path

from ossmultipart.models import Part, PartRange, TransferKind
from ossmultipart.transfer import Transaction
from ossmultipart.transfer.types import SourceAttributes

_log = logging.getLogger(__name__)


class Upload(Transaction):
    """Upload a local file to an object in parts.

    The transaction ID is the multipart upload ID registered with the
    service. The file's size and modification time are recorded in the
    checkpoint; resuming after the file was modified is refused.
    """

    kind = TransferKind.upload

    def _describe_source(self) -> SourceAttributes:
        stat = Path(self.file).stat()
        return {"size": stat.st_size, "mtime_ns": stat.st_mtime_ns}

    def _source_name(self) -> str:
        return f"source file {self.file}"

    def _initiate(self) -> str:
        return self.transport.initiate(self.bucket, self.object, self.options)

    def _transfer(self, part_range: PartRange) -> Part:
        with Path(self.file).open("rb") as f:
            f.seek(part_range.start)
            data = f.read(part_range.size)
        _log.debug(
            "Uploading part %d of %s (%d bytes)",
            part_range.number,
            self.id,
            len(data),
        )
        return self.transport.upload_part(
            self.bucket, self.object, self.id, part_range.number, data
        )

    def _commit(self, parts: list[Part]) -> None:
        self.transport.complete(self.bucket, self.object, self.id, parts)

    def _cancel(self) -> None:
        self.transport.cancel(self.bucket, self.object, self.id)
