"""Multipart download of an object into a local file."""
import logging
import os
import uuid
from pathlib import Path

from ossmultipart.exc import CheckpointInvalidError
from ossmultipart.models import Part, PartRange, TransferKind
from ossmultipart.transfer import Transaction
from ossmultipart.transfer.types import SourceAttributes
from ossmultipart.transport.exc import TransientTransferError

TEMP_SUFFIX = ".temp"

_log = logging.getLogger(__name__)


class Download(Transaction):
    """Download an object into a local file in parts.

    Parts are written at their offset into ``<file>.temp``, which is
    renamed onto ``file`` when the transaction is finalized. The object's
    size and etag are recorded in the checkpoint; resuming after the
    object changed on the service is refused.
    """

    kind = TransferKind.download

    @property
    def temp_file(self) -> str:
        return f"{self.file}{TEMP_SUFFIX}"

    def _describe_source(self) -> SourceAttributes:
        meta = self.transport.get_object_meta(self.bucket, self.object)
        return {"size": int(meta["size"]), "etag": meta["etag"]}

    def _source_name(self) -> str:
        return f"object {self.bucket}/{self.object}"

    def _initiate(self) -> str:
        path = Path(self.temp_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as f:
            f.truncate(self.size)
        return uuid.uuid4().hex

    def _verify_resumable(self) -> None:
        if not Path(self.temp_file).is_file():
            raise CheckpointInvalidError(
                f"Checkpoint {self.cpt_file}: partial download"
                f" {self.temp_file} is missing"
            )

    def _transfer(self, part_range: PartRange) -> Part:
        data, part = self.transport.download_part(
            self.bucket,
            self.object,
            self.id,
            part_range.number,
            part_range.start,
            part_range.size,
            etag=self._source.get("etag"),
        )
        if len(data) != part_range.size:
            raise TransientTransferError(
                f"Short read for part {part_range.number}: expected"
                f" {part_range.size} bytes, got {len(data)}",
                transaction_id=self.id,
                part_number=part_range.number,
            )
        with Path(self.temp_file).open("r+b") as f:
            f.seek(part_range.start)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        _log.debug(
            "Downloaded part %d of %s (%d bytes)",
            part_range.number,
            self.id,
            len(data),
        )
        return part

    def _commit(self, parts: list[Part]) -> None:
        os.replace(self.temp_file, self.file)

    def _cancel(self) -> None:
        Path(self.temp_file).unlink(missing_ok=True)
