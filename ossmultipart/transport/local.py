"""Local transport implementation, for development/testing or small-scale
deployments.

Objects live under ``<path>/<bucket>/<object>``. Parts of an upload are
staged in ``<path>/.uploads/<transaction id>/`` until the upload is
completed or cancelled.
"""
import hashlib
import logging
import shutil
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ossmultipart.models import Part
from ossmultipart.transport import Transport, exc

UPLOADS_DIR = ".uploads"
COPY_BUFFER_SIZE = 1024 * 1024

_log = logging.getLogger(__name__)


class LocalTransport(Transport):
    """Local transport implementation.

    This transport works by storing objects in the local file system.
    It mimics the multipart semantics of a cloud object store closely
    enough to exercise resumable transfers without a network.
    """

    def __init__(self, path: str | None = None, **_: Any) -> None:
        if path is None:
            path = "oss-storage"
        self.path = path
        self._create_path(self.path)

    def initiate(
        self, bucket: str, object: str, options: dict[str, Any]
    ) -> str:
        upload_id = uuid.uuid4().hex
        self._create_path(str(self._get_upload_path(upload_id)))
        _log.debug("Initiated upload %s for %s/%s", upload_id, bucket, object)
        return upload_id

    def upload_part(
        self,
        bucket: str,
        object: str,
        transaction_id: str,
        number: int,
        data: bytes,
    ) -> Part:
        upload_path = self._get_upload_path(transaction_id)
        if not upload_path.is_dir():
            raise exc.UploadNotFoundError(
                f"Upload {transaction_id} does not exist",
                transaction_id=transaction_id,
                part_number=number,
            )
        part_path = upload_path / str(number)
        part_path.write_bytes(data)
        return Part(
            number=number,
            etag=hashlib.md5(data).hexdigest(),
            size=len(data),
            last_modified=self._mtime(part_path),
        )

    def download_part(
        self,
        bucket: str,
        object: str,
        transaction_id: str,
        number: int,
        start: int,
        size: int,
        etag: str | None = None,
    ) -> tuple[bytes, Part]:
        path = self._get_object_path(bucket, object)
        if not path.is_file():
            raise exc.ObjectNotFoundError(
                f"Object {bucket}/{object} was not found",
                transaction_id=transaction_id,
                part_number=number,
            )
        if etag is not None and self._get_etag(path) != etag:
            raise exc.ObjectChangedError(
                f"Object {bucket}/{object} no longer has etag {etag}",
                transaction_id=transaction_id,
                part_number=number,
            )
        with path.open("rb") as f:
            f.seek(start)
            data = f.read(size)
        part = Part(
            number=number,
            etag=hashlib.md5(data).hexdigest(),
            size=len(data),
            last_modified=self._mtime(path),
        )
        return data, part

    def complete(
        self,
        bucket: str,
        object: str,
        transaction_id: str,
        parts: Sequence[Part],
    ) -> None:
        upload_path = self._get_upload_path(transaction_id)
        if not upload_path.is_dir():
            raise exc.UploadNotFoundError(
                f"Upload {transaction_id} does not exist",
                transaction_id=transaction_id,
            )

        for part in parts:
            part_path = upload_path / str(part.number)
            if not part_path.is_file():
                raise exc.InvalidPartError(
                    f"Part {part.number} was never uploaded",
                    transaction_id=transaction_id,
                    part_number=part.number,
                )
            if hashlib.md5(part_path.read_bytes()).hexdigest() != part.etag:
                raise exc.InvalidPartError(
                    f"Part {part.number} etag does not match",
                    transaction_id=transaction_id,
                    part_number=part.number,
                )

        path = self._get_object_path(bucket, object)
        self._create_path(str(path.parent))
        with path.open("bw") as dest:
            for part in parts:
                with (upload_path / str(part.number)).open("br") as src:
                    shutil.copyfileobj(src, dest, COPY_BUFFER_SIZE)
        shutil.rmtree(upload_path)
        _log.debug("Completed upload %s into %s", transaction_id, path)

    def cancel(self, bucket: str, object: str, transaction_id: str) -> None:
        upload_path = self._get_upload_path(transaction_id)
        if not upload_path.is_dir():
            raise exc.UploadNotFoundError(
                f"Upload {transaction_id} does not exist",
                transaction_id=transaction_id,
            )
        shutil.rmtree(upload_path)

    def get_object_meta(self, bucket: str, object: str) -> dict[str, Any]:
        path = self._get_object_path(bucket, object)
        if not path.is_file():
            raise exc.ObjectNotFoundError(
                f"Object {bucket}/{object} was not found"
            )
        return {"size": path.stat().st_size, "etag": self._get_etag(path)}

    def _get_object_path(self, bucket: str, object: str) -> Path:
        return Path(self.path) / bucket / object

    def _get_upload_path(self, transaction_id: str) -> Path:
        return Path(self.path) / UPLOADS_DIR / transaction_id

    @staticmethod
    def _get_etag(path: Path) -> str:
        stat = path.stat()
        return f"{stat.st_mtime_ns:x}-{stat.st_size:x}"

    @staticmethod
    def _mtime(path: Path) -> datetime:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)

    @staticmethod
    def _create_path(spath: str) -> None:
        path = Path(spath)
        if not path.is_dir():
            path.mkdir(parents=True, exist_ok=True)


def factory(path: str | None = None, **_: Any) -> LocalTransport:
    """Build a local transport."""
    return LocalTransport(path=path)
