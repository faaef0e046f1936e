"""Transport base classes.

A transport issues the actual calls to the storage service on behalf of a
multipart transaction. Transports report failures by raising the errors in
:mod:`ossmultipart.transport.exc`: anything that may succeed when retried is
a :class:`~ossmultipart.transport.exc.TransientTransferError`, everything
else is a :class:`~ossmultipart.transport.exc.FatalTransferError`.
"""
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from ossmultipart.models import Part

from . import exc  # noqa: F401


class Transport(ABC):
    """Interface for multipart transports."""

    @abstractmethod
    def initiate(
        self, bucket: str, object: str, options: dict[str, Any]
    ) -> str:
        """Register a new multipart upload and return its ID."""

    @abstractmethod
    def upload_part(
        self,
        bucket: str,
        object: str,
        transaction_id: str,
        number: int,
        data: bytes,
    ) -> Part:
        pass

    @abstractmethod
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
        """Read a byte range of an object.

        If ``etag`` is given and the stored object no longer has that etag,
        raises :class:`~ossmultipart.transport.exc.ObjectChangedError`.
        """

    @abstractmethod
    def complete(
        self,
        bucket: str,
        object: str,
        transaction_id: str,
        parts: Sequence[Part],
    ) -> None:
        """Compose the object from its parts.

        ``parts`` are given in ascending part number order.
        """

    @abstractmethod
    def cancel(self, bucket: str, object: str, transaction_id: str) -> None:
        """Release the remote side of a multipart upload."""

    @abstractmethod
    def get_object_meta(self, bucket: str, object: str) -> dict[str, Any]:
        """Get the ``size`` and ``etag`` of a stored object.

        Raises :class:`~ossmultipart.transport.exc.ObjectNotFoundError` if
        the object does not exist.
        """

    def exists(self, bucket: str, object: str) -> bool:
        try:
            self.get_object_meta(bucket, object)
        except exc.ObjectNotFoundError:
            return False
        return True
