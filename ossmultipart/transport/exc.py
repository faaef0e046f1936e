"""Transport related errors
"""


class TransportError(RuntimeError):
    """Base class for transport errors"""

    code: int | None = None

    def __init__(
        self,
        message: str = "",
        transaction_id: str | None = None,
        part_number: int | None = None,
    ) -> None:
        super().__init__(message)
        self.transaction_id = transaction_id
        self.part_number = part_number

    def with_context(
        self, transaction_id: str | None, part_number: int | None = None
    ) -> "TransportError":
        """Attach transaction context, keeping any context already set."""
        if self.transaction_id is None:
            self.transaction_id = transaction_id
        if self.part_number is None:
            self.part_number = part_number
        return self

    def as_dict(self) -> dict[str, str | int | None]:
        return {
            "message": str(self),
            "code": self.code,
            "transaction_id": self.transaction_id,
            "part_number": self.part_number,
        }


class TransientTransferError(TransportError):
    """A retryable failure: network trouble, throttling, 5xx replies"""

    code = 503


class FatalTransferError(TransportError):
    code = 500


class ObjectNotFoundError(FatalTransferError):
    code = 404


class UploadNotFoundError(FatalTransferError):
    code = 404


class InvalidPartError(FatalTransferError):
    code = 422


class ObjectChangedError(FatalTransferError):
    """The object was replaced since the transfer started"""

    code = 412
