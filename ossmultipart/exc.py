"""Multipart transaction errors."""


class MultipartError(RuntimeError):
    """Base class for multipart transaction errors."""

    code: int | None = None

    def as_dict(self) -> dict[str, str | int | None]:
        return {"message": str(self), "code": self.code}


class ClientError(MultipartError):
    """Invalid or missing arguments supplied by the caller."""

    code = 400


class CheckpointBrokenError(MultipartError):
    """Checkpoint file is missing its digest or failed digest validation.

    A broken checkpoint can not be resumed from; the transfer has to be
    started over.
    """

    code = 422


class CheckpointInvalidError(MultipartError):
    """Checkpoint is intact but does not describe the requested transfer."""

    code = 409


class TransactionStateError(MultipartError):
    """Operation is not allowed in the transaction's current state."""

    code = 409


class TransactionAbortedError(TransactionStateError):
    pass
