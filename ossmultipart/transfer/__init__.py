"""Multipart transactions.

A transaction is one multipart transfer of an object: it owns the
transfer's identity, the set of parts completed so far and the checkpoint
file that makes the transfer resumable. Upload and download specific
behavior lives in :mod:`~ossmultipart.transfer.upload` and
:mod:`~ossmultipart.transfer.download`.

Only one Transaction instance may operate on a given checkpoint file at
any time. This is not locked against: callers running several processes
must hold their own lock keyed by the checkpoint path for the lifetime of
the transaction.
"""
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Any, ClassVar

from marshmallow import ValidationError
from typing_extensions import Self

from ossmultipart.checkpoint import (
    load_checkpoint,
    remove_checkpoint,
    write_checkpoint,
)
from ossmultipart.exc import (
    CheckpointInvalidError,
    ClientError,
    TransactionAbortedError,
    TransactionStateError,
)
from ossmultipart.models import (
    Part,
    PartRange,
    TransactionState,
    TransferKind,
    calculate_parts,
)
from ossmultipart.schema import checkpoint_schema
from ossmultipart.transfer.types import CheckpointStates, SourceAttributes
from ossmultipart.transport import Transport
from ossmultipart.transport.exc import (
    FatalTransferError,
    TransientTransferError,
)

DEFAULT_PART_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_THREADS = 4
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BACKOFF = 1.0

# Options that identify a transfer and are compared when resuming
PERSISTED_OPTIONS = ("part_size",)

ProgressCallback = Callable[[int, int], None]

_log = logging.getLogger(__name__)


class Transaction(ABC):
    """A multipart transaction. Provides the checkpoint methods and drives
    part transfers to completion.

    Use :meth:`start` to begin a new transfer and :meth:`resume` to pick
    up a transfer from its checkpoint, then call :meth:`run`.
    """

    kind: ClassVar[TransferKind]

    def __init__(
        self,
        transport: Transport,
        bucket: str,
        object: str,
        file: str,
        options: dict[str, Any] | None = None,
    ) -> None:
        missing_args = [
            name
            for name, value in (
                ("bucket", bucket),
                ("object", object),
                ("file", file),
            )
            if not value
        ]
        if missing_args:
            raise ClientError(f"Missing arguments: {', '.join(missing_args)}")

        self.options = dict(options or {})
        self.options.setdefault("part_size", DEFAULT_PART_SIZE)
        part_size = self.options["part_size"]
        if (
            isinstance(part_size, bool)
            or not isinstance(part_size, int)
            or part_size <= 0
        ):
            raise ClientError(f"Invalid part_size: {part_size!r}")

        self.transport = transport
        self._bucket = bucket
        self._object = object
        self._file = str(file)
        self._id: str | None = None
        self._creation_time: datetime | None = None
        self._source: SourceAttributes = {}
        self._parts: dict[int, Part] = {}
        self._state = TransactionState.active
        self._lock = threading.RLock()
        self._halt = threading.Event()
        self.version = 0

    @classmethod
    def start(
        cls,
        transport: Transport,
        bucket: str,
        object: str,
        file: str,
        options: dict[str, Any] | None = None,
    ) -> Self:
        """Begin a new transaction."""
        txn = cls(transport, bucket, object, file, options)
        txn._source = txn._describe_source()
        txn._id = txn._initiate()
        txn._creation_time = datetime.now(tz=timezone.utc)
        txn._checkpoint()
        _log.info(
            "Started %s %s of %s/%s", txn.kind.value, txn.id, bucket, object
        )
        return txn

    @classmethod
    def resume(
        cls,
        transport: Transport,
        bucket: str,
        object: str,
        file: str,
        options: dict[str, Any] | None = None,
    ) -> Self:
        """Resume a transaction from the checkpoint in ``options['cpt_file']``.

        Raises :class:`~ossmultipart.exc.CheckpointBrokenError` if the
        checkpoint fails validation, and
        :class:`~ossmultipart.exc.CheckpointInvalidError` if it describes a
        different transfer than the one requested.
        """
        txn = cls(transport, bucket, object, file, options)
        if not txn.cpt_file:
            raise ClientError("Missing arguments: cpt_file")
        txn._restore(load_checkpoint(txn.cpt_file))
        _log.info(
            "Resumed %s %s of %s/%s with %d parts completed",
            txn.kind.value,
            txn.id,
            bucket,
            object,
            len(txn._parts),
        )
        return txn

    @property
    def id(self) -> str | None:
        return self._id

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def object(self) -> str:
        return self._object

    @property
    def file(self) -> str:
        return self._file

    @property
    def creation_time(self) -> datetime | None:
        return self._creation_time

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def cpt_file(self) -> str | None:
        return self.options.get("cpt_file")

    @property
    def part_size(self) -> int:
        return int(self.options["part_size"])

    @property
    def size(self) -> int:
        """Total size of the object being transferred."""
        return int(self._source["size"])

    @property
    def completed_parts(self) -> list[Part]:
        with self._lock:
            return [self._parts[n] for n in sorted(self._parts)]

    @property
    def transferred_bytes(self) -> int:
        with self._lock:
            return sum(p.size for p in self._parts.values())

    def pending_parts(self) -> list[PartRange]:
        """Get the part ranges that have not been completed yet."""
        with self._lock:
            return [
                r
                for r in calculate_parts(self.size, self.part_size)
                if r.number not in self._parts
            ]

    def record_part(self, part: Part) -> None:
        """Record a completed part and persist the checkpoint.

        A part with the same number as an already recorded part replaces
        it. The checkpoint is fully written when this returns.
        """
        with self._lock:
            self._ensure_active()
            self._parts[part.number] = part
            self.version += 1
            self._checkpoint()
            transferred = sum(p.size for p in self._parts.values())

        _log.debug(
            "Transaction %s: recorded part %d (%d bytes)",
            self.id,
            part.number,
            part.size,
        )
        callback: ProgressCallback | None = self.options.get(
            "progress_callback"
        )
        if callback:
            callback(transferred, self.size)

    def finalize(self) -> None:
        """Commit the transfer and delete the checkpoint.

        Every part must have been recorded. If committing fails the
        transaction stays active and the checkpoint is kept, so finalizing
        can be retried.
        """
        with self._lock:
            self._ensure_active()
            missing = [r.number for r in self.pending_parts()]
            if missing:
                raise TransactionStateError(
                    f"Transaction {self.id} can not be finalized, parts"
                    f" {missing} are missing"
                )
            self._commit(self.completed_parts)
            self._state = TransactionState.finalized
            self.version += 1
            self._remove_checkpoint()
        _log.info("Finalized %s %s", self.kind.value, self.id)

    def abort(self) -> None:
        """Cancel the transfer.

        No parts are dispatched after this is called. The checkpoint is
        deleted even if cancelling on the remote side fails; that error is
        still raised.
        """
        self._halt.set()
        with self._lock:
            self._ensure_active()
            try:
                self._cancel()
            finally:
                self._state = TransactionState.aborted
                self.version += 1
                self._remove_checkpoint()
                _log.info("Aborted %s %s", self.kind.value, self.id)

    def run(self) -> None:
        """Transfer all pending parts and finalize the transaction.

        Parts are transferred by a pool of ``threads`` workers. Transient
        failures are retried up to ``max_retries`` times with exponential
        backoff; any other failure stops the run and leaves the checkpoint
        in place for a later resume.
        """
        with self._lock:
            self._ensure_active()
            self._halt.clear()
        pending = self.pending_parts()
        _log.info(
            "Transaction %s: %d of %d parts pending",
            self.id,
            len(pending),
            len(calculate_parts(self.size, self.part_size)),
        )

        first_error: BaseException | None = None
        threads = int(self.options.get("threads", DEFAULT_THREADS))
        with ThreadPoolExecutor(max_workers=max(threads, 1)) as pool:
            futures: list[Future] = [
                pool.submit(self._transfer_part, r) for r in pending
            ]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                error = future.exception()
                if error is not None and first_error is None:
                    first_error = error
                    self._halt.set()
                    for f in futures:
                        f.cancel()

        if first_error is not None:
            raise first_error
        if self._state is TransactionState.aborted:
            raise TransactionAbortedError(f"Transaction {self.id} was aborted")
        self.finalize()

    def _transfer_part(self, part_range: PartRange) -> None:
        """Transfer one part, retrying transient failures."""
        max_retries = int(self.options.get("max_retries", DEFAULT_MAX_RETRIES))
        backoff = float(self.options.get("retry_backoff", DEFAULT_RETRY_BACKOFF))

        attempt = 0
        while True:
            if self._halt.is_set():
                return
            attempt += 1
            try:
                part = self._transfer(part_range)
                break
            except TransientTransferError as e:
                e.with_context(self.id, part_range.number)
                if attempt > max_retries:
                    raise FatalTransferError(
                        f"Part {part_range.number} of transaction {self.id}"
                        f" failed after {attempt} attempts: {e}",
                        transaction_id=self.id,
                        part_number=part_range.number,
                    ) from e
                delay = backoff * 2 ** (attempt - 1)
                _log.warning(
                    "Part %d of transaction %s failed (attempt %d), retrying in %.1fs: %s",
                    part_range.number,
                    self.id,
                    attempt,
                    delay,
                    e,
                )
                self._halt.wait(delay)
            except FatalTransferError as e:
                raise e.with_context(self.id, part_range.number)

        try:
            self.record_part(part)
        except TransactionStateError:
            if self._state is not TransactionState.aborted:
                raise
            _log.debug(
                "Discarding part %d of aborted transaction %s",
                part_range.number,
                self.id,
            )

    def _ensure_active(self) -> None:
        if self._state is not TransactionState.active:
            raise TransactionStateError(
                f"Transaction {self.id} is {self._state.value}"
            )

    def _states(self) -> CheckpointStates:
        return checkpoint_schema.dump(
            {
                "transaction_id": self._id,
                "kind": self.kind,
                "bucket": self._bucket,
                "object": self._object,
                "file": self._file,
                "creation_time": self._creation_time,
                "version": self.version,
                "options": {k: self.options[k] for k in PERSISTED_OPTIONS},
                "source": self._source,
                "parts": self.completed_parts,
            }
        )

    def _checkpoint(self) -> None:
        """Persist transaction states to the checkpoint file, if enabled."""
        if self.cpt_file:
            write_checkpoint(self._states(), self.cpt_file)

    def _remove_checkpoint(self) -> None:
        if self.cpt_file:
            remove_checkpoint(self.cpt_file)

    def _restore(self, states: dict[str, Any]) -> None:
        """Restore transaction states loaded from a checkpoint.

        The checkpoint must describe the same transfer as this transaction
        was constructed for.
        """
        try:
            data = checkpoint_schema.load(states)
        except ValidationError as e:
            raise CheckpointInvalidError(
                f"Checkpoint {self.cpt_file} is malformed: {e.messages}"
            ) from None

        mismatches = [
            name
            for name, stored, requested in (
                ("kind", data["kind"], self.kind),
                ("bucket", data["bucket"], self._bucket),
                ("object", data["object"], self._object),
                ("file", data["file"], self._file),
            )
            if stored != requested
        ]
        mismatches.extend(
            f"options.{k}"
            for k in PERSISTED_OPTIONS
            if data["options"].get(k) != self.options.get(k)
        )
        if mismatches:
            raise CheckpointInvalidError(
                f"Checkpoint {self.cpt_file} does not match the requested"
                f" transfer: {', '.join(mismatches)} differ"
            )

        source = self._describe_source()
        if data["source"] != source:
            raise CheckpointInvalidError(
                f"Checkpoint {self.cpt_file}: the {self._source_name()} has"
                " changed since the transfer started"
            )

        self._id = data["transaction_id"]
        self._creation_time = data["creation_time"]
        self.version = data["version"]
        self._source = source
        self._parts = {p.number: p for p in data["parts"]}
        self._verify_resumable()

    def _source_name(self) -> str:
        return "source"

    def _verify_resumable(self) -> None:
        """Check local preconditions for resuming, beyond the checkpoint."""

    @abstractmethod
    def _describe_source(self) -> SourceAttributes:
        """Describe the transfer source; must include its ``size``."""

    @abstractmethod
    def _initiate(self) -> str:
        """Prepare the transfer and return the transaction ID."""

    @abstractmethod
    def _transfer(self, part_range: PartRange) -> Part:
        pass

    @abstractmethod
    def _commit(self, parts: list[Part]) -> None:
        pass

    @abstractmethod
    def _cancel(self) -> None:
        pass
