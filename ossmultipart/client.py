"""Client for resumable multipart transfers

The client builds a transport from configuration and hands out upload and
download transactions. ``upload_file`` and ``download_file`` resume from an
existing checkpoint when there is one, and start a new transfer otherwise.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Any

from . import config as config_module
from .exc import ClientError
from .transfer.download import Download
from .transfer.upload import Upload
from .transport import Transport
from .util import get_callable, to_bool

CPT_SUFFIX = ".cpt"

_log = logging.getLogger(__name__)


class Client:
    """Multipart transfer client.

    >>> client = Client(TRANSPORT={'options': {'path': 'oss-storage'}})  # doctest: +SKIP
    >>> client.upload_file('my-bucket', 'path/in/bucket.bin', 'local.bin')  # doctest: +SKIP
    """

    def __init__(self, transport: Transport | None = None, **config: Any):
        self.config = config_module.configure(config)
        if transport is None:
            transport = _init_transport(self.config["TRANSPORT"])
        self.transport = transport

    def start_upload(
        self, bucket: str, object: str, file: str, **options: Any
    ) -> Upload:
        return Upload.start(
            self.transport, bucket, object, file, self._options(file, options)
        )

    def resume_upload(
        self, bucket: str, object: str, file: str, **options: Any
    ) -> Upload:
        return Upload.resume(
            self.transport, bucket, object, file, self._options(file, options)
        )

    def upload_file(
        self, bucket: str, object: str, file: str, **options: Any
    ) -> Upload:
        """Upload a local file, resuming a previous attempt if its checkpoint
        exists.
        """
        opts = self._options(file, options)
        if opts.get("cpt_file") and Path(opts["cpt_file"]).is_file():
            txn = Upload.resume(self.transport, bucket, object, file, opts)
        else:
            txn = Upload.start(self.transport, bucket, object, file, opts)
        txn.run()
        return txn

    def start_download(
        self, bucket: str, object: str, file: str, **options: Any
    ) -> Download:
        return Download.start(
            self.transport, bucket, object, file, self._options(file, options)
        )

    def resume_download(
        self, bucket: str, object: str, file: str, **options: Any
    ) -> Download:
        return Download.resume(
            self.transport, bucket, object, file, self._options(file, options)
        )

    def download_file(
        self, bucket: str, object: str, file: str, **options: Any
    ) -> Download:
        """Download an object into a local file, resuming a previous attempt
        if its checkpoint exists.
        """
        opts = self._options(file, options)
        if opts.get("cpt_file") and Path(opts["cpt_file"]).is_file():
            txn = Download.resume(self.transport, bucket, object, file, opts)
        else:
            txn = Download.start(self.transport, bucket, object, file, opts)
        txn.run()
        return txn

    def _options(self, file: str, options: dict[str, Any]) -> dict[str, Any]:
        """Compose transfer options from call arguments and configuration."""
        opts = dict(options)
        opts.setdefault("part_size", int(self.config["PART_SIZE"]))
        opts.setdefault("threads", int(self.config["MAX_WORKERS"]))
        opts.setdefault("max_retries", int(self.config["MAX_RETRIES"]))
        opts.setdefault("retry_backoff", float(self.config["RETRY_BACKOFF"]))

        disable_cpt = to_bool(
            opts.pop("disable_cpt", self.config["DISABLE_CPT"])
        )
        if disable_cpt:
            opts["cpt_file"] = None
        elif not opts.get("cpt_file") and file:
            opts["cpt_file"] = f"{file}{CPT_SUFFIX}"
        return opts


def _init_transport(config: dict) -> Transport:
    """Call transport factory to create a transport instance."""
    if not config.get("factory"):
        raise ClientError("Missing arguments: TRANSPORT.factory")
    try:
        factory = get_callable(config["factory"])
    except (AttributeError, ImportError, ValueError):
        raise ClientError(
            f"Unable to load transport factory: {config['factory']}"
        ) from None
    transport: Transport = factory(**config.get("options", {}))
    return transport


def _main() -> None:
    if os.environ.get("OSSMULTIPART_DEBUG"):
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)-15s %(name)-24s %(levelname)-8s %(message)s",
    )

    try:
        operation, bucket, object, file = sys.argv[1:5]
    except ValueError:
        sys.stderr.write(
            f"Usage: {sys.argv[0]} upload|download <bucket> <object> <file>\n"
        )
        sys.exit(1)

    client = Client()
    if operation == "upload":
        client.upload_file(bucket, object, file)
    elif operation == "download":
        client.download_file(bucket, object, file)
    else:
        sys.stderr.write(f"Unknown operation: {operation}\n")
        sys.exit(1)


if __name__ == "__main__":
    _main()
