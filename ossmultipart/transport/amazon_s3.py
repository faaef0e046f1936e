"""Amazon S3 transport.

Works against AWS S3 or any S3 compatible service (set ``endpoint``).
"""
import hashlib
import logging
import posixpath
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import boto3
import botocore
from botocore.exceptions import (
    ClientError,
    ConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from ossmultipart.models import Part
from ossmultipart.transport import Transport, exc

TRANSIENT_ERROR_CODES = frozenset(
    {
        "InternalError",
        "RequestTimeout",
        "RequestTimeoutException",
        "ServiceUnavailable",
        "SlowDown",
        "Throttling",
        "ThrottlingException",
    }
)

_log = logging.getLogger(__name__)


class AmazonS3Transport(Transport):
    """AWS S3 multipart transport."""

    def __init__(
        self,
        endpoint: str | None = None,
        path_prefix: str | None = None,
        region: str | None = None,
        **_: Any,
    ) -> None:
        self.path_prefix = path_prefix
        self.s3_client = boto3.client(
            "s3", endpoint_url=endpoint, region_name=region
        )

    def initiate(
        self, bucket: str, object: str, options: dict[str, Any]
    ) -> str:
        params = {"Bucket": bucket, "Key": self._get_key(object)}
        if options.get("content_type"):
            params["ContentType"] = options["content_type"]
        with _translate_errors():
            response = self.s3_client.create_multipart_upload(**params)
        upload_id: str = response["UploadId"]
        return upload_id

    def upload_part(
        self,
        bucket: str,
        object: str,
        transaction_id: str,
        number: int,
        data: bytes,
    ) -> Part:
        with _translate_errors(transaction_id, number):
            response = self.s3_client.upload_part(
                Bucket=bucket,
                Key=self._get_key(object),
                UploadId=transaction_id,
                PartNumber=number,
                Body=data,
            )
        return Part(
            number=number,
            etag=response["ETag"].strip('"'),
            size=len(data),
            last_modified=datetime.now(tz=timezone.utc),
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
        if size == 0:
            # A zero length range can not be expressed in a Range header
            return b"", Part(number=number, etag=hashlib.md5().hexdigest(), size=0)

        params = {
            "Bucket": bucket,
            "Key": self._get_key(object),
            "Range": f"bytes={start}-{start + size - 1}",
        }
        if etag is not None:
            params["IfMatch"] = f'"{etag}"'
        with _translate_errors(transaction_id, number):
            response = self.s3_client.get_object(**params)
            data: bytes = response["Body"].read()
        part = Part(
            number=number,
            etag=hashlib.md5(data).hexdigest(),
            size=len(data),
            last_modified=response.get("LastModified"),
        )
        return data, part

    def complete(
        self,
        bucket: str,
        object: str,
        transaction_id: str,
        parts: Sequence[Part],
    ) -> None:
        with _translate_errors(transaction_id):
            self.s3_client.complete_multipart_upload(
                Bucket=bucket,
                Key=self._get_key(object),
                UploadId=transaction_id,
                MultipartUpload={
                    "Parts": [
                        {"ETag": p.etag, "PartNumber": p.number} for p in parts
                    ]
                },
            )

    def cancel(self, bucket: str, object: str, transaction_id: str) -> None:
        with _translate_errors(transaction_id):
            self.s3_client.abort_multipart_upload(
                Bucket=bucket,
                Key=self._get_key(object),
                UploadId=transaction_id,
            )

    def get_object_meta(self, bucket: str, object: str) -> dict[str, Any]:
        with _translate_errors():
            response = self.s3_client.head_object(
                Bucket=bucket, Key=self._get_key(object)
            )
        return {
            "size": response["ContentLength"],
            "etag": response["ETag"].strip('"'),
        }

    def _get_key(self, object: str) -> str:
        """Get the key of an object in the bucket."""
        if not self.path_prefix:
            storage_prefix = ""
        elif self.path_prefix[0] == "/":
            storage_prefix = self.path_prefix[1:]
        else:
            storage_prefix = self.path_prefix
        return posixpath.join(storage_prefix, object)


@contextmanager
def _translate_errors(
    transaction_id: str | None = None, part_number: int | None = None
) -> Iterator[None]:
    """Translate botocore errors into transport errors."""
    try:
        yield
    except ClientError as e:
        raise _classify_client_error(e, transaction_id, part_number) from e
    except (ConnectionError, ConnectTimeoutError, ReadTimeoutError) as e:
        raise exc.TransientTransferError(
            str(e), transaction_id=transaction_id, part_number=part_number
        ) from e
    except botocore.exceptions.BotoCoreError as e:
        raise exc.FatalTransferError(
            str(e), transaction_id=transaction_id, part_number=part_number
        ) from e


def _classify_client_error(
    error: ClientError, transaction_id: str | None, part_number: int | None
) -> exc.TransportError:
    code = error.response.get("Error", {}).get("Code", "")
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    message = str(error)

    error_class: type[exc.TransportError]
    if code in TRANSIENT_ERROR_CODES or status == 429 or status >= 500:
        _log.debug("Transient S3 error %s (HTTP %s)", code, status)
        error_class = exc.TransientTransferError
    elif code == "PreconditionFailed" or status == 412:
        error_class = exc.ObjectChangedError
    elif code == "NoSuchUpload":
        error_class = exc.UploadNotFoundError
    elif code in {"NoSuchKey", "404"}:
        error_class = exc.ObjectNotFoundError
    elif code in {"InvalidPart", "InvalidPartOrder"}:
        error_class = exc.InvalidPartError
    else:
        error_class = exc.FatalTransferError

    return error_class(
        message, transaction_id=transaction_id, part_number=part_number
    )


def factory(
    endpoint: str | None = None,
    path_prefix: str | None = None,
    region: str | None = None,
    **_: Any,
) -> AmazonS3Transport:
    """Build an S3 transport."""
    return AmazonS3Transport(
        endpoint=endpoint, path_prefix=path_prefix, region=region
    )
