"""
boto3-based storage backends and botocore error mapping.

Both the managed AWS SDK backend and the S3-compatible endpoint backend talk
to S3 through a boto3 client; they differ only in how the client is built.

Module Input:
    - A boto3 S3 client
    - Object keys and byte buffers

Module Output:
    - Objects stored/fetched through ``put_object``/``get_object``
    - botocore exceptions translated into the UploadError taxonomy
"""

from typing import Any, Optional

from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)

from S3ML.core.exceptions import (
    AuthRejectedError,
    BucketNotFoundError,
    EndpointUnreachableError,
    NetworkError,
    StorageBackendError,
    ThrottledError,
    UploadError,
    UploadTimeoutError,
)
from S3ML.core.logging_config import get_logger

from .base import StorageBackend, detect_content_type

logger = get_logger(__name__)

AUTH_ERROR_CODES = {
    "AccessDenied",
    "AuthorizationHeaderMalformed",
    "ExpiredToken",
    "InvalidAccessKeyId",
    "InvalidClientTokenId",
    "InvalidToken",
    "SignatureDoesNotMatch",
}
BUCKET_ERROR_CODES = {"NoSuchBucket"}
THROTTLE_ERROR_CODES = {
    "RequestLimitExceeded",
    "RequestThrottled",
    "ServiceUnavailable",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "TooManyRequests",
}


def map_botocore_error(exc: Exception, backend: str, key: str, bucket: str) -> UploadError:
    """
    Translate a botocore/boto3 exception into the UploadError taxonomy.

    Args:
        exc: Exception raised by the boto3 client
        backend: Backend identifier for tagging
        key: Object key of the failed transfer
        bucket: Target bucket

    Returns:
        UploadError: The matching subclass; never raises
    """
    details: dict[str, Any] = {"bucket": bucket, "error": str(exc)}

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "Unknown")
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        details.update({"code": code, "status_code": status, "server_message": error.get("Message")})

        if code in AUTH_ERROR_CODES or status in (401, 403):
            return AuthRejectedError(
                f"Authentication rejected by {backend}: {code}", backend, key, details
            )
        if code in BUCKET_ERROR_CODES:
            return BucketNotFoundError(
                f"Bucket '{bucket}' not found on {backend}", backend, key, details
            )
        if code in THROTTLE_ERROR_CODES or status in (429, 503):
            return ThrottledError(f"{backend} throttled the request: {code}", backend, key, details)
        return StorageBackendError(f"{backend} rejected the request: {code}", backend, key, details)

    if isinstance(exc, (ConnectTimeoutError, ReadTimeoutError)):
        return UploadTimeoutError(f"Timed out talking to {backend}", backend, key, details)
    if isinstance(exc, EndpointConnectionError):
        return EndpointUnreachableError(f"Endpoint unreachable for {backend}", backend, key, details)
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return AuthRejectedError(f"No usable credentials for {backend}", backend, key, details)
    if isinstance(exc, HTTPClientError):
        return NetworkError(f"Connection error on {backend}", backend, key, details)
    if isinstance(exc, BotoCoreError):
        return StorageBackendError(f"{backend} client error: {exc}", backend, key, details)
    return StorageBackendError(f"Unexpected {backend} failure: {exc}", backend, key, details)


class BotoStorageBackend(StorageBackend):
    """
    Storage backend backed by a boto3 S3 client.

    boto3 clients are thread-safe once created, so one client serves every
    concurrent attempt.

    Attributes:
        bucket (str): Target bucket name
    """

    def __init__(self, bucket: str, client: Any):
        self.bucket = bucket
        self._client = client

    def store(self, key: str, data: bytes) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=detect_content_type(key),
            )
        except (ClientError, BotoCoreError) as e:
            raise map_botocore_error(e, self.name, key, self.bucket) from e
        logger.info(f"Uploaded to {self.name}: s3://{self.bucket}/{key} ({len(data)} bytes)")

    def fetch(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            data = response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise map_botocore_error(e, self.name, key, self.bucket) from e
        logger.info(f"Downloaded from {self.name}: s3://{self.bucket}/{key} ({len(data)} bytes)")
        return data

    def describe(self) -> str:
        return f"s3://{self.bucket}"


def client_config(connect_timeout: float, read_timeout: float, addressing_style: Optional[str] = None):
    """
    botocore Config with internal retries disabled.

    Retrying is the orchestrator's decision, so botocore makes one attempt.
    """
    kwargs: dict[str, Any] = {
        "retries": {"max_attempts": 1, "mode": "standard"},
        "connect_timeout": connect_timeout,
        "read_timeout": read_timeout,
        "signature_version": "s3v4",
    }
    if addressing_style:
        kwargs["s3"] = {"addressing_style": addressing_style}
    return Config(**kwargs)
