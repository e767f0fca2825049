"""
Raw HTTP backend signed with AWS Signature Version 4.

Builds ``PUT https://{bucket}.{host}/{key}`` by hand, signs it with
:class:`~S3ML.services.signing.SigV4Signer` and sends it with requests. No
SDK is involved, which makes this path a check on the signer itself.

Wire format:
    PUT /{key} HTTP/1.1
    Host: {bucket}.{host}
    x-amz-date: 20230101T000000Z
    x-amz-content-sha256: <hex sha256 of body>
    content-type: <from key extension>
    Authorization: AWS4-HMAC-SHA256 Credential=..., SignedHeaders=..., Signature=...

    <raw file bytes>
"""

import re
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

import requests

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
from S3ML.core.settings import BackendKind, HttpBackendConfig
from S3ML.services.signing import SigningCredentials, SigV4Signer, format_amz_date, hash_payload

from .base import StorageBackend, detect_content_type

logger = get_logger(__name__)

_ERROR_CODE_RE = re.compile(r"<Code>([^<]+)</Code>")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def error_for_response(response: requests.Response, backend: str, key: str) -> UploadError:
    """
    Map a non-2xx response to an UploadError, keeping the body for diagnostics.

    S3 error bodies are XML documents whose ``<Code>`` element names the error;
    it is used when present, the status code otherwise.
    """
    body = response.text
    match = _ERROR_CODE_RE.search(body or "")
    code = match.group(1) if match else None
    status = response.status_code
    details = {"status_code": status, "code": code, "response_body": body}

    if status in (401, 403):
        return AuthRejectedError(
            f"Authentication rejected by {backend} (HTTP {status}{', ' + code if code else ''})",
            backend, key, details,
        )
    if code == "NoSuchBucket":
        return BucketNotFoundError(f"Bucket not found on {backend}", backend, key, details)
    if status in (429, 503) or code == "SlowDown":
        return ThrottledError(f"{backend} throttled the request (HTTP {status})", backend, key, details)
    return StorageBackendError(f"{backend} returned HTTP {status}", backend, key, details)


class HttpSigV4Backend(StorageBackend):
    """
    Store objects with a hand-signed HTTP request.

    A fresh request is made per call and the signer is immutable, so
    concurrent calls share nothing mutable.

    Attributes:
        config (HttpBackendConfig): Bucket, host, region and credentials
        signer (SigV4Signer): Signer for service "s3"
    """

    kind = BackendKind.HTTP

    def __init__(self, config: HttpBackendConfig, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            config (HttpBackendConfig): Backend configuration
            clock: Returns the signing time; defaults to ``datetime.now(timezone.utc)``
        """
        self.config = config
        self.signer = SigV4Signer(
            SigningCredentials(config.access_key, config.secret_key),
            region=config.region,
            service="s3",
        )
        self._clock = clock or _utc_now
        logger.info(f"Initialized {self.name} backend for {self.describe()}")

    def build_request(self, method: str, key: str, data: bytes = b"") -> Tuple[str, dict[str, str]]:
        """
        Build the URL and signed headers for one request.

        Args:
            method (str): "PUT" or "GET"
            key (str): Unencoded object key
            data (bytes): Request body

        Returns:
            Tuple[str, dict[str, str]]: URL and headers including Authorization

        Raises:
            SigningError: If the signing inputs are malformed
        """
        host = self.config.virtual_host
        payload_hash = hash_payload(data)
        amz_date = format_amz_date(self._clock())

        headers = {
            "Host": host,
            "x-amz-date": amz_date,
            "x-amz-content-sha256": payload_hash,
        }
        if method.upper() == "PUT":
            headers["Content-Type"] = detect_content_type(key)

        signed = self.signer.sign(
            method,
            "/" + key.lstrip("/"),
            headers,
            payload_hash,
            amz_date,
        )
        headers["Authorization"] = signed.authorization

        scheme = "https" if self.config.use_ssl else "http"
        return f"{scheme}://{host}{signed.canonical_uri}", headers

    def _send(self, method: str, key: str, data: bytes = b"") -> requests.Response:
        url, headers = self.build_request(method, key, data)
        try:
            response = requests.request(
                method,
                url,
                headers=headers,
                data=data if data else None,
                timeout=self.config.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise UploadTimeoutError(
                f"Timed out talking to {self.name}", self.name, key, {"url": url, "error": str(e)}
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise EndpointUnreachableError(
                f"Endpoint unreachable for {self.name}", self.name, key, {"url": url, "error": str(e)}
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(
                f"HTTP request failed on {self.name}", self.name, key, {"url": url, "error": str(e)}
            ) from e

        if not 200 <= response.status_code < 300:
            raise error_for_response(response, self.name, key)
        return response

    def store(self, key: str, data: bytes) -> None:
        response = self._send("PUT", key, data)
        logger.info(f"Uploaded via HTTP: {key} (Status: {response.status_code})")

    def fetch(self, key: str) -> bytes:
        response = self._send("GET", key)
        logger.info(f"Downloaded via HTTP: {key} ({len(response.content)} bytes)")
        return response.content

    def describe(self) -> str:
        scheme = "https" if self.config.use_ssl else "http"
        return f"{scheme}://{self.config.virtual_host}"
