"""
S3-compatible endpoint backend (MinIO, Ceph RGW, R2 and friends).

Talks to a configurable endpoint URL with explicit static credentials and
path-style addressing, so bucket names never need DNS entries.
"""

from typing import Any, Optional

import boto3

from S3ML.core.exceptions import ConfigError
from S3ML.core.logging_config import get_logger
from S3ML.core.settings import BackendKind, CompatibleBackendConfig

from .boto_backend import BotoStorageBackend, client_config

logger = get_logger(__name__)


class CompatibleEndpointBackend(BotoStorageBackend):
    """
    Store objects on an S3-compatible endpoint.

    Failures are reported as one of: endpoint unreachable
    (EndpointUnreachableError), authentication rejected (AuthRejectedError)
    or bucket not found (BucketNotFoundError), with anything else falling
    back to StorageBackendError.
    """

    kind = BackendKind.COMPATIBLE

    def __init__(self, config: CompatibleBackendConfig, client: Optional[Any] = None):
        if not config.endpoint_url:
            raise ConfigError("Endpoint URL cannot be empty", details={"backend": self.kind.value})
        if not config.bucket:
            raise ConfigError("Bucket name cannot be empty", details={"backend": self.kind.value})
        self.config = config
        super().__init__(config.bucket, client or self._create_client(config))
        logger.info(
            f"Initialized {self.name} backend for bucket '{config.bucket}' at {config.endpoint_url}"
        )

    @staticmethod
    def _create_client(config: CompatibleBackendConfig) -> Any:
        try:
            return boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                region_name=config.region,
                aws_access_key_id=config.access_key,
                aws_secret_access_key=config.secret_key,
                config=client_config(
                    config.connect_timeout,
                    config.read_timeout,
                    addressing_style="path",
                ),
            )
        except Exception as e:
            raise ConfigError(
                "Failed to initialize S3-compatible client",
                details={"error": str(e), "endpoint": config.endpoint_url},
            )

    def describe(self) -> str:
        return f"{self.config.endpoint_url.rstrip('/')}/{self.bucket}"
