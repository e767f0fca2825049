"""
Managed AWS SDK backend.

Uploads through boto3 against AWS S3 itself. The SDK is treated as correct;
only its error surface is interpreted.
"""

import os
from typing import Any, Optional

import boto3

from S3ML.core.exceptions import ConfigError
from S3ML.core.logging_config import get_logger
from S3ML.core.settings import BackendKind, SdkBackendConfig

from .boto_backend import BotoStorageBackend, client_config

logger = get_logger(__name__)


class AwsSdkBackend(BotoStorageBackend):
    """
    Store objects in AWS S3 with boto3.

    Credentials come from the config when given, then from the named profile,
    then from boto3's default chain (environment, instance role). In Lambda
    the execution role is always used.
    """

    kind = BackendKind.AWS_SDK

    def __init__(self, config: SdkBackendConfig, client: Optional[Any] = None):
        """
        Args:
            config (SdkBackendConfig): Bucket, region and optional credentials
            client: Pre-built boto3 S3 client (tests inject stubbed clients)

        Raises:
            ConfigError: If the bucket is empty or the client cannot be built
        """
        if not config.bucket:
            raise ConfigError("S3 bucket name cannot be empty", details={"backend": self.kind.value})
        self.config = config
        super().__init__(config.bucket, client or self._create_client(config))
        logger.info(f"Initialized {self.name} backend for bucket '{config.bucket}' in {config.region}")

    @staticmethod
    def _create_client(config: SdkBackendConfig) -> Any:
        is_lambda = 'AWS_EXECUTION_ENV' in os.environ or 'AWS_LAMBDA_FUNCTION_NAME' in os.environ

        session_kwargs: dict[str, Any] = {}
        if not is_lambda:
            if config.profile:
                session_kwargs["profile_name"] = config.profile
            elif config.access_key_id and config.secret_access_key:
                session_kwargs.update({
                    "aws_access_key_id": config.access_key_id,
                    "aws_secret_access_key": config.secret_access_key,
                })

        try:
            session = boto3.Session(region_name=config.region, **session_kwargs)
            return session.client(
                "s3",
                config=client_config(config.connect_timeout, config.read_timeout),
            )
        except Exception as e:
            raise ConfigError(
                "Failed to initialize S3 client",
                details={"error": str(e), "bucket": config.bucket},
            )
