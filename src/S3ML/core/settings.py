"""
Centralized configuration management using Pydantic.

This module defines the Settings class which loads and validates application
configuration from environment variables or .env file, plus the frozen
per-backend configuration objects that are handed to each storage adapter at
construction time.

Module Input:
    - Environment variables from OS
    - .env file in project root (optional)
    - Default values defined in class

Module Output:
    - Validated configuration object (cached per process)
    - Per-backend configuration objects
    - Early ConfigError for missing credentials
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError


class BackendKind(str, Enum):
    """
    Identifiers of the three delivery paths.

    Values:
        AWS_SDK: Managed cloud SDK (boto3 against AWS S3)
        COMPATIBLE: S3-compatible endpoint such as MinIO
        HTTP: Hand-built PUT signed with AWS Signature Version 4
    """
    AWS_SDK = "aws-sdk"
    COMPATIBLE = "s3-compatible"
    HTTP = "http-sigv4"


class SdkBackendConfig(BaseModel):
    """Read-only configuration for the managed SDK backend."""

    model_config = ConfigDict(frozen=True)

    bucket: str
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    profile: Optional[str] = None
    connect_timeout: float = 10.0
    read_timeout: float = 60.0


class CompatibleBackendConfig(BaseModel):
    """Read-only configuration for an S3-compatible endpoint."""

    model_config = ConfigDict(frozen=True)

    endpoint_url: str
    bucket: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"
    connect_timeout: float = 10.0
    read_timeout: float = 60.0


class HttpBackendConfig(BaseModel):
    """Read-only configuration for the raw SigV4 HTTP backend."""

    model_config = ConfigDict(frozen=True)

    bucket: str
    host: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"
    use_ssl: bool = True
    timeout: float = 60.0

    @property
    def virtual_host(self) -> str:
        """Virtual-hosted style host, ``{bucket}.{host}``."""
        return f"{self.bucket}.{self.host}"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.

    Attributes:
        Managed SDK:
            aws_access_key_id (Optional[str]): AWS access key for boto3
            aws_secret_access_key (Optional[str]): AWS secret key for boto3
            aws_profile (Optional[str]): Named AWS profile to use
            aws_default_region (str): Region (default: "us-east-1")
            aws_bucket (str): Target bucket, shared with the HTTP backend

        S3-compatible endpoint:
            s3_endpoint (str): Endpoint URL (default: "http://localhost:9000")
            s3_access_key (str): Access key (default: "minioadmin")
            s3_secret_key (str): Secret key (default: "minioadmin")
            s3_bucket (str): Bucket (default: "minio-bucket")
            s3_region (str): Region used for signing (default: "us-east-1")

        Raw HTTP:
            aws_access_key (Optional[str]): Access key used in the Credential scope
            aws_secret_key (Optional[str]): Secret key used to derive the signing key
            http_host (str): Service host (default: "s3.amazonaws.com")
            http_region (str): Signing region (default: "us-east-1")
            http_use_ssl (bool): Use https (default: True)

        Orchestration:
            upload_timeout_seconds (float): Per-attempt timeout
            upload_max_attempts (int): Attempts per (file, backend); 1 disables retry
            upload_retry_delay_seconds (float): Initial backoff delay
            max_concurrent_files (int): Files processed at once
            max_workers (int): Threads available for blocking backend calls

        Logging:
            log_level (str): Minimum log level (default: "INFO")
            log_dir (Path): Directory for log files (default: "logs")
            log_file (str): Log file name (default: "s3ml.log")
            log_to_file (bool): Attach the rotating file handler
    """

    # ---------------- Managed SDK ----------------
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_profile: Optional[str] = None
    aws_default_region: str = "us-east-1"
    aws_bucket: str = "aws-bucket"

    # ---------------- S3-compatible endpoint ----------------
    s3_endpoint: str = "http://localhost:9000"
    s3_access_key: str = "minioadmin"
    s3_secret_key: str = "minioadmin"
    s3_bucket: str = "minio-bucket"
    s3_region: str = "us-east-1"

    # ---------------- Raw HTTP (SigV4) ----------------
    aws_access_key: Optional[str] = None
    aws_secret_key: Optional[str] = None
    http_host: str = "s3.amazonaws.com"
    http_region: str = "us-east-1"
    http_use_ssl: bool = True

    # ---------------- Orchestration ----------------
    upload_timeout_seconds: float = 30.0
    upload_max_attempts: int = 1
    upload_retry_delay_seconds: float = 1.0
    max_concurrent_files: int = 8
    max_workers: int = 16

    # ---------------- Logging ----------------
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_file: str = "s3ml.log"
    log_to_file: bool = True

    # ---------------- Pydantic Settings ----------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ---------------- Helper Methods ----------------
    def sdk_config(self) -> SdkBackendConfig:
        """Build the managed SDK backend configuration."""
        return SdkBackendConfig(
            bucket=self.aws_bucket,
            region=self.aws_default_region,
            access_key_id=self.aws_access_key_id,
            secret_access_key=self.aws_secret_access_key,
            profile=self.aws_profile,
            read_timeout=self.upload_timeout_seconds,
        )

    def compatible_config(self) -> CompatibleBackendConfig:
        """Build the S3-compatible backend configuration."""
        return CompatibleBackendConfig(
            endpoint_url=self.s3_endpoint,
            bucket=self.s3_bucket,
            access_key=self.s3_access_key,
            secret_key=self.s3_secret_key,
            region=self.s3_region,
            read_timeout=self.upload_timeout_seconds,
        )

    def http_config(self) -> HttpBackendConfig:
        """
        Build the raw HTTP backend configuration.

        Raises:
            ConfigError: If the access or secret key is missing
        """
        missing = [
            name for name, value in (
                ("AWS_ACCESS_KEY", self.aws_access_key),
                ("AWS_SECRET_KEY", self.aws_secret_key),
            )
            if not value
        ]
        if missing:
            raise ConfigError(
                "Missing credentials for the HTTP backend",
                details={"backend": BackendKind.HTTP.value, "missing": missing},
            )
        return HttpBackendConfig(
            bucket=self.aws_bucket,
            host=self.http_host,
            access_key=self.aws_access_key,
            secret_key=self.aws_secret_key,
            region=self.http_region,
            use_ssl=self.http_use_ssl,
            timeout=self.upload_timeout_seconds,
        )

    def validate_for(self, backends: Iterable[BackendKind]) -> None:
        """
        Check that every selected backend has what it needs.

        Called before any upload starts so that missing credentials abort the
        run instead of failing every attempt.

        Args:
            backends (Iterable[BackendKind]): Backends selected for the run

        Raises:
            ConfigError: On the first backend with missing values
        """
        for backend in backends:
            backend = BackendKind(backend)
            if backend is BackendKind.AWS_SDK:
                required = {"AWS_BUCKET": self.aws_bucket}
            elif backend is BackendKind.COMPATIBLE:
                required = {
                    "S3_ENDPOINT": self.s3_endpoint,
                    "S3_ACCESS_KEY": self.s3_access_key,
                    "S3_SECRET_KEY": self.s3_secret_key,
                    "S3_BUCKET": self.s3_bucket,
                }
            else:
                required = {
                    "AWS_ACCESS_KEY": self.aws_access_key,
                    "AWS_SECRET_KEY": self.aws_secret_key,
                    "AWS_BUCKET": self.aws_bucket,
                    "HTTP_HOST": self.http_host,
                }
            missing = [name for name, value in required.items() if not value]
            if missing:
                raise ConfigError(
                    f"Missing configuration for backend '{backend.value}'",
                    details={"backend": backend.value, "missing": missing},
                )

    def public_view(self) -> dict[str, object]:
        """Return settings with every secret removed, for display."""
        secrets = {
            "aws_access_key_id",
            "aws_secret_access_key",
            "s3_access_key",
            "s3_secret_key",
            "aws_access_key",
            "aws_secret_key",
        }
        view = self.model_dump(exclude=secrets)
        view["log_dir"] = str(self.log_dir)
        return view


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Ensures only one Settings instance is built per process. Components never
    call this themselves; the CLI reads it once and passes config objects down.
    """
    return Settings()
