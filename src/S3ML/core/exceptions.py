"""
Custom exceptions for the S3ML uploader.

This module defines a hierarchy of domain-specific exceptions so that every
failure inside classification, signing or a backend transfer can be caught at
the adapter boundary and turned into a per-(file, backend) outcome.

Module Input:
    - Error conditions from settings, signing and storage components
    - Optional error details as dictionaries

Module Output:
    - Structured exception objects with message and details
    - A ``retryable`` flag on upload errors used by the orchestrator
"""
from typing import Optional, Any


class S3MLError(Exception):
    """
    Base exception for all S3ML errors.

    Attributes:
        message (str): Human-readable error description
        details (dict[str, Any]): Optional structured error details
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        """
        Initialize exception with message and optional details.

        Args:
            message (str): Human-readable error description
            details (Optional[dict[str, Any]]): Additional structured error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(S3MLError):
    """
    Raised when configuration is invalid or missing.

    This is the only error that aborts a whole run, and it is raised before
    any upload starts.

    Common scenarios:
        - Missing access/secret key for the raw HTTP backend
        - Empty bucket or endpoint for a selected backend
        - Unknown backend name
    """
    pass


class FileDiscoveryError(S3MLError):
    """
    Raised when input discovery fails.

    Common scenarios:
        - Input path doesn't exist
        - Permission denied on directory
    """
    pass


class ClassificationError(S3MLError):
    """
    Content classification failure.

    The classifier is total, so this is never raised; it exists so callers can
    name the category of failure in reports.
    """
    pass


class SigningError(S3MLError):
    """
    Raised when SigV4 signing inputs are malformed.

    Fatal only to the single HTTP attempt that was being signed.

    Common scenarios:
        - ``host`` header missing
        - ``x-amz-content-sha256`` header missing for S3 requests
        - Payload hash is not a 64 character hex digest
        - Timestamp is naive or not in basic ISO-8601 form
    """
    pass


class UploadError(S3MLError):
    """
    Raised when a backend transfer fails.

    Attributes:
        backend (Optional[str]): Identifier of the backend that failed
        key (Optional[str]): Object key that was being transferred
        retryable (bool): Whether repeating the attempt may succeed
    """

    retryable = False

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        key: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.backend = backend
        self.key = key


class NetworkError(UploadError):
    """Connection level failure (DNS, refused connection, reset, timeout)."""

    retryable = True


class EndpointUnreachableError(NetworkError):
    """The backend endpoint could not be reached at all."""
    pass


class UploadTimeoutError(NetworkError):
    """The attempt did not finish within the configured timeout."""
    pass


class AuthRejectedError(UploadError):
    """
    The server rejected the credentials or the signature.

    Never retried: repeating a request signed with a wrong key cannot succeed.
    The server's own message is kept verbatim in ``details``.
    """
    pass


class StorageBackendError(UploadError):
    """Backend-side failure such as quota, missing bucket or a 5xx reply."""
    pass


class BucketNotFoundError(StorageBackendError):
    """The target bucket does not exist."""
    pass


class ThrottledError(StorageBackendError):
    """The backend asked the client to slow down."""

    retryable = True
