"""
Storage backend interface shared by the three delivery paths.

Module Input:
    - Object keys and read-only byte buffers

Module Output:
    - Stored/fetched objects, or an UploadError subclass tagged with the backend
"""

import mimetypes
from abc import ABC, abstractmethod

from S3ML.core.settings import BackendKind


def detect_content_type(key: str) -> str:
    """
    Detect MIME type for an object key based on its extension.

    Example:
        >>> detect_content_type("documents/report.pdf")
        'application/pdf'
        >>> detect_content_type("misc/blob")
        'application/octet-stream'
    """
    content_type, _ = mimetypes.guess_type(key)
    return content_type or "application/octet-stream"


class StorageBackend(ABC):
    """
    A single "store object" capability.

    Implementations hold only read-only configuration and thread-safe clients,
    so the orchestrator may call ``store`` for the same file from several
    threads at once. ``data`` is never modified.
    """

    kind: BackendKind

    @property
    def name(self) -> str:
        """Backend identifier used in outcomes and reports."""
        return self.kind.value

    @abstractmethod
    def store(self, key: str, data: bytes) -> None:
        """
        Upload ``data`` under ``key``.

        Raises:
            UploadError: Any failure, already tagged with this backend
        """

    @abstractmethod
    def fetch(self, key: str) -> bytes:
        """
        Download the object stored under ``key``.

        Raises:
            UploadError: Any failure, already tagged with this backend
        """

    @abstractmethod
    def describe(self) -> str:
        """Human-readable target, e.g. ``s3://bucket``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.describe()})"
