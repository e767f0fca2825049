"""
The three storage delivery paths and a factory that builds them from settings.
"""

from typing import Iterable, List, Optional

from S3ML.core.settings import BackendKind, Settings

from .aws_sdk import AwsSdkBackend
from .base import StorageBackend, detect_content_type
from .compatible import CompatibleEndpointBackend
from .http_sigv4 import HttpSigV4Backend


def create_backends(
    settings: Settings,
    kinds: Optional[Iterable[BackendKind]] = None,
) -> List[StorageBackend]:
    """
    Build backends from settings, in ``BackendKind`` order.

    Args:
        settings (Settings): Loaded settings; read once here, never by backends
        kinds: Backends to build (default: all three)

    Raises:
        ConfigError: If a selected backend is missing configuration
    """
    selected = [BackendKind(kind) for kind in (kinds or list(BackendKind))]
    settings.validate_for(selected)

    backends: List[StorageBackend] = []
    for kind in BackendKind:
        if kind not in selected:
            continue
        if kind is BackendKind.AWS_SDK:
            backends.append(AwsSdkBackend(settings.sdk_config()))
        elif kind is BackendKind.COMPATIBLE:
            backends.append(CompatibleEndpointBackend(settings.compatible_config()))
        else:
            backends.append(HttpSigV4Backend(settings.http_config()))
    return backends


__all__ = [
    "AwsSdkBackend",
    "CompatibleEndpointBackend",
    "HttpSigV4Backend",
    "StorageBackend",
    "create_backends",
    "detect_content_type",
]
