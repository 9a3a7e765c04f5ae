"""Speech7 remote subtitle service adapter."""

from .base import RemoteServiceError, TransientNetworkError
from .client import Speech7Client, build_http_client
from .retry import with_retry

__all__ = [
    "RemoteServiceError",
    "TransientNetworkError",
    "Speech7Client",
    "build_http_client",
    "with_retry",
]
