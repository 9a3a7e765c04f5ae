"""Speech7 adapter exception types."""

from typing import Any


class RemoteServiceError(Exception):
    """Raised when a Speech7 call fails; carries the remote status and payload when known."""

    def __init__(self, message: str, *, status_code: int | None = None, payload: Any = None) -> None:
        self.status_code = status_code
        self.payload = payload
        super().__init__(message)


class TransientNetworkError(RemoteServiceError):
    """Raised when connection resets persist after the retry budget is spent."""


__all__ = ["RemoteServiceError", "TransientNetworkError"]
