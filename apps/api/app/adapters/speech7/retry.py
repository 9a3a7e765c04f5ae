"""Fixed-budget retry for transient connection failures."""

from __future__ import annotations

import asyncio
import errno
import logging
from collections.abc import Awaitable, Callable, Iterator
from typing import TypeVar

import httpx

from app.adapters.speech7.base import TransientNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 2
DEFAULT_DELAY_MS = 500

_TRANSIENT_ERRNOS: frozenset[int] = frozenset({errno.EPIPE, errno.ECONNRESET})


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def transport_error_code(exc: BaseException) -> str | None:
    """Return ``EPIPE``/``ECONNRESET`` when the failure is a dropped connection."""
    for link in _exception_chain(exc):
        if isinstance(link, BrokenPipeError):
            return "EPIPE"
        if isinstance(link, ConnectionResetError):
            return "ECONNRESET"
        if isinstance(link, OSError) and link.errno in _TRANSIENT_ERRNOS:
            return errno.errorcode[link.errno]
        # Server closed the keep-alive socket without answering.
        if isinstance(link, httpx.RemoteProtocolError):
            return "ECONNRESET"
    return None


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = DEFAULT_RETRIES,
    delay_ms: int = DEFAULT_DELAY_MS,
) -> T:
    """Run ``operation``, retrying only connection resets and broken pipes."""
    remaining = retries
    while True:
        try:
            return await operation()
        except Exception as exc:
            code = transport_error_code(exc)
            if code is None:
                raise
            if remaining <= 0:
                raise TransientNetworkError(f"Connection failed after {retries} retries ({code})") from exc
            logger.warning(
                "speech7.retrying code=%s remaining=%s delay_ms=%s",
                code,
                remaining,
                delay_ms,
            )
            remaining -= 1
            await asyncio.sleep(delay_ms / 1000)


__all__ = ["DEFAULT_DELAY_MS", "DEFAULT_RETRIES", "transport_error_code", "with_retry"]
