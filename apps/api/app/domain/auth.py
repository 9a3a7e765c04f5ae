"""API key resolution and placement rules for Speech7 calls."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_FALLBACK_HEADER = "x-api-key"
_API_KEY_FIELD = "apiKey"


@dataclass(frozen=True)
class AuthContext:
    """Resolved API key plus the header/query placement used to send it."""

    api_key: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)


def _clean(value: Any) -> str:
    if value is None or isinstance(value, (Mapping, list, tuple)):
        return ""
    return str(value).strip()


def resolve_api_key(
    headers: Mapping[str, str],
    query: Mapping[str, Any],
    body: Mapping[str, Any] | None,
    *,
    configured_header: str | None,
    default_key: str | None,
) -> str:
    """Return the first non-empty API key candidate, or ``""`` when none is present.

    Candidates are tried in order: the configured auth header, the literal
    ``x-api-key`` header, the ``apiKey`` query parameter, the ``apiKey`` body
    field and finally the process-level default key.
    """
    lowered = {str(name).lower(): value for name, value in headers.items()}
    header_name = (configured_header or "").strip().lower()

    candidates: list[Any] = []
    if header_name:
        candidates.append(lowered.get(header_name))
    if header_name != _FALLBACK_HEADER:
        candidates.append(lowered.get(_FALLBACK_HEADER))
    candidates.append(query.get(_API_KEY_FIELD))
    candidates.append((body or {}).get(_API_KEY_FIELD))
    candidates.append(default_key)

    for candidate in candidates:
        key = _clean(candidate)
        if key:
            return key
    return ""


def build_auth_context(
    api_key: str | None,
    *,
    header: str | None,
    prefix: str | None,
    query_param: str | None,
) -> AuthContext:
    key = (api_key or "").strip()
    if not key:
        return AuthContext(api_key="")

    headers: dict[str, str] = {}
    params: dict[str, str] = {}
    if header:
        headers[header] = f"{prefix or ''}{key}"
    if query_param:
        params[query_param] = key
    return AuthContext(api_key=key, headers=headers, params=params)


__all__ = ["AuthContext", "build_auth_context", "resolve_api_key"]
