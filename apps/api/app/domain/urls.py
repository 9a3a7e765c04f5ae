"""URL reconciliation for Speech7 job resources."""

from urllib.parse import urljoin, urlsplit


def _is_absolute(url: str) -> bool:
    parts = urlsplit(url)
    return bool(parts.scheme and parts.netloc)


def resolve_url(path_or_url: str | None, base_url: str | None) -> str | None:
    """Resolve ``path_or_url`` against ``base_url``; never raises.

    Already-absolute values are returned unchanged. When the value cannot be
    resolved (unparseable input or a base that is not itself absolute) the
    input is returned as-is.
    """
    if not path_or_url:
        return None
    try:
        if _is_absolute(path_or_url):
            return path_or_url
        base = (base_url or "").rstrip("/")
        if not base or not _is_absolute(base):
            return path_or_url
        return urljoin(f"{base}/", path_or_url)
    except ValueError:
        return path_or_url


def default_status_url(status_base: str, token: str) -> str:
    return f"{status_base.rstrip('/')}/{token}"


def default_download_url(status_base: str, token: str, suffix: str) -> str:
    return f"{status_base.rstrip('/')}/{token}/{suffix}"


__all__ = ["default_download_url", "default_status_url", "resolve_url"]
