from __future__ import annotations

from urllib.parse import urlsplit

# Local dashboards (PM and vendor apps) during development.
DEV_ORIGINS = ("http://localhost:3000", "http://localhost:5173")


def _origin(value: str) -> str | None:
    parts = urlsplit(str(value or "").strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def build_allowed_origins(
    *,
    frontend_base_url: str,
    frontend_urls: str | None,
    include_dev: bool = True,
) -> list[str]:
    """
    Origins allowed to call the API.

    `FRONTEND_URLS` is a comma-separated list; paths are stripped and entries
    that are not http(s) URLs are ignored.
    """
    candidates = [frontend_base_url, *str(frontend_urls or "").split(",")]
    allowed = {o for o in (_origin(c) for c in candidates) if o}
    if include_dev:
        allowed.update(DEV_ORIGINS)
    return sorted(allowed)
