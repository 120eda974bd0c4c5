"""Helpers shared by the HTTP client."""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import urljoin


def join_url(base_url: str, path: str) -> str:
    """Join base URL with a relative path; absolute URLs pass through unchanged.

    Example:
        >>> join_url("https://api.figma.com", "/v1/files/abc")
        'https://api.figma.com/v1/files/abc'
        >>> join_url("https://api.figma.com", "https://s3.example.com/img.png")
        'https://s3.example.com/img.png'
    """
    if path.startswith(("http://", "https://")):
        return path
    base = base_url if base_url.endswith("/") else base_url + "/"
    return urljoin(base, path.lstrip("/"))


def safe_snippet(content: bytes, limit: int) -> str:
    """Decode at most ``limit`` bytes of a response body for error messages."""
    if not content:
        return ""
    return content[:limit].decode("utf-8", errors="replace")


def get_request_id(headers: Mapping[str, str]) -> str | None:
    """Extract a request ID from common tracing headers (case-insensitive)."""
    lowered = {k.lower(): v for k, v in headers.items()}
    for key in ("x-request-id", "x-correlation-id", "request-id", "trace-id"):
        if key in lowered:
            return lowered[key]
    return None
