from __future__ import annotations

from collections.abc import Mapping
import logging
import time

from pydantic import BaseModel

logger = logging.getLogger("swatchr.core.api.http")

REDACTED = "***REDACTED***"


def redact_headers(headers: Mapping[str, str], redact: tuple[str, ...]) -> dict[str, str]:
    """Return a copy of headers with sensitive values masked.

    Args:
        headers: Headers to redact
        redact: Header names to redact (case-insensitive)

    Returns:
        Headers with sensitive values replaced
    """
    hidden = {name.lower() for name in redact}
    return {k: (REDACTED if k.lower() in hidden else v) for k, v in headers.items()}


class RequestLogContext(BaseModel):
    """Fields attached to every request/response log record."""

    method: str
    url: str
    attempt: int
    request_id: str | None = None


def log_request(
    ctx: RequestLogContext, headers: Mapping[str, str], redact: tuple[str, ...]
) -> float:
    """Log an outgoing request and return its start timestamp."""
    start = time.perf_counter()
    logger.debug(
        "HTTP request",
        extra={
            "method": ctx.method,
            "url": ctx.url,
            "attempt": ctx.attempt,
            "request_id": ctx.request_id,
            "headers": redact_headers(headers, redact),
        },
    )
    return start


def log_response(ctx: RequestLogContext, status_code: int, elapsed_s: float) -> None:
    logger.debug(
        "HTTP response",
        extra={
            "method": ctx.method,
            "url": ctx.url,
            "attempt": ctx.attempt,
            "request_id": ctx.request_id,
            "status_code": status_code,
            "elapsed_ms": int(elapsed_s * 1000),
        },
    )


def log_retry(ctx: RequestLogContext, reason: str, delay_s: float) -> None:
    logger.info(
        f"Retrying {ctx.method} {ctx.url} in {delay_s:.2f}s (attempt {ctx.attempt}): {reason}"
    )
