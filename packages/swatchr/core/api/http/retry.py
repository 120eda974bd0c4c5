from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
import random

from pydantic import BaseModel, Field, field_validator


class RetryPolicy(BaseModel):
    """Exponential backoff with jitter for design API requests.

    Only idempotent methods are retried unless ``allow_non_idempotent`` is set.
    The design API rate limits aggressively, so 429 is retried and its
    ``Retry-After`` header takes precedence over the computed delay.

    Args:
        max_attempts: Maximum number of attempts (including initial request)
        base_delay_s: Base delay in seconds for exponential backoff
        max_delay_s: Maximum delay in seconds (caps exponential growth)
        jitter: Jitter as fraction of delay (0.15 = +/-15% randomization)
        retry_on_status: HTTP status codes that trigger retries
        retry_methods: HTTP methods eligible for retry
        allow_non_idempotent: Allow retrying POST/PUT/PATCH
    """

    model_config = {"frozen": True}

    max_attempts: int = Field(default=4, ge=1)
    base_delay_s: float = Field(default=0.5, ge=0.0)
    max_delay_s: float = Field(default=30.0, ge=0.0)
    jitter: float = Field(default=0.15, ge=0.0, le=1.0)
    retry_on_status: tuple[int, ...] = (429, 500, 502, 503, 504)
    retry_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    allow_non_idempotent: bool = False

    @field_validator("max_delay_s")
    @classmethod
    def validate_max_delay(cls, v: float, info) -> float:
        base = info.data.get("base_delay_s", 0.5)
        if v < base:
            raise ValueError("max_delay_s must be >= base_delay_s")
        return v

    def allows_method(self, method: str) -> bool:
        if method.upper() in self.retry_methods:
            return True
        return self.allow_non_idempotent

    def should_retry(self, method: str, attempt: int, status_code: int | None = None) -> bool:
        """Decide whether another attempt is allowed.

        Args:
            method: HTTP method of the failed request
            attempt: Number of attempts already made (1-indexed)
            status_code: Response status, or None for transport failures

        Returns:
            True if the request should be sent again
        """
        if attempt >= self.max_attempts or not self.allows_method(method):
            return False
        if status_code is None:
            return True
        return status_code in self.retry_on_status

    def compute_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Compute the sleep before the next attempt.

        Args:
            attempt: Attempt number that just failed (1-indexed)
            retry_after: Server-provided delay, used verbatim (capped) when present

        Returns:
            Delay in seconds
        """
        if retry_after is not None:
            return min(retry_after, self.max_delay_s)
        delay: float = min(self.max_delay_s, self.base_delay_s * (2 ** (attempt - 1)))
        if self.jitter > 0:
            spread = delay * self.jitter
            delay = max(0.0, delay + random.uniform(-spread, spread))
        return delay


def parse_retry_after_seconds(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header into seconds.

    Accepts both delta-seconds and HTTP-date forms.

    Args:
        value: Retry-After header value
        now: Reference time for HTTP-date values (defaults to current UTC time)

    Returns:
        Seconds to wait, or None if missing or unparseable
    """
    if not value:
        return None
    v = value.strip()
    try:
        seconds = float(v)
    except ValueError:
        try:
            when = parsedate_to_datetime(v)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=UTC)
        reference = now or datetime.now(UTC)
        return max(0.0, (when - reference).total_seconds())
    return seconds if seconds >= 0 else None
