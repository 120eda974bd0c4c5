"""Tests for RetryPolicy and Retry-After parsing."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from swatchr.core.api.http import RetryPolicy
from swatchr.core.api.http.retry import parse_retry_after_seconds


class TestShouldRetry:
    def test_retryable_status_on_get(self) -> None:
        policy = RetryPolicy(max_attempts=3)
        assert policy.should_retry("GET", 1, 503)
        assert policy.should_retry("get", 2, 429)

    def test_attempts_exhausted(self) -> None:
        assert not RetryPolicy(max_attempts=3).should_retry("GET", 3, 503)

    def test_client_errors_not_retried(self) -> None:
        assert not RetryPolicy().should_retry("GET", 1, 404)

    def test_transport_failure_retried(self) -> None:
        assert RetryPolicy().should_retry("GET", 1, None)

    def test_non_idempotent_requires_opt_in(self) -> None:
        assert not RetryPolicy().should_retry("POST", 1, 503)
        assert RetryPolicy(allow_non_idempotent=True).should_retry("POST", 1, 503)


class TestComputeDelay:
    def test_exponential_without_jitter(self) -> None:
        policy = RetryPolicy(base_delay_s=0.5, max_delay_s=30.0, jitter=0.0)
        assert [policy.compute_delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_capped_at_max_delay(self) -> None:
        policy = RetryPolicy(base_delay_s=1.0, max_delay_s=4.0, jitter=0.0)
        assert policy.compute_delay(10) == 4.0

    def test_retry_after_wins_but_is_capped(self) -> None:
        policy = RetryPolicy(base_delay_s=0.5, max_delay_s=10.0)
        assert policy.compute_delay(1, retry_after=3.0) == 3.0
        assert policy.compute_delay(1, retry_after=60.0) == 10.0

    def test_jitter_stays_within_spread(self) -> None:
        policy = RetryPolicy(base_delay_s=1.0, max_delay_s=10.0, jitter=0.2)
        for _ in range(20):
            assert 0.8 <= policy.compute_delay(1) <= 1.2

    def test_max_below_base_rejected(self) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(base_delay_s=5.0, max_delay_s=1.0)


class TestRetryAfter:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, None), ("", None), ("7", 7.0), (" 1.5 ", 1.5), ("-3", None), ("soon", None)],
    )
    def test_delta_seconds(self, value: str | None, expected: float | None) -> None:
        assert parse_retry_after_seconds(value) == expected

    def test_http_date(self) -> None:
        now = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
        assert parse_retry_after_seconds("Sun, 01 Mar 2026 12:00:30 GMT", now=now) == 30.0

    def test_http_date_in_past_is_zero(self) -> None:
        now = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
        assert parse_retry_after_seconds("Sun, 01 Mar 2026 11:00:00 GMT", now=now) == 0.0
