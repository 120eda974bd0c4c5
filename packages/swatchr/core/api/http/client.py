"""Async HTTP client for the design API, built on HTTPX.

Provides:
- Automatic retries with exponential backoff and Retry-After support
- Structured error handling (ApiError hierarchy)
- Request/response logging with header redaction
- Pydantic response parsing
- Streaming downloads to disk via aiofiles
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from pathlib import Path
import time
from typing import Any, TypeVar

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]
import httpx
from pydantic import BaseModel, ValidationError

from swatchr.core.api.http.config import HttpClientConfig
from swatchr.core.api.http.errors import (
    ApiError,
    AuthError,
    ClientError,
    DecodeError,
    NetworkError,
    RateLimitError,
    ServerError,
    TimeoutError,
    UnexpectedStatusError,
)
from swatchr.core.api.http.logging_utils import (
    RequestLogContext,
    log_request,
    log_response,
    log_retry,
)
from swatchr.core.api.http.retry import RetryPolicy, parse_retry_after_seconds
from swatchr.core.api.http.utils import get_request_id, join_url, safe_snippet

M = TypeVar("M", bound=BaseModel)


def _default_request_id() -> str:
    return f"req_{int(time.time() * 1000)}"


def _is_json_response(resp: httpx.Response) -> bool:
    ctype = resp.headers.get("content-type", "")
    return "application/json" in ctype or "+json" in ctype


def _categorize_http_error(status_code: int) -> type[ApiError]:
    """Map HTTP status code to appropriate error class."""
    if status_code in (401, 403):
        return AuthError
    if status_code == 429:
        return RateLimitError
    if 400 <= status_code < 500:
        return ClientError
    if 500 <= status_code < 600:
        return ServerError
    return UnexpectedStatusError


def _build_api_error(
    *,
    exc_type: type[ApiError],
    message: str,
    method: str,
    url: str,
    status_code: int | None = None,
    response: httpx.Response | None = None,
    request_id: str | None = None,
    body_snippet_limit: int = 4096,
    cause: BaseException | None = None,
) -> ApiError:
    """Build an ApiError carrying whatever response context is available.

    Args:
        exc_type: Error class to instantiate
        message: Human-readable error message
        method: HTTP method
        url: Request URL
        status_code: HTTP status code (if available)
        response: HTTP response (if available, body must already be read)
        request_id: Request ID for tracing
        body_snippet_limit: Max bytes of body to keep
        cause: Original exception that triggered this error

    Returns:
        Constructed API error
    """
    headers: dict[str, str] | None = None
    snippet: str | None = None
    if response is not None:
        headers = dict(response.headers)
        snippet = safe_snippet(response.content or b"", body_snippet_limit)
        request_id = request_id or get_request_id(response.headers)

    return exc_type(
        message=message,
        method=method,
        url=url,
        status_code=status_code,
        request_id=request_id,
        response_headers=headers,
        response_body_snippet=snippet,
        cause=cause,
    )


class AsyncApiClient:
    """Asynchronous HTTP client with retries, structured errors and logging.

    Args:
        config: Client configuration
        auth: Optional authentication handler (e.g. ApiKeyAuth)
        retry_policy: Retry policy (defaults to safe retries on GET/HEAD/OPTIONS)
        transport: Optional custom transport (httpx.MockTransport in tests)

    Example:
        >>> config = HttpClientConfig(base_url="https://api.figma.com")
        >>> async with AsyncApiClient(config, auth=ApiKeyAuth(api_key=token)) as client:
        ...     resp = await client.get("/v1/files/abc/meta")
        ...     data = client.json(resp)
    """

    def __init__(
        self,
        config: HttpClientConfig,
        *,
        auth: httpx.Auth | None = None,
        retry_policy: RetryPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy()
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"User-Agent": config.user_agent, **config.headers},
            params=config.params,
            timeout=config.timeout,
            limits=config.limits,
            follow_redirects=config.follow_redirects,
            auth=auth,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncApiClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _prepare_headers(self, headers: Mapping[str, str] | None) -> tuple[dict[str, str], str]:
        merged = dict(self._client.headers)
        if headers:
            merged.update(headers)
        req_id = merged.get("X-Request-Id") or _default_request_id()
        merged.setdefault("X-Request-Id", req_id)
        return merged, req_id

    def _status_error(
        self, resp: httpx.Response, method: str, url: str, req_id: str, message: str
    ) -> ApiError:
        return _build_api_error(
            exc_type=_categorize_http_error(resp.status_code),
            message=message,
            method=method,
            url=url,
            status_code=resp.status_code,
            response=resp,
            request_id=req_id,
            body_snippet_limit=self.config.max_response_body_for_error,
        )

    def _transport_error(
        self, exc: httpx.RequestError, method: str, url: str, req_id: str
    ) -> ApiError:
        if isinstance(exc, httpx.TimeoutException):
            exc_type: type[ApiError] = TimeoutError
            message = "Request timed out"
        else:
            exc_type = NetworkError
            message = "Network error while sending request"
        return _build_api_error(
            exc_type=exc_type,
            message=message,
            method=method,
            url=url,
            request_id=req_id,
            body_snippet_limit=self.config.max_response_body_for_error,
            cause=exc,
        )

    async def _backoff(self, ctx: RequestLogContext, error: ApiError) -> None:
        retry_after = None
        if error.response_headers:
            retry_after = parse_retry_after_seconds(error.response_headers.get("Retry-After"))
        delay = self.retry_policy.compute_delay(ctx.attempt, retry_after)
        log_retry(ctx, error.message, delay)
        await asyncio.sleep(delay)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        json_body: Any = None,
        timeout: httpx.Timeout | None = None,
        expected_status: Sequence[int] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures per the retry policy.

        Raises:
            ApiError: On a non-retryable failure or when attempts are exhausted
        """
        method_u = method.upper()
        url = join_url(str(self._client.base_url), path)
        merged_headers, req_id = self._prepare_headers(headers)
        merged_params = {k: str(v) for k, v in (params or {}).items()}

        attempts = 0
        while True:
            attempts += 1
            ctx = RequestLogContext(method=method_u, url=url, attempt=attempts, request_id=req_id)
            start = log_request(ctx, merged_headers, self.config.redact_headers)

            try:
                resp = await self._client.request(
                    method_u,
                    url,
                    params=merged_params,
                    headers=merged_headers,
                    json=json_body,
                    timeout=timeout or self.config.timeout,
                )
            except httpx.RequestError as e:
                error = self._transport_error(e, method_u, url, req_id)
                if not self.retry_policy.should_retry(method_u, attempts):
                    raise error from e
                await self._backoff(ctx, error)
                continue

            log_response(ctx, resp.status_code, time.perf_counter() - start)

            if expected_status is not None:
                ok = resp.status_code in expected_status
                message = f"Unexpected status code (expected {list(expected_status)})"
            else:
                ok = resp.status_code < 400
                message = "HTTP error response"
            if ok:
                return resp

            error = self._status_error(resp, method_u, url, req_id, message)
            if not self.retry_policy.should_retry(method_u, attempts, resp.status_code):
                raise error
            await self._backoff(ctx, error)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Perform async GET request.

        Args:
            path: Request path (relative to base_url) or absolute URL
            **kwargs: Additional arguments passed to request()

        Returns:
            HTTP response

        Raises:
            ApiError: On request failure
        """
        return await self.request("GET", path, **kwargs)

    async def stream_to_file(
        self,
        url: str,
        destination: Path,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> int:
        """Stream a GET response body into ``destination``.

        The body is written to a ``.part`` sibling and renamed into place once
        complete, so a failed download never leaves a truncated file behind.

        Args:
            url: Absolute URL or path relative to base_url
            destination: Target file path (parent directories are created)
            headers: Extra request headers

        Returns:
            Number of bytes written

        Raises:
            ApiError: On HTTP or transport failure after retries
        """
        full_url = join_url(str(self._client.base_url), url)
        merged_headers, req_id = self._prepare_headers(headers)
        partial = destination.with_name(destination.name + ".part")
        await aiofiles.os.makedirs(destination.parent, exist_ok=True)

        attempts = 0
        while True:
            attempts += 1
            ctx = RequestLogContext(method="GET", url=full_url, attempt=attempts, request_id=req_id)
            start = log_request(ctx, merged_headers, self.config.redact_headers)
            written = 0
            try:
                async with self._client.stream("GET", full_url, headers=merged_headers) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                        log_response(ctx, resp.status_code, time.perf_counter() - start)
                        error = self._status_error(
                            resp, "GET", full_url, req_id, "Download failed"
                        )
                        if not self.retry_policy.should_retry("GET", attempts, resp.status_code):
                            raise error
                        await self._backoff(ctx, error)
                        continue

                    async with aiofiles.open(partial, "wb") as f:
                        async for chunk in resp.aiter_bytes(self.config.download_chunk_size):
                            await f.write(chunk)
                            written += len(chunk)
                    log_response(ctx, resp.status_code, time.perf_counter() - start)
            except httpx.RequestError as e:
                error = self._transport_error(e, "GET", full_url, req_id)
                if not self.retry_policy.should_retry("GET", attempts):
                    raise error from e
                await self._backoff(ctx, error)
                continue

            await aiofiles.os.replace(partial, destination)
            return written

    def json(self, response: httpx.Response) -> Any:
        """Decode JSON response with structured error handling.

        Raises:
            DecodeError: If response is not JSON or parsing fails
        """
        if response.status_code == 204 or not response.content:
            return None
        if not _is_json_response(response):
            raise _build_api_error(
                exc_type=DecodeError,
                message="Response is not JSON (content-type mismatch)",
                method=response.request.method,
                url=str(response.request.url),
                status_code=response.status_code,
                response=response,
                body_snippet_limit=self.config.max_response_body_for_error,
            )
        try:
            return response.json()
        except ValueError as e:
            raise _build_api_error(
                exc_type=DecodeError,
                message="Failed to parse JSON response",
                method=response.request.method,
                url=str(response.request.url),
                status_code=response.status_code,
                response=response,
                body_snippet_limit=self.config.max_response_body_for_error,
                cause=e,
            ) from e

    def parse_pydantic(self, response: httpx.Response, model: type[M]) -> M:
        """Parse and validate JSON response with a Pydantic model.

        Raises:
            DecodeError: If JSON parsing or validation fails
        """
        data = self.json(response)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise _build_api_error(
                exc_type=DecodeError,
                message=f"Failed to validate response as {model.__name__}",
                method=response.request.method,
                url=str(response.request.url),
                status_code=response.status_code,
                response=response,
                body_snippet_limit=self.config.max_response_body_for_error,
                cause=e,
            ) from e
