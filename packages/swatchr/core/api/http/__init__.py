"""HTTPX wrapper used by the design API client.

Exposes a small surface:
- AsyncApiClient: retrying async client with streaming downloads
- HttpClientConfig / RetryPolicy: configuration
- ApiKeyAuth: token header auth
- Exceptions: ApiError and subclasses
"""

from swatchr.core.api.http.auth import ApiKeyAuth
from swatchr.core.api.http.client import AsyncApiClient
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
from swatchr.core.api.http.retry import RetryPolicy

__all__ = [
    "AsyncApiClient",
    "HttpClientConfig",
    "RetryPolicy",
    "ApiKeyAuth",
    "ApiError",
    "NetworkError",
    "TimeoutError",
    "DecodeError",
    "RateLimitError",
    "AuthError",
    "ClientError",
    "ServerError",
    "UnexpectedStatusError",
]
