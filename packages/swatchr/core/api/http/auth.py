from __future__ import annotations

from collections.abc import AsyncGenerator, Generator

import httpx
from pydantic import BaseModel, Field


class ApiKeyAuth(httpx.Auth, BaseModel):
    """Static token header authentication.

    The design API expects a personal access token in ``X-Figma-Token``;
    OAuth tokens go in ``Authorization`` with a ``Bearer`` prefix.

    Example:
        >>> auth = ApiKeyAuth(header_name="X-Figma-Token", api_key="figd_...")
        >>> auth = ApiKeyAuth(header_name="Authorization", api_key="tok", prefix="Bearer")
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    header_name: str = "X-Figma-Token"
    api_key: str = Field(repr=False)
    prefix: str | None = None

    def _value(self) -> str:
        return f"{self.prefix} {self.api_key}" if self.prefix else self.api_key

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers[self.header_name] = self._value()
        yield request

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        request.headers[self.header_name] = self._value()
        yield request
