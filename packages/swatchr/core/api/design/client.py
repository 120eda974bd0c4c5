"""Design API client and remote file downloader."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Protocol, TypeVar
from urllib.parse import urlparse

import httpx

from swatchr.core.api.design.endpoints import Endpoint
from swatchr.core.api.http import ApiKeyAuth, AsyncApiClient, HttpClientConfig, RetryPolicy
from swatchr.core.io import sanitize_path_component
from swatchr.core.pipeline.models import FileContents

logger = logging.getLogger(__name__)

R = TypeVar("R")

DEFAULT_API_BASE_URL = "https://api.figma.com"


def source_key(url: str) -> str:
    """Short stable directory name for a download source."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


class DesignClient(Protocol):
    """What the batch pipeline needs from the design API."""

    async def fetch(self, endpoint: Endpoint[R]) -> R: ...


class DesignApiClient:
    """Typed access to the design API over AsyncApiClient.

    Example:
        >>> async with DesignApiClient.from_token(token) as api:
        ...     meta = await api.fetch(FileMetadataEndpoint(file_id="abc"))
        ...     print(meta.version)
    """

    def __init__(self, http: AsyncApiClient) -> None:
        self.http = http

    @classmethod
    def from_token(
        cls,
        token: str,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_s: float = 30.0,
        retry_policy: RetryPolicy | None = None,
    ) -> DesignApiClient:
        config = HttpClientConfig(base_url=base_url, timeout=httpx.Timeout(timeout_s, connect=5.0))
        return cls(
            AsyncApiClient(config, auth=ApiKeyAuth(api_key=token), retry_policy=retry_policy)
        )

    async def fetch(self, endpoint: Endpoint[R]) -> R:
        """Perform the endpoint's GET and parse its payload.

        Raises:
            ApiError: On transport/HTTP failure or an undecodable body
        """
        response = await self.http.get(endpoint.path, params=endpoint.params())
        return endpoint.parse(self.http.json(response))

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> DesignApiClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class HttpFileDownloader:
    """Downloads FileContents sources into a local directory.

    Files are stored under ``download_dir`` in a subdirectory keyed by a digest
    of the source URL, then their destination path. Configs writing the same
    destination from different sources therefore never share a local file.
    """

    def __init__(self, http: AsyncApiClient, download_dir: Path) -> None:
        self.http = http
        self.download_dir = download_dir

    def local_path_for(self, file: FileContents) -> Path:
        parts = [
            sanitize_path_component(p)
            for p in Path(file.destination).parts
            if p not in ("/", "..")
        ]
        if not parts:
            parts = [sanitize_path_component(Path(urlparse(file.source_url or "").path).name)]
        return self.download_dir.joinpath(source_key(file.source_url or ""), *parts)

    async def download_file(self, file: FileContents) -> FileContents:
        if file.source_url is None:
            return file
        target = self.local_path_for(file)
        size = await self.http.stream_to_file(file.source_url, target)
        logger.debug(f"Downloaded {file.destination} ({size} bytes)")
        return file.model_copy(update={"data_file": target})
