"""Tests for DesignApiClient and HttpFileDownloader."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from swatchr.core.api.design import (
    DesignApiClient,
    FileMetadataEndpoint,
    HttpFileDownloader,
    ImageUrlsEndpoint,
    source_key,
)
from swatchr.core.api.http import (
    ApiKeyAuth,
    AsyncApiClient,
    AuthError,
    HttpClientConfig,
    RetryPolicy,
)
from swatchr.core.pipeline.models import FileContents


def make_http(handler, **kwargs) -> AsyncApiClient:
    return AsyncApiClient(
        HttpClientConfig(base_url="https://api.test"),
        transport=httpx.MockTransport(handler),
        retry_policy=RetryPolicy(max_attempts=1),
        **kwargs,
    )


class TestDesignApiClient:
    async def test_fetch_parses_endpoint_payload(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"file": {"name": "Icons", "version": "7"}})

        async with DesignApiClient(make_http(handler, auth=ApiKeyAuth(api_key="tok"))) as api:
            meta = await api.fetch(FileMetadataEndpoint(file_id="abc"))

        assert meta.version == "7"
        assert seen[0].url.path == "/v1/files/abc/meta"
        assert seen[0].headers["X-Figma-Token"] == "tok"

    async def test_fetch_sends_params(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["ids"] == "1:1,1:2"
            assert request.url.params["format"] == "png"
            return httpx.Response(200, json={"images": {"1:1": "https://cdn/1.png"}})

        async with DesignApiClient(make_http(handler)) as api:
            urls = await api.fetch(
                ImageUrlsEndpoint(file_id="abc", node_ids=("1:1", "1:2"), format="png")
            )

        assert urls == {"1:1": "https://cdn/1.png"}

    async def test_bad_token_raises_auth_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"status": 403, "err": "Invalid token"})

        async with DesignApiClient(make_http(handler)) as api:
            with pytest.raises(AuthError):
                await api.fetch(FileMetadataEndpoint(file_id="abc"))

    async def test_from_token_configures_base_url(self) -> None:
        async with DesignApiClient.from_token("tok", base_url="https://design.example") as api:
            assert api.http.config.base_url == "https://design.example"


class TestHttpFileDownloader:
    @pytest.fixture
    async def idle_http(self):
        http = make_http(lambda request: httpx.Response(500))
        yield http
        await http.aclose()

    async def test_local_path_mirrors_destination(
        self, tmp_path: Path, idle_http: AsyncApiClient
    ) -> None:
        downloader = HttpFileDownloader(idle_http, tmp_path)
        file = FileContents(destination="icons/arrow left.svg", source_url="https://cdn/x")
        expected = tmp_path / source_key("https://cdn/x") / "icons" / "arrow_left.svg"
        assert downloader.local_path_for(file) == expected

    async def test_local_path_never_escapes(
        self, tmp_path: Path, idle_http: AsyncApiClient
    ) -> None:
        downloader = HttpFileDownloader(idle_http, tmp_path)
        file = FileContents(destination="../../etc/passwd", source_url="https://cdn/x")
        expected = tmp_path / source_key("https://cdn/x") / "etc" / "passwd"
        assert downloader.local_path_for(file) == expected

    async def test_download_sets_data_file(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<svg/>")

        http = make_http(handler)
        downloader = HttpFileDownloader(http, tmp_path)
        file = FileContents(destination="icons/a.svg", source_url="https://cdn.test/a.svg")

        result = await downloader.download_file(file)
        await http.aclose()

        assert result.data_file == tmp_path / source_key(file.source_url) / "icons" / "a.svg"
        assert result.data_file.read_bytes() == b"<svg/>"
        assert result.source_url == file.source_url

    async def test_local_files_pass_through(
        self, tmp_path: Path, idle_http: AsyncApiClient
    ) -> None:
        downloader = HttpFileDownloader(idle_http, tmp_path)
        file = FileContents(destination="colors/x.json", data=b"{}")
        assert await downloader.download_file(file) is file

    async def test_same_destination_from_different_sources(self, tmp_path: Path) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=request.url.path.encode())

        http = make_http(handler)
        downloader = HttpFileDownloader(http, tmp_path)
        first = FileContents(destination="icons/close.svg", source_url="/fileA/close")
        second = FileContents(destination="icons/close.svg", source_url="/fileB/close")

        a = await downloader.download_file(first)
        b = await downloader.download_file(second)
        await http.aclose()

        assert a.data_file != b.data_file
        assert a.data_file.read_bytes() == b"/fileA/close"
        assert b.data_file.read_bytes() == b"/fileB/close"
