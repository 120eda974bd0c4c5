"""Shared pytest fixtures for swatchr tests.

The design API and the file downloader are replaced by in-memory fakes that
record every call, so tests can assert on request counts and ordering.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from swatchr.core.api.design import (
    Component,
    ComponentsEndpoint,
    ContainingFrame,
    Endpoint,
    FileMetadata,
    FileMetadataEndpoint,
    FileVariables,
    ImageUrlsEndpoint,
    NodeDocument,
    NodesEndpoint,
    VariablesEndpoint,
)
from swatchr.core.io import FakeFileSystem
from swatchr.core.pipeline import FileContents

# ============================================================================
# Builders
# ============================================================================


def make_component(node_id: str, name: str, frame: str | None = "Icons") -> Component:
    return Component(
        key=f"key-{node_id}",
        node_id=node_id,
        name=name,
        containing_frame=ContainingFrame(name=frame),
    )


def make_node(name: str, color: float = 0.5, **extra: Any) -> NodeDocument:
    return {
        "id": extra.pop("id", "0:0"),
        "name": name,
        "type": "COMPONENT",
        "fills": [{"type": "SOLID", "color": {"r": color, "g": 0.0, "b": 0.0, "a": 1.0}}],
        **extra,
    }


# ============================================================================
# Fakes
# ============================================================================


class FakeDesignClient:
    """In-memory DesignClient.

    Populate ``metadata`` / ``components`` / ``nodes`` / ``variables`` per file
    id. ``failures`` maps an endpoint class to the exception to raise.
    """

    def __init__(self) -> None:
        self.metadata: dict[str, FileMetadata] = {}
        self.components: dict[str, list[Component]] = {}
        self.nodes: dict[str, dict[str, NodeDocument]] = {}
        self.variables: dict[str, FileVariables] = {}
        self.missing_renders: set[str] = set()
        self.failures: dict[type, Exception] = {}
        self.calls: list[Endpoint[Any]] = []
        self.delay_s = 0.0

    def add_file(
        self,
        file_id: str,
        version: str,
        components: list[Component] | None = None,
        name: str | None = None,
    ) -> None:
        self.metadata[file_id] = FileMetadata(name=name or f"File {file_id}", version=version)
        self.components[file_id] = list(components or [])

    def calls_of(self, endpoint_type: type) -> list[Any]:
        return [c for c in self.calls if isinstance(c, endpoint_type)]

    async def fetch(self, endpoint: Endpoint[Any]) -> Any:
        self.calls.append(endpoint)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        failure = self.failures.get(type(endpoint))
        if failure is not None:
            raise failure

        if isinstance(endpoint, FileMetadataEndpoint):
            return self.metadata[endpoint.file_id]
        if isinstance(endpoint, ComponentsEndpoint):
            return list(self.components.get(endpoint.file_id, []))
        if isinstance(endpoint, NodesEndpoint):
            docs = self.nodes.get(endpoint.file_id, {})
            return {n: docs[n] for n in endpoint.node_ids if n in docs}
        if isinstance(endpoint, VariablesEndpoint):
            return self.variables.get(endpoint.file_id, FileVariables())
        if isinstance(endpoint, ImageUrlsEndpoint):
            return {
                n: f"https://cdn.test/{endpoint.file_id}/{n}@{endpoint.scale:g}.{endpoint.format}"
                for n in endpoint.node_ids
                if n not in self.missing_renders
            }
        raise AssertionError(f"Unexpected endpoint: {endpoint!r}")


class FakeDownloader:
    """FileDownloader that resolves files inline and tracks concurrency."""

    def __init__(self, delay_s: float = 0.0) -> None:
        self.delay_s = delay_s
        self.downloaded: list[str] = []
        self.fail_urls: set[str] = set()
        self.active = 0
        self.peak_active = 0

    async def download_file(self, file: FileContents) -> FileContents:
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay_s:
                await asyncio.sleep(self.delay_s)
            if file.source_url in self.fail_urls:
                raise RuntimeError(f"download failed: {file.source_url}")
            self.downloaded.append(file.source_url or "")
            return file.model_copy(update={"data": f"bytes:{file.source_url}".encode()})
        finally:
            self.active -= 1


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def fake_fs() -> FakeFileSystem:
    """Provide fresh FakeFileSystem instance."""
    return FakeFileSystem()


@pytest.fixture
def design_client() -> FakeDesignClient:
    """Provide an empty in-memory design API."""
    return FakeDesignClient()


@pytest.fixture
def downloader() -> FakeDownloader:
    """Provide a downloader that never touches the network."""
    return FakeDownloader()


@pytest.fixture
def icon_components() -> list[Component]:
    """Three icons in the Icons frame plus one stray component elsewhere."""
    return [
        make_component("1:1", "arrow-left"),
        make_component("1:2", "arrow-right"),
        make_component("1:3", "close"),
        make_component("2:1", "hero", frame="Illustrations"),
    ]
