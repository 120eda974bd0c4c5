"""Batch-start pre-fetching of shared design data."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
import logging
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from swatchr.core.api.design import (
    Component,
    ComponentsEndpoint,
    DesignClient,
    FileMetadata,
    FileMetadataEndpoint,
    NodeDocument,
    NodesEndpoint,
    batched,
)
from swatchr.core.api.http import ApiError
from swatchr.core.batch.context import BatchContext, BatchSharedState, with_batch_context
from swatchr.core.caching.models import TrackingCache
from swatchr.core.pipeline.parallel import parallel_map_entries

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PreFetchResult(BaseModel):
    """Data fetched up front; empty when pre-fetching was skipped or failed."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    versions: dict[str, FileMetadata] = Field(default_factory=dict)
    components: dict[str, tuple[Component, ...]] = Field(default_factory=dict)
    nodes: dict[str, dict[str, NodeDocument]] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.versions or self.components or self.nodes)

    def apply_to(self, context: BatchContext) -> BatchContext:
        return context.with_versions(self.versions).with_components(self.components).with_nodes(
            self.nodes
        )


class FileVersionPreFetcher:
    """Fetches metadata, components and nodes for every file of a batch once.

    Two phases keep the pre-fetch cheap on warm runs:

    1. File metadata for every unique file (small payloads).
    2. Component listings only for files whose version moved since the
       cached export (all files when there is no cache), and, for granular
       caching, the node documents of those components.

    Any failure is logged and yields an empty result; configs then fetch
    what they need on demand.
    """

    def __init__(self, client: DesignClient, max_parallel: int = 4) -> None:
        self.client = client
        self.max_parallel = max_parallel

    async def prefetch(
        self,
        file_ids: Sequence[str],
        cache: TrackingCache | None = None,
        *,
        include_nodes: bool = False,
    ) -> PreFetchResult:
        unique_ids = list(dict.fromkeys(file_ids))
        if not unique_ids:
            return PreFetchResult()

        logger.info(f"Pre-fetching {len(unique_ids)} unique design file(s)")
        try:
            return await self._prefetch(unique_ids, cache, include_nodes)
        except ApiError as e:
            logger.warning(f"Pre-fetch failed, configs will fetch on demand: {e}")
            return PreFetchResult()

    async def _prefetch(
        self, file_ids: list[str], cache: TrackingCache | None, include_nodes: bool
    ) -> PreFetchResult:
        metas = await parallel_map_entries(
            file_ids,
            lambda file_id: self.client.fetch(FileMetadataEndpoint(file_id=file_id)),
            self.max_parallel,
        )
        versions = dict(zip(file_ids, metas, strict=True))

        changed = [
            file_id
            for file_id, meta in versions.items()
            if cache is None or cache.needs_export(file_id, meta.version)
        ]
        logger.info(f"{len(changed)} of {len(file_ids)} file(s) changed since last export")
        if not changed:
            return PreFetchResult(versions=versions)

        listings = await parallel_map_entries(
            changed,
            lambda file_id: self.client.fetch(ComponentsEndpoint(file_id=file_id)),
            self.max_parallel,
        )
        components = {f: tuple(items) for f, items in zip(changed, listings, strict=True)}

        nodes: dict[str, dict[str, NodeDocument]] = {}
        if include_nodes:
            for file_id, items in components.items():
                nodes[file_id] = await self._fetch_nodes(file_id, [c.node_id for c in items])

        return PreFetchResult(versions=versions, components=components, nodes=nodes)

    async def _fetch_nodes(self, file_id: str, node_ids: list[str]) -> dict[str, NodeDocument]:
        if not node_ids:
            return {}
        pages = await parallel_map_entries(
            batched(node_ids),
            lambda chunk: self.client.fetch(NodesEndpoint(file_id=file_id, node_ids=chunk)),
            self.max_parallel,
        )
        docs: dict[str, NodeDocument] = {}
        for page in pages:
            docs.update(page)
        return docs


class ComponentPreFetcher:
    """Ensures component listings are in the batch context before running code."""

    @staticmethod
    async def with_prefetched_components(
        client: DesignClient,
        file_ids: Sequence[str],
        body: Callable[[BatchSharedState], Awaitable[T]],
    ) -> T:
        """Run ``body`` with components for ``file_ids`` available in its state.

        Inside a batch the ambient state is enriched (other configs benefit);
        outside one, a transient state is used for this call only.
        """

        async def run(state: BatchSharedState) -> T:
            await state.ensure_components(file_ids)
            return await body(state)

        return await with_batch_context(run, client=client)
