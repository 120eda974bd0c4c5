"""Granular (per-node) change detection.

When a design file's version moves, usually only a handful of its components
actually changed. Each component's node document is fingerprinted and
compared with the cache so unchanged components are skipped.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging

from pydantic import BaseModel, ConfigDict, Field

from swatchr.core.api.design import (
    NODES_BATCH_SIZE,
    Component,
    DesignClient,
    NodeDocument,
    NodesEndpoint,
    batched,
)
from swatchr.core.caching.fingerprint import hash_node
from swatchr.core.caching.models import TrackingCache
from swatchr.core.pipeline.parallel import parallel_map_entries

logger = logging.getLogger(__name__)


class GranularCacheStats(BaseModel):
    """Per-file counts from one change-detection pass."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    changed: int = 0
    skipped: int = 0

    def __add__(self, other: GranularCacheStats) -> GranularCacheStats:
        return GranularCacheStats(
            total=self.total + other.total,
            changed=self.changed + other.changed,
            skipped=self.skipped + other.skipped,
        )


class ChangeDetectionResult(BaseModel):
    """Components that need export, plus the hashes to record after export.

    ``computed_hashes`` covers every component whose node was fetched, not
    only the changed ones, so the cache stays complete after a first run.
    """

    model_config = ConfigDict(frozen=True)

    changed: tuple[Component, ...]
    computed_hashes: dict[str, str] = Field(default_factory=dict)
    stats: GranularCacheStats = Field(default_factory=GranularCacheStats)


class ChangeDetector:
    """Filters components down to the ones whose visual content changed.

    Args:
        client: Design API client (used only for node ids not pre-fetched)
        cache: Tracking cache to compare against (read-only here)
        max_parallel: Concurrent node batch requests
    """

    def __init__(self, client: DesignClient, cache: TrackingCache, max_parallel: int = 4) -> None:
        self.client = client
        self.cache = cache
        self.max_parallel = max_parallel

    async def fetch_nodes(
        self,
        file_id: str,
        node_ids: Sequence[str],
        prefetched: Mapping[str, NodeDocument] | None = None,
    ) -> dict[str, NodeDocument]:
        """Return node documents for ``node_ids``, fetching only what is not pre-fetched.

        Ids the API no longer knows are absent from the result.
        """
        known = dict(prefetched or {})
        missing = [n for n in dict.fromkeys(node_ids) if n not in known]
        if missing:
            logger.debug(
                f"Fetching {len(missing)} node(s) for {file_id} "
                f"({len(known)} pre-fetched, batch size {NODES_BATCH_SIZE})"
            )
            pages = await parallel_map_entries(
                batched(missing),
                lambda ids: self.client.fetch(NodesEndpoint(file_id=file_id, node_ids=ids)),
                self.max_parallel,
            )
            for page in pages:
                known.update(page)
        return {n: known[n] for n in node_ids if n in known}

    async def filter_changed(
        self,
        file_id: str,
        components: Sequence[Component],
        prefetched_nodes: Mapping[str, NodeDocument] | None = None,
    ) -> ChangeDetectionResult:
        if not components:
            return ChangeDetectionResult(changed=())

        node_ids = [c.node_id for c in components]
        documents = await self.fetch_nodes(file_id, node_ids, prefetched_nodes)
        hashes = {node_id: hash_node(doc) for node_id, doc in documents.items()}
        changed_ids = set(self.cache.changed_node_ids(file_id, hashes))

        # A component without a node document cannot be fingerprinted; export it.
        changed = tuple(
            c for c in components if c.node_id in changed_ids or c.node_id not in hashes
        )
        stats = GranularCacheStats(
            total=len(components),
            changed=len(changed),
            skipped=len(components) - len(changed),
        )
        logger.info(
            f"Granular cache for {file_id}: {stats.changed} changed, {stats.skipped} unchanged"
        )
        return ChangeDetectionResult(changed=changed, computed_hashes=hashes, stats=stats)
