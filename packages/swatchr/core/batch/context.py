"""Run-scoped shared state for batch processing.

Many configs in a batch read the same design files. BatchContext carries
what has already been fetched (file versions, component listings, node
documents) plus the tracking cache, so each remote lookup happens once per
run. BatchSharedState is the single owner of that context: lookups go
through its ``ensure_*`` methods, which fetch only missing keys, collapse
concurrent requests for the same key into one fetch, and merge results
under a lock.

The state is made ambient for the duration of a run with ``batch_scope``;
code deep in a config handler finds it with ``current_batch_state()``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
import logging
from typing import Any, TypeVar

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
from swatchr.core.caching.models import SharedTrackingCache
from swatchr.core.pipeline.download_queue import SharedDownloadQueue
from swatchr.core.pipeline.parallel import parallel_map_entries

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BatchContext(BaseModel):
    """Immutable snapshot of pre-fetched data for one batch run.

    The ``with_*`` methods return a copy with one field enriched; every other
    field is carried over untouched, and existing keys are only replaced by
    newer values for the same key.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    versions: dict[str, FileMetadata] = Field(default_factory=dict)
    components: dict[str, tuple[Component, ...]] = Field(default_factory=dict)
    nodes: dict[str, dict[str, NodeDocument]] = Field(default_factory=dict)
    cache: SharedTrackingCache | None = None

    def with_versions(self, versions: Mapping[str, FileMetadata]) -> BatchContext:
        return self.model_copy(update={"versions": {**self.versions, **versions}})

    def with_components(self, components: Mapping[str, Sequence[Component]]) -> BatchContext:
        merged = dict(self.components)
        merged.update({file_id: tuple(items) for file_id, items in components.items()})
        return self.model_copy(update={"components": merged})

    def with_nodes(self, nodes: Mapping[str, Mapping[str, NodeDocument]]) -> BatchContext:
        merged = {file_id: dict(docs) for file_id, docs in self.nodes.items()}
        for file_id, docs in nodes.items():
            merged.setdefault(file_id, {}).update(docs)
        return self.model_copy(update={"nodes": merged})

    def with_cache(self, cache: SharedTrackingCache) -> BatchContext:
        return self.model_copy(update={"cache": cache})


class BatchSharedState:
    """Owner of the batch context and the run-wide collaborators.

    Args:
        context: Initial (usually pre-fetched) context
        client: Design API client used to fill gaps
        download_queue: Queue shared by every config of the run, if any
        max_parallel: Concurrent fetches per ``ensure_*`` call
    """

    def __init__(
        self,
        context: BatchContext,
        client: DesignClient,
        download_queue: SharedDownloadQueue | None = None,
        max_parallel: int = 4,
    ) -> None:
        self._context = context
        self.client = client
        self.download_queue = download_queue
        self.max_parallel = max_parallel
        self._lock = asyncio.Lock()
        self._in_flight: dict[tuple[str, str], asyncio.Future[None]] = {}

    @property
    def context(self) -> BatchContext:
        return self._context

    async def _ensure(
        self,
        kind: str,
        keys: Iterable[str],
        present: Callable[[BatchContext, str], bool],
        fetch_many: Callable[[list[str]], Awaitable[Mapping[str, Any]]],
        merge: Callable[[BatchContext, Mapping[str, Any]], BatchContext],
    ) -> None:
        """Make sure every key is in the context, fetching each missing key once.

        The first caller to need a key owns its fetch; later callers wait on the
        owner's future and see the owner's error if the fetch fails.
        """
        loop = asyncio.get_running_loop()
        owned: list[str] = []
        waits: list[asyncio.Future[None]] = []
        async with self._lock:
            for key in dict.fromkeys(keys):
                if present(self._context, key):
                    continue
                future = self._in_flight.get((kind, key))
                if future is None:
                    future = loop.create_future()
                    self._in_flight[(kind, key)] = future
                    owned.append(key)
                waits.append(future)

        if owned:
            try:
                fetched = await fetch_many(owned)
            except BaseException as e:
                async with self._lock:
                    for key in owned:
                        future = self._in_flight.pop((kind, key))
                        if isinstance(e, asyncio.CancelledError):
                            future.cancel()
                        else:
                            future.set_exception(e)
                            # Retrieved here; waiters still receive it.
                            future.exception()
                raise
            async with self._lock:
                self._context = merge(self._context, fetched)
                for key in owned:
                    self._in_flight.pop((kind, key)).set_result(None)
            logger.debug(f"Fetched {kind} for {len(owned)} key(s)")

        if waits:
            await asyncio.gather(*(asyncio.shield(f) for f in waits))

    async def ensure_versions(self, file_ids: Sequence[str]) -> dict[str, FileMetadata]:
        async def fetch_many(ids: list[str]) -> dict[str, FileMetadata]:
            metas = await parallel_map_entries(
                ids,
                lambda file_id: self.client.fetch(FileMetadataEndpoint(file_id=file_id)),
                self.max_parallel,
            )
            return dict(zip(ids, metas, strict=True))

        await self._ensure(
            "versions",
            file_ids,
            lambda ctx, key: key in ctx.versions,
            fetch_many,
            lambda ctx, fetched: ctx.with_versions(fetched),
        )
        return {f: self._context.versions[f] for f in file_ids}

    async def ensure_components(
        self,
        file_ids: Sequence[str],
        fetch: Callable[[str], Awaitable[Sequence[Component]]] | None = None,
    ) -> dict[str, tuple[Component, ...]]:
        """Return components for ``file_ids``, fetching only files not yet known.

        Args:
            file_ids: Design files to cover
            fetch: Per-file fetch override (defaults to the components endpoint)
        """
        fetch_one = fetch or (
            lambda file_id: self.client.fetch(ComponentsEndpoint(file_id=file_id))
        )

        async def fetch_many(ids: list[str]) -> dict[str, Sequence[Component]]:
            listings = await parallel_map_entries(ids, fetch_one, self.max_parallel)
            return dict(zip(ids, listings, strict=True))

        await self._ensure(
            "components",
            file_ids,
            lambda ctx, key: key in ctx.components,
            fetch_many,
            lambda ctx, fetched: ctx.with_components(fetched),
        )
        return {f: self._context.components[f] for f in file_ids}

    async def ensure_nodes(self, file_id: str, node_ids: Sequence[str]) -> dict[str, NodeDocument]:
        """Return node documents for ``node_ids`` of one file.

        Ids the API does not return (deleted nodes) are absent from the result.
        """

        async def fetch_many(ids: list[str]) -> dict[str, dict[str, NodeDocument]]:
            pages = await parallel_map_entries(
                batched(ids),
                lambda chunk: self.client.fetch(NodesEndpoint(file_id=file_id, node_ids=chunk)),
                self.max_parallel,
            )
            docs: dict[str, NodeDocument] = {}
            for page in pages:
                docs.update(page)
            return {file_id: docs}

        def merge(ctx: BatchContext, fetched: Mapping[str, Any]) -> BatchContext:
            return ctx.with_nodes(fetched)

        await self._ensure(
            f"nodes:{file_id}",
            node_ids,
            lambda ctx, key: key in ctx.nodes.get(file_id, {}),
            fetch_many,
            merge,
        )
        known = self._context.nodes.get(file_id, {})
        return {n: known[n] for n in node_ids if n in known}


_current_state: ContextVar[BatchSharedState | None] = ContextVar(
    "swatchr_batch_state", default=None
)


def current_batch_state() -> BatchSharedState | None:
    """The ambient batch state, or None outside a batch scope."""
    return _current_state.get()


@contextmanager
def batch_scope(state: BatchSharedState) -> Iterator[BatchSharedState]:
    """Make ``state`` ambient for the enclosed code (and tasks it creates).

    Example:
        >>> with batch_scope(state):
        ...     await executor.execute(configs, handler.process)
    """
    token = _current_state.set(state)
    try:
        yield state
    finally:
        _current_state.reset(token)


async def with_batch_context(
    body: Callable[[BatchSharedState], Awaitable[T]],
    *,
    state: BatchSharedState | None = None,
    client: DesignClient | None = None,
) -> T:
    """Run ``body`` with a batch state.

    Uses ``state`` if given, else the ambient state, else a transient state
    built around ``client`` that lives only for this call.

    Raises:
        ValueError: If no state is available and no client was given
    """
    if state is not None:
        return await body(state)
    ambient = current_batch_state()
    if ambient is not None:
        return await body(ambient)
    if client is None:
        raise ValueError("with_batch_context needs a client outside a batch scope")
    transient = BatchSharedState(BatchContext(), client)
    with batch_scope(transient):
        return await body(transient)
