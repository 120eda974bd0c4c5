"""Batch driver: discovery, checkpointing, pre-fetch, execution and cache update."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from swatchr.core.api.design import DesignClient
from swatchr.core.batch.checkpoint import CheckpointManager, CheckpointStore, resolve_checkpoint
from swatchr.core.batch.context import BatchContext, BatchSharedState, batch_scope
from swatchr.core.batch.discovery import ConfigDiscovery
from swatchr.core.batch.executor import BatchExecutor
from swatchr.core.batch.handler import AssetExportHandler
from swatchr.core.batch.prefetch import FileVersionPreFetcher
from swatchr.core.batch.result import BatchResult, ConfigFile, ConfigResult
from swatchr.core.caching.models import SharedTrackingCache, TrackingCache
from swatchr.core.caching.store import TrackingCacheStore
from swatchr.core.config.loader import load_export_config
from swatchr.core.config.models import AppConfig, ExportConfig
from swatchr.core.io import AbsolutePath, FileSystem, absolute_path
from swatchr.core.pipeline.download_queue import FileDownloader, SharedDownloadQueue

logger = logging.getLogger(__name__)


class BatchOptions(BaseModel):
    """Knobs for one batch run (app config plus CLI overrides)."""

    model_config = ConfigDict(frozen=True)

    max_parallel_configs: int = Field(default=3, ge=1)
    max_parallel_entries: int = Field(default=5, ge=1)
    max_concurrent_downloads: int = Field(default=20, ge=1)
    fail_fast: bool = False
    cache_enabled: bool = True
    granular_cache: bool = False
    force: bool = False
    cache_path: Path = Path(".swatchr-cache.json")
    checkpoint_ttl_hours: float = Field(default=24.0, gt=0)

    @classmethod
    def from_app_config(cls, app: AppConfig, **overrides: object) -> BatchOptions:
        """Build options from app settings; ``None`` overrides are ignored."""
        values: dict[str, object] = {
            "max_parallel_configs": app.max_parallel_configs,
            "max_parallel_entries": app.max_parallel_entries,
            "max_concurrent_downloads": app.max_concurrent_downloads,
            "cache_enabled": app.cache_enabled,
            "granular_cache": app.granular_cache,
            "cache_path": app.cache_path,
            "checkpoint_ttl_hours": app.checkpoint_ttl_hours,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)

    @property
    def checkpoint_ttl(self) -> timedelta:
        return timedelta(hours=self.checkpoint_ttl_hours)


class BatchRunner:
    """Runs a batch of export configs end to end.

    The tracking cache and the checkpoint each have a single writer here:
    configs only report results, and the cache is merged and saved once after
    every config has finished.

    Args:
        client: Design API client shared by every config
        downloader: Resolves remote files for the shared download queue
        fs: Filesystem for cache, checkpoint and outputs
        options: Run settings
        state_dir: Directory holding the checkpoint (defaults to the cwd)

    Example:
        >>> runner = BatchRunner(client, downloader, RealFileSystem(), BatchOptions())
        >>> result = await runner.run([Path("configs/")], resume=True)
        >>> print(result.success_count, result.failure_count)
    """

    def __init__(
        self,
        client: DesignClient,
        downloader: FileDownloader,
        fs: FileSystem,
        options: BatchOptions | None = None,
        state_dir: AbsolutePath | None = None,
    ) -> None:
        self.client = client
        self.downloader = downloader
        self.fs = fs
        self.options = options or BatchOptions()
        self.state_dir = state_dir or absolute_path(Path.cwd())
        self.discovery = ConfigDiscovery()
        self.cache_store = TrackingCacheStore(fs)

    async def run(self, paths: Sequence[Path], resume: bool = True) -> BatchResult:
        started_at = datetime.now(UTC)
        opts = self.options

        configs = self.discovery.discover(paths)
        exports = self._load_exports(configs)

        store = CheckpointStore(self.fs, self.state_dir)
        checkpoint, resumed = await resolve_checkpoint(
            store, [c.key for c in configs], resume=resume, ttl=opts.checkpoint_ttl
        )
        pending = [c for c in configs if not checkpoint.is_completed(c.key)]
        skipped = tuple(c for c in configs if checkpoint.is_completed(c.key))
        if skipped:
            logger.info(f"Skipping {len(skipped)} config(s) completed in a previous run")

        cache: TrackingCache | None = None
        cache_path = absolute_path(opts.cache_path)
        if opts.cache_enabled:
            cache = await self.cache_store.load(cache_path)
            if opts.force:
                logger.info("Forced export: discarding cached node hashes")
                cache.clear_all_node_hashes()

        file_ids = [f for c in pending if c.key in exports for f in exports[c.key].file_ids]
        prefetched = await FileVersionPreFetcher(self.client).prefetch(
            file_ids,
            None if opts.force else cache,
            include_nodes=opts.cache_enabled and opts.granular_cache,
        )
        context = prefetched.apply_to(BatchContext())
        if cache is not None:
            context = context.with_cache(SharedTrackingCache(cache=cache, path=cache_path))

        queue = SharedDownloadQueue(self.downloader, opts.max_concurrent_downloads)
        state = BatchSharedState(context, self.client, queue)
        handler = AssetExportHandler(
            self.fs,
            cache_enabled=opts.cache_enabled,
            granular=opts.granular_cache,
            force=opts.force,
            max_parallel_entries=opts.max_parallel_entries,
        )
        manager = CheckpointManager(checkpoint, store)
        await manager.start()

        async def record(result: ConfigResult) -> None:
            await manager.record(result.config.key, result.success)

        executor = BatchExecutor(max_parallel=opts.max_parallel_configs, fail_fast=opts.fail_fast)
        logger.info(f"Running {len(pending)} config(s), {opts.max_parallel_configs} at a time")
        try:
            with batch_scope(state):
                results = await executor.execute(
                    pending,
                    lambda config, index: handler.process(config, state, index),
                    on_result=record,
                )
        finally:
            await queue.aclose()

        if cache is not None:
            updated = cache.merge(self._cache_update(results, exports))
            await self.cache_store.save(updated, cache_path)

        await manager.finish()
        return BatchResult(
            results=tuple(results),
            skipped_configs=skipped,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            resumed=resumed,
        )

    def _load_exports(self, configs: Sequence[ConfigFile]) -> dict[str, ExportConfig]:
        """Parse valid configs up front for pre-fetching and conflict warnings.

        Invalid configs are still run so that they show up as failures.
        """
        valid = self.discovery.filter_valid(configs)
        exports = {c.key: load_export_config(c.path) for c in valid}
        conflicts = ConfigDiscovery.detect_output_conflicts(
            [(c, exports[c.key]) for c in valid]
        )
        for output_dir, owners in conflicts.items():
            names = ", ".join(c.name for c in owners)
            logger.warning(f"Configs {names} all write to {output_dir}")
        return exports

    @staticmethod
    def _cache_update(
        results: Sequence[ConfigResult], exports: dict[str, ExportConfig]
    ) -> TrackingCache:
        """Collect versions and node hashes reported by successful configs.

        Files also read by a failed config are left out, so that config sees
        them as changed on the next run.
        """
        failed_files = {
            f for r in results if not r.success and r.config.key in exports
            for f in exports[r.config.key].file_ids
        }
        incoming = TrackingCache()
        for result in results:
            if not result.success:
                continue
            for file_id, (version, name) in result.stats.file_versions.items():
                if file_id not in failed_files:
                    incoming.update_file_version(file_id, version, name)
            for file_id, hashes in result.stats.computed_node_hashes.items():
                if file_id not in failed_files:
                    incoming.update_node_hashes(file_id, hashes)
        if failed_files:
            logger.info(f"Not recording {len(failed_files)} file(s) read by failed configs")
        return incoming
