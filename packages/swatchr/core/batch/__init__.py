"""Batch export of many configs in one run.

Configs share one design API client, one download queue, one pre-fetched
context and one tracking cache; progress is checkpointed so an interrupted
batch can resume.
"""

from swatchr.core.batch.checkpoint import (
    CHECKPOINT_FILENAME,
    DEFAULT_CHECKPOINT_TTL,
    BatchCheckpoint,
    CheckpointManager,
    CheckpointStore,
    resolve_checkpoint,
)
from swatchr.core.batch.context import (
    BatchContext,
    BatchSharedState,
    batch_scope,
    current_batch_state,
    with_batch_context,
)
from swatchr.core.batch.discovery import ConfigDiscovery
from swatchr.core.batch.executor import BatchExecutor, ConfigHandler
from swatchr.core.batch.handler import AssetExportHandler, select_components
from swatchr.core.batch.prefetch import ComponentPreFetcher, FileVersionPreFetcher, PreFetchResult
from swatchr.core.batch.report import render_batch_summary
from swatchr.core.batch.result import BatchResult, ConfigFile, ConfigResult, ExportStats
from swatchr.core.batch.runner import BatchOptions, BatchRunner

__all__ = [
    # Checkpoint
    "CHECKPOINT_FILENAME",
    "DEFAULT_CHECKPOINT_TTL",
    "BatchCheckpoint",
    "CheckpointManager",
    "CheckpointStore",
    "resolve_checkpoint",
    # Shared context
    "BatchContext",
    "BatchSharedState",
    "batch_scope",
    "current_batch_state",
    "with_batch_context",
    "ComponentPreFetcher",
    "FileVersionPreFetcher",
    "PreFetchResult",
    # Execution
    "ConfigDiscovery",
    "BatchExecutor",
    "ConfigHandler",
    "AssetExportHandler",
    "select_components",
    "BatchOptions",
    "BatchRunner",
    # Results
    "BatchResult",
    "ConfigFile",
    "ConfigResult",
    "ExportStats",
    "render_batch_summary",
]
