"""Resumable batch checkpoint.

Records which configs of a batch completed or failed so an interrupted run
can resume and skip finished work. The checkpoint is persisted after every
change and removed once the batch ends cleanly.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
import json
import logging
import uuid

from pydantic import BaseModel, Field, ValidationError, field_serializer

from swatchr.core.errors import CheckpointPersistenceError
from swatchr.core.io import AbsolutePath, FileSystem

logger = logging.getLogger(__name__)

CHECKPOINT_FILENAME = ".swatchr-batch-checkpoint.json"
DEFAULT_CHECKPOINT_TTL = timedelta(hours=24)


class BatchCheckpoint(BaseModel):
    """Progress record for one batch run.

    A path is never in both ``completed_configs`` and ``failed_configs``:
    completing a path clears its failure, and a completed path stays
    completed even if it is later reported as failed.
    """

    batch_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    requested_paths: list[str]
    completed_configs: set[str] = Field(default_factory=set)
    failed_configs: set[str] = Field(default_factory=set)

    @field_serializer("completed_configs", "failed_configs")
    def _serialize_sorted(self, value: set[str]) -> list[str]:
        return sorted(value)

    @classmethod
    def create(cls, requested_paths: Iterable[str]) -> BatchCheckpoint:
        return cls(requested_paths=list(requested_paths))

    def is_expired(
        self, now: datetime | None = None, ttl: timedelta = DEFAULT_CHECKPOINT_TTL
    ) -> bool:
        current = now or datetime.now(UTC)
        started = self.started_at
        if started.tzinfo is None:
            started = started.replace(tzinfo=UTC)
        return current - started > ttl

    def matches_paths(self, paths: Iterable[str]) -> bool:
        """True when ``paths`` is the same set of configs, in any order."""
        return set(self.requested_paths) == set(paths)

    def mark_completed(self, path: str) -> None:
        self.completed_configs.add(path)
        self.failed_configs.discard(path)

    def mark_failed(self, path: str) -> None:
        if path not in self.completed_configs:
            self.failed_configs.add(path)

    def is_completed(self, path: str) -> bool:
        return path in self.completed_configs

    def pending_paths(self, all_paths: Sequence[str]) -> list[str]:
        """Paths still to run, in input order (failed paths are retried)."""
        return [p for p in all_paths if p not in self.completed_configs]

    @property
    def remaining_count(self) -> int:
        return max(0, len(set(self.requested_paths) - self.completed_configs))


class CheckpointStore:
    """Reads and writes the checkpoint file in a directory (usually the cwd)."""

    def __init__(self, fs: FileSystem, directory: AbsolutePath) -> None:
        self.fs = fs
        self.path = fs.join(directory, CHECKPOINT_FILENAME)

    async def load(self) -> BatchCheckpoint | None:
        """Return the stored checkpoint, or None if absent or unreadable."""
        if not await self.fs.exists(self.path):
            return None
        try:
            return BatchCheckpoint.model_validate_json(await self.fs.read_text(self.path))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable checkpoint {self.path}: {e}")
            return None

    async def save(self, checkpoint: BatchCheckpoint) -> None:
        payload = json.dumps(checkpoint.model_dump(mode="json"), indent=2)
        try:
            await self.fs.write_text(self.path, payload)
        except OSError as e:
            raise CheckpointPersistenceError(f"Failed to save checkpoint {self.path}: {e}") from e

    async def delete(self) -> None:
        """Remove the checkpoint file; a missing file is not an error."""
        try:
            await self.fs.remove(self.path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise CheckpointPersistenceError(
                f"Failed to delete checkpoint {self.path}: {e}"
            ) from e


async def resolve_checkpoint(
    store: CheckpointStore,
    requested_paths: Sequence[str],
    *,
    resume: bool = True,
    now: datetime | None = None,
    ttl: timedelta = DEFAULT_CHECKPOINT_TTL,
) -> tuple[BatchCheckpoint, bool]:
    """Reuse a valid checkpoint or start a fresh one.

    A stored checkpoint is reused only when resuming is requested, it has not
    expired and it covers exactly ``requested_paths``. Otherwise any stale
    file is deleted and a new checkpoint is created (not yet saved).

    Returns:
        (checkpoint, resumed)
    """
    existing = await store.load()
    if existing is not None:
        if resume and not existing.is_expired(now, ttl) and existing.matches_paths(requested_paths):
            logger.info(
                f"Resuming batch {existing.batch_id}: "
                f"{len(existing.completed_configs)} completed, {existing.remaining_count} remaining"
            )
            return existing, True
        if not resume:
            logger.info(f"Discarding checkpoint {existing.batch_id} (resume not requested)")
        elif existing.is_expired(now, ttl):
            logger.info(f"Discarding expired checkpoint from {existing.started_at.isoformat()}")
        else:
            logger.info("Discarding checkpoint for a different set of configs")
        await store.delete()

    return BatchCheckpoint.create(requested_paths), False


class CheckpointManager:
    """Single writer for the batch checkpoint.

    Concurrent config tasks report outcomes through ``record``; updates are
    serialized with a lock and persisted before the lock is released, so the
    file on disk always reflects every outcome reported so far.
    """

    def __init__(self, checkpoint: BatchCheckpoint, store: CheckpointStore) -> None:
        self.checkpoint = checkpoint
        self.store = store
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        async with self._lock:
            await self.store.save(self.checkpoint)

    async def record(self, path: str, success: bool) -> None:
        async with self._lock:
            if success:
                self.checkpoint.mark_completed(path)
            else:
                self.checkpoint.mark_failed(path)
            await self.store.save(self.checkpoint)

    async def finish(self) -> bool:
        """Delete the checkpoint if no config failed. Returns True when deleted."""
        async with self._lock:
            if self.checkpoint.failed_configs:
                logger.info(
                    f"Keeping checkpoint {self.store.path}: "
                    f"{len(self.checkpoint.failed_configs)} config(s) failed"
                )
                return False
            await self.store.delete()
            return True
