"""Load/save the change-detection cache through the filesystem layer."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from swatchr.core.caching.models import CURRENT_SCHEMA_VERSION, TrackingCache
from swatchr.core.errors import CachePersistenceError
from swatchr.core.io import AbsolutePath, FileSystem

logger = logging.getLogger(__name__)


class TrackingCacheStore:
    """
    Persists TrackingCache as JSON.

    Loading never fails: a missing, unreadable or incompatible file yields an
    empty cache (everything is treated as changed). Saving is atomic and
    raises CachePersistenceError on failure, since a lost cache silently
    forces a full re-export on the next run.
    """

    def __init__(self, fs: FileSystem) -> None:
        self.fs = fs

    async def load(self, path: AbsolutePath) -> TrackingCache:
        if not await self.fs.exists(path):
            logger.debug(f"No cache at {path}, starting empty")
            return TrackingCache()

        try:
            raw = json.loads(await self.fs.read_text(path))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cache {path}: {e}")
            return TrackingCache()

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed cache {path}: top level is not an object")
            return TrackingCache()

        version = raw.get("schema_version", 1)
        if not isinstance(version, int) or version > CURRENT_SCHEMA_VERSION:
            logger.warning(
                f"Ignoring cache {path} with unsupported schema_version={version!r}"
            )
            return TrackingCache()
        if version < CURRENT_SCHEMA_VERSION:
            # v1 entries carry no node hashes; file versions migrate as-is.
            logger.info(
                f"Migrating cache {path} from schema v{version} to v{CURRENT_SCHEMA_VERSION}"
            )
            raw["schema_version"] = CURRENT_SCHEMA_VERSION

        try:
            return TrackingCache.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid cache {path}: {e.error_count()} validation error(s)")
            return TrackingCache()

    async def save(self, cache: TrackingCache, path: AbsolutePath) -> None:
        payload = cache.model_dump_json(indent=2, exclude_none=True)
        try:
            await self.fs.write_text(path, payload)
        except OSError as e:
            raise CachePersistenceError(f"Failed to save cache to {path}: {e}") from e
        logger.debug(f"Saved cache for {len(cache.files)} file(s) to {path}")
