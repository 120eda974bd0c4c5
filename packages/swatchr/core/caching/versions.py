"""File-level version tracking.

The cheapest skip: if none of a config's design files changed version since
the last export, nothing in the config needs to run.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
import logging

from pydantic import BaseModel, ConfigDict, Field

from swatchr.core.api.design import DesignClient, FileMetadata, FileMetadataEndpoint
from swatchr.core.caching.models import TrackingCache
from swatchr.core.pipeline.parallel import parallel_map_entries

logger = logging.getLogger(__name__)


class VersionCheckKind(str, Enum):
    NO_CHANGES = "no_changes"
    EXPORT_NEEDED = "export_needed"
    PARTIAL_CHANGES = "partial_changes"


class VersionCheckResult(BaseModel):
    """Outcome of comparing current file versions with the cache.

    Attributes:
        kind: Overall verdict
        versions: Current metadata for every checked file
        changed_file_ids: Files whose version differs from the cache (all files when forced)
    """

    model_config = ConfigDict(frozen=True)

    kind: VersionCheckKind
    versions: dict[str, FileMetadata] = Field(default_factory=dict)
    changed_file_ids: tuple[str, ...] = ()

    @property
    def needs_export(self) -> bool:
        return self.kind is not VersionCheckKind.NO_CHANGES


class VersionTracker:
    """Compares upstream file versions with the tracking cache.

    Pre-fetched metadata (from the batch-wide pre-fetch) is used when
    available; only missing files are fetched from the API.
    """

    def __init__(
        self,
        client: DesignClient,
        cache: TrackingCache,
        max_parallel: int = 4,
    ) -> None:
        self.client = client
        self.cache = cache
        self.max_parallel = max_parallel

    async def fetch_versions(
        self,
        file_ids: Sequence[str],
        prefetched: Mapping[str, FileMetadata] | None = None,
    ) -> dict[str, FileMetadata]:
        known = dict(prefetched or {})
        missing = [f for f in dict.fromkeys(file_ids) if f not in known]
        if missing:
            fetched = await parallel_map_entries(
                missing,
                lambda file_id: self.client.fetch(FileMetadataEndpoint(file_id=file_id)),
                self.max_parallel,
            )
            known.update(zip(missing, fetched, strict=True))
        return {f: known[f] for f in file_ids}

    async def check_for_changes(
        self,
        file_ids: Sequence[str],
        *,
        force: bool = False,
        prefetched: Mapping[str, FileMetadata] | None = None,
    ) -> VersionCheckResult:
        versions = await self.fetch_versions(file_ids, prefetched)

        if force:
            changed = tuple(versions)
        else:
            changed = tuple(
                file_id
                for file_id, meta in versions.items()
                if self.cache.needs_export(file_id, meta.version)
            )

        if not changed:
            kind = VersionCheckKind.NO_CHANGES
        elif len(changed) == len(versions):
            kind = VersionCheckKind.EXPORT_NEEDED
        else:
            kind = VersionCheckKind.PARTIAL_CHANGES

        logger.debug(
            f"Version check for {len(versions)} file(s): {kind.value}, changed={list(changed)}"
        )
        return VersionCheckResult(kind=kind, versions=versions, changed_file_ids=changed)
