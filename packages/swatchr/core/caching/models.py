"""Change-detection cache models.

The cache maps each design file to the version last exported and, when
granular tracking is on, to a fingerprint per exported node:

    {
        "schema_version": 2,
        "files": {
            "<file_id>": {
                "version": "1234567890",
                "last_export": "2026-01-29T12:00:00+00:00",
                "file_name": "Icons",
                "node_hashes": {"12:34": "af63dc4c8601ec8c"}
            }
        }
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from swatchr.core.io.models import AbsolutePath

CURRENT_SCHEMA_VERSION = 2
DEFAULT_CACHE_FILENAME = ".swatchr-cache.json"


def utc_now() -> datetime:
    return datetime.now(UTC)


class CachedFileInfo(BaseModel):
    """Per-file cache entry."""

    model_config = ConfigDict(extra="ignore")

    version: str = Field(default="", description="Upstream file version at last export")
    last_export: datetime = Field(default_factory=utc_now)
    file_name: str | None = None
    node_hashes: dict[str, str] | None = Field(
        default=None, description="node_id -> 16-char FNV-1a hex fingerprint"
    )


class TrackingCache(BaseModel):
    """In-memory change-detection cache.

    Mutating helpers (``record``, ``update_*``, ``clear_*``) are meant for the
    single writer that owns the cache during a run. ``merge`` never mutates
    either side.
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: int = CURRENT_SCHEMA_VERSION
    files: dict[str, CachedFileInfo] = Field(default_factory=dict)

    # File-level version tracking

    def cached_version(self, file_id: str) -> str | None:
        info = self.files.get(file_id)
        return info.version if info is not None else None

    def needs_export(self, file_id: str, current_version: str) -> bool:
        """True when the file was never exported or its upstream version moved."""
        return self.cached_version(file_id) != current_version

    def update_file_version(
        self,
        file_id: str,
        version: str,
        file_name: str | None = None,
        *,
        exported_at: datetime | None = None,
    ) -> None:
        """Record a successful export of ``file_id`` at ``version``.

        Existing node hashes are kept; they describe node content, not the
        file version.
        """
        existing = self.files.get(file_id)
        self.files[file_id] = CachedFileInfo(
            version=version,
            last_export=exported_at or utc_now(),
            file_name=file_name if file_name is not None else (existing and existing.file_name),
            node_hashes=existing.node_hashes if existing else None,
        )

    # Node-level fingerprints

    def lookup(self, file_id: str, node_id: str) -> str | None:
        info = self.files.get(file_id)
        if info is None or not info.node_hashes:
            return None
        return info.node_hashes.get(node_id)

    def record(self, file_id: str, node_id: str, fingerprint: str) -> None:
        self.update_node_hashes(file_id, {node_id: fingerprint})

    def node_hashes(self, file_id: str) -> dict[str, str]:
        info = self.files.get(file_id)
        return dict(info.node_hashes) if info is not None and info.node_hashes else {}

    def changed_node_ids(self, file_id: str, current_hashes: Mapping[str, str]) -> list[str]:
        """Node ids whose fingerprint is new or differs from the cached one.

        Nodes present in the cache but absent from ``current_hashes`` were
        deleted upstream and are not reported.
        """
        cached = self.node_hashes(file_id)
        return [node_id for node_id, h in current_hashes.items() if cached.get(node_id) != h]

    def update_node_hashes(self, file_id: str, hashes: Mapping[str, str]) -> None:
        """Merge ``hashes`` into the file's node fingerprints (new values win)."""
        if not hashes:
            return
        info = self.files.get(file_id)
        if info is None:
            info = CachedFileInfo()
            self.files[file_id] = info
        merged = dict(info.node_hashes or {})
        merged.update(hashes)
        info.node_hashes = merged

    def clear_node_hashes(self, file_id: str) -> None:
        info = self.files.get(file_id)
        if info is not None:
            info.node_hashes = None

    def clear_all_node_hashes(self) -> None:
        for info in self.files.values():
            info.node_hashes = None

    # Merge

    def merge(self, other: TrackingCache) -> TrackingCache:
        """Return a new cache combining ``self`` and ``other``.

        Files and nodes present on only one side are kept unchanged. For files
        on both sides, ``other``'s version, export time and name win, and node
        fingerprints are merged key-wise with ``other`` winning conflicts.
        """
        merged = self.model_copy(deep=True)
        for file_id, incoming in other.files.items():
            current = merged.files.get(file_id)
            if current is None:
                merged.files[file_id] = incoming.model_copy(deep=True)
                continue
            if current.node_hashes is None and incoming.node_hashes is None:
                hashes = None
            else:
                hashes = {**(current.node_hashes or {}), **(incoming.node_hashes or {})}
            merged.files[file_id] = CachedFileInfo(
                version=incoming.version or current.version,
                last_export=incoming.last_export,
                file_name=incoming.file_name or current.file_name,
                node_hashes=hashes,
            )
        merged.schema_version = CURRENT_SCHEMA_VERSION
        return merged


class SharedTrackingCache(BaseModel):
    """A loaded cache together with the path it persists to."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    cache: TrackingCache
    path: AbsolutePath
