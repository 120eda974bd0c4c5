"""Change-detection caching for swatchr.

Fingerprints design nodes, tracks the last exported version per file and
decides which units of work can be skipped.
"""

from swatchr.core.caching.change_detection import (
    ChangeDetectionResult,
    ChangeDetector,
    GranularCacheStats,
)
from swatchr.core.caching.fingerprint import (
    FNV1aHasher,
    canonical_json,
    canonical_node,
    fnv1a_64,
    fnv1a_64_hex,
    hash_node,
    normalize_float,
)
from swatchr.core.caching.models import (
    CURRENT_SCHEMA_VERSION,
    DEFAULT_CACHE_FILENAME,
    CachedFileInfo,
    SharedTrackingCache,
    TrackingCache,
)
from swatchr.core.caching.store import TrackingCacheStore
from swatchr.core.caching.versions import VersionCheckKind, VersionCheckResult, VersionTracker

__all__ = [
    # Fingerprinting
    "FNV1aHasher",
    "fnv1a_64",
    "fnv1a_64_hex",
    "hash_node",
    "canonical_node",
    "canonical_json",
    "normalize_float",
    # Cache model and persistence
    "CURRENT_SCHEMA_VERSION",
    "DEFAULT_CACHE_FILENAME",
    "CachedFileInfo",
    "TrackingCache",
    "SharedTrackingCache",
    "TrackingCacheStore",
    # Detection
    "ChangeDetector",
    "ChangeDetectionResult",
    "GranularCacheStats",
    "VersionTracker",
    "VersionCheckKind",
    "VersionCheckResult",
]
