"""Content fingerprinting for change detection.

FNV-1a (64-bit) is used instead of a cryptographic hash: fingerprints only
need to be stable across runs and platforms, and the occasional collision
costs at most one skipped re-export.
"""

from __future__ import annotations

from collections.abc import Mapping
import json
from typing import Any

FNV_OFFSET_BASIS = 0xCBF29CE484222325
FNV_PRIME = 0x100000001B3
_MASK_64 = 0xFFFFFFFFFFFFFFFF

# Node keys that affect rendered output; everything else (ids, bounds,
# prototype links) changes without a visual difference.
HASHABLE_NODE_KEYS = frozenset(
    {
        "name",
        "type",
        "fills",
        "strokes",
        "strokeWeight",
        "strokeAlign",
        "strokeJoin",
        "strokeCap",
        "effects",
        "opacity",
        "blendMode",
        "clipsContent",
        "rotation",
        "children",
    }
)

FLOAT_PRECISION = 6


class FNV1aHasher:
    """Incremental FNV-1a 64 hasher.

    Example:
        >>> h = FNV1aHasher()
        >>> h.update(b"foo")
        >>> h.update(b"bar")
        >>> h.hexdigest()
        '85944171f73967e8'
    """

    __slots__ = ("_state",)

    def __init__(self, data: bytes = b"") -> None:
        self._state = FNV_OFFSET_BASIS
        if data:
            self.update(data)

    def update(self, data: bytes) -> None:
        h = self._state
        for byte in data:
            h = ((h ^ byte) * FNV_PRIME) & _MASK_64
        self._state = h

    def digest(self) -> int:
        return self._state

    def hexdigest(self) -> str:
        return format(self._state, "016x")


def fnv1a_64(data: bytes) -> int:
    """Compute the FNV-1a 64 hash of ``data``. Empty input yields the offset basis."""
    return FNV1aHasher(data).digest()


def fnv1a_64_hex(data: bytes) -> str:
    """Compute FNV-1a 64 as a 16-character lowercase hex string."""
    return FNV1aHasher(data).hexdigest()


def normalize_float(value: float) -> float:
    """Round to 6 decimal places, folding -0.0 into 0.0.

    The design API returns colors with precision drift between calls
    (0.33333334 vs 0.33333333); both must hash identically.
    """
    rounded = round(value, FLOAT_PRECISION)
    return 0.0 if rounded == 0 else rounded


def _canonical_value(value: Any) -> Any:
    if isinstance(value, bool) or value is None or isinstance(value, (int, str)):
        return value
    if isinstance(value, float):
        return normalize_float(value)
    if isinstance(value, Mapping):
        return {str(k): _canonical_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical_value(v) for v in value]
    return str(value)


def canonical_node(node: Mapping[str, Any]) -> dict[str, Any]:
    """Reduce a node document to its visual properties in canonical form.

    Children are canonicalized recursively and sorted by name, since the API
    does not guarantee sibling order between calls.
    """
    out: dict[str, Any] = {}
    for key in HASHABLE_NODE_KEYS:
        if key not in node or node[key] is None:
            continue
        if key == "children":
            children = [canonical_node(child) for child in node["children"]]
            out[key] = sorted(children, key=lambda c: str(c.get("name", "")))
        else:
            out[key] = _canonical_value(node[key])
    return out


def canonical_json(data: Any) -> str:
    """Serialize to deterministic compact JSON (sorted keys)."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def hash_node(node: Mapping[str, Any]) -> str:
    """Fingerprint a node document's visual content.

    Args:
        node: Raw node document as returned by the nodes endpoint

    Returns:
        16-character lowercase hex FNV-1a hash

    Example:
        >>> hash_node({"name": "a", "id": "1:2"}) == hash_node({"name": "a", "id": "9:9"})
        True
    """
    return fnv1a_64_hex(canonical_json(canonical_node(node)).encode("utf-8"))
