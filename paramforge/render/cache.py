"""PreviewCache — bounded, tier-partitioned LRU cache of render results.

Keys are ``sha256(tier | canonical(snapshot))`` so value-equal snapshots
(``50`` and ``50.0``) hit the same entry.  Scalars keep their JSON type, so
the string ``"7"`` never matches the number ``7`` or the string ``"007"``;
form values are coerced to their parameter type before they get here.
Each tier has its own partition with its own capacity; a hit refreshes
recency but never mutates the stored entry.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import OrderedDict
from typing import Any

from paramforge.config import DEFAULT_CACHE_CAPACITY
from paramforge.render.state import RenderResult
from paramforge.schema.scalars import is_number

logger = logging.getLogger(__name__)


def _canonical_value(value: Any) -> Any:
    if isinstance(value, (bool, str)) or value is None:
        return value
    if is_number(value):
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value
    if isinstance(value, (list, tuple)):
        return [_canonical_value(v) for v in value]
    if isinstance(value, dict):
        return canonicalize(value)
    return str(value)


def canonicalize(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Return *snapshot* with sorted keys and canonical scalar forms."""
    return {key: _canonical_value(snapshot[key]) for key in sorted(snapshot)}


def cache_key(tier: str, snapshot: dict[str, Any]) -> str:
    """SHA-256 hex digest identifying (*tier*, *snapshot*)."""
    payload = json.dumps(canonicalize(snapshot), separators=(",", ":"), sort_keys=True)
    return hashlib.sha256(f"{tier}|{payload}".encode("utf-8")).hexdigest()


class PreviewCache:
    """LRU cache of :class:`RenderResult` objects, one partition per tier.

    Parameters
    ----------
    capacity:
        Maximum entries per tier partition.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.capacity = capacity
        self._partitions: dict[str, OrderedDict[str, RenderResult]] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    async def get(self, tier: str, key: str) -> RenderResult | None:
        partition = self._partitions.get(tier)
        if partition is None or key not in partition:
            self.misses += 1
            return None
        partition.move_to_end(key)
        self.hits += 1
        return partition[key]

    async def put(self, tier: str, key: str, result: RenderResult) -> None:
        partition = self._partitions.setdefault(tier, OrderedDict())
        partition[key] = result
        partition.move_to_end(key)
        while len(partition) > self.capacity:
            evicted, _ = partition.popitem(last=False)
            self.evictions += 1
            logger.debug("Evicted %s cache entry %s", tier, evicted[:12])

    def contains(self, tier: str, key: str) -> bool:
        return key in self._partitions.get(tier, {})

    def keys(self, tier: str) -> list[str]:
        """Keys of *tier*, least recently used first."""
        return list(self._partitions.get(tier, {}))

    def clear(self, tier: str | None = None) -> None:
        if tier is None:
            self._partitions.clear()
        else:
            self._partitions.pop(tier, None)

    def stats(self) -> dict[str, Any]:
        return {
            "entries": len(self),
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }

    def __len__(self) -> int:
        return sum(len(p) for p in self._partitions.values())
