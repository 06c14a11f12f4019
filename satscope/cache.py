"""
SatScope Cache
==============
Deterministic cache keys and an in-memory TTL store.

The key is based on the normalized, order-independent parts of a plan:
- AOI (location name or bounding box)
- Time range
- Datasets (sorted, so input order does not matter)
- Analysis type

The store is bounded by entry count and a fixed TTL. Eviction removes the
entry with the oldest creation time (insertion recency, not access recency).
State lives for the process lifetime only; a multi-instance deployment should
replace this with a shared store such as Redis.
"""

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

from .plan import AnalysisPlan

logger = logging.getLogger(__name__)

ANALYSIS_NAMESPACE = "analysis"
EXPLANATION_NAMESPACE = "explanation"
KEY_HASH_LENGTH = 16

T = TypeVar("T")


# =============================================================================
# KEYS
# =============================================================================

def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:KEY_HASH_LENGTH]


def normalize_plan(plan: AnalysisPlan) -> Dict[str, Any]:
    """The subset of a plan that identifies a cacheable request."""
    location = plan.location if isinstance(plan.location, str) else [float(v) for v in plan.location]
    return {
        "analysisType": plan.analysis_type.value,
        "datasets": sorted(d.value for d in plan.dataset_ids),
        "timeRange": {"start": plan.time_range.start, "end": plan.time_range.end},
        "location": location,
    }


def generate_cache_key(plan: AnalysisPlan) -> str:
    """Deterministic, fixed-length key for an analysis plan."""
    canonical = json.dumps(normalize_plan(plan), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return f"{ANALYSIS_NAMESPACE}:{_digest(canonical)}"


def generate_explanation_cache_key(result_key: str, query: str) -> str:
    """Key for an explanation of a cached result in the context of a user query."""
    return f"{EXPLANATION_NAMESPACE}:{_digest(f'{result_key}:{query}')}"


def parse_cache_key(key: str) -> Tuple[str, str]:
    """Split a key into (namespace, hash)."""
    namespace, _, digest = key.partition(":")
    return namespace, digest


# =============================================================================
# STORE
# =============================================================================

@dataclass
class CacheEntry(Generic[T]):
    value: T
    created_at: float
    hits: int = 0


class CacheStore(Generic[T]):
    """
    Bounded in-memory store with TTL expiry detected at read time.

    Operations are serialized with a lock so threads inside one process can
    share an instance.
    """

    def __init__(
        self,
        max_entries: int = 100,
        ttl_seconds: float = 60 * 60,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, entry: CacheEntry[T], now: float) -> bool:
        return now - entry.created_at > self.ttl_seconds

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            now = self._clock()
            if self._expired(entry, now):
                del self._entries[key]
                logger.info(f"[Cache] Expired: {key}")
                return None

            entry.hits += 1
            logger.info(f"[Cache] HIT: {key} (hits: {entry.hits}, age: {now - entry.created_at:.0f}s)")
            return entry.value

    def set(self, key: str, value: T) -> None:
        with self._lock:
            if key in self._entries:
                # Re-inserting moves the key to the end of insertion order
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                self._evict_oldest()

            self._entries[key] = CacheEntry(value=value, created_at=self._clock())
            logger.info(f"[Cache] SET: {key} (size: {len(self._entries)}/{self.max_entries})")

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._expired(entry, self._clock()):
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            deleted = self._entries.pop(key, None) is not None
        if deleted:
            logger.info(f"[Cache] DELETE: {key}")
        return deleted

    def clear(self) -> None:
        with self._lock:
            size = len(self._entries)
            self._entries.clear()
        logger.info(f"[Cache] CLEAR: Removed {size} entries")

    def stats(self) -> Dict[str, float]:
        with self._lock:
            now = self._clock()
            size = len(self._entries)
            total_hits = sum(e.hits for e in self._entries.values())
            total_age = sum(now - e.created_at for e in self._entries.values())
        return {
            "size": size,
            "maxSize": self.max_entries,
            "totalHits": total_hits,
            "avgHits": total_hits / size if size else 0,
            "avgAgeSeconds": total_age / size if size else 0,
        }

    def _evict_oldest(self) -> None:
        # min() keeps the first of equal timestamps, i.e. the earliest inserted
        oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
        entry = self._entries.pop(oldest_key)
        logger.info(f"[Cache] EVICTED: {oldest_key} (age: {self._clock() - entry.created_at:.0f}s)")
