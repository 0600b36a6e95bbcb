"""
cache.py — In-process snapshot cache for aggregated disaster records.

Owned by one DisasterFeedAggregator instance; entries are keyed by
``md5("<source-set>-<params>")`` and hold the merged record list with the
time it was captured. Expired entries are kept so a failed refresh can
still serve the last good snapshot, and :meth:`SnapshotCache.defer` lets
that stale entry be served for a short window before the next refetch.
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from backend.app.feeds.models import DisasterRecord


@dataclass
class CacheEntry:
    data: List[DisasterRecord]
    timestamp: float          # clock() reading at capture
    captured_at: datetime     # wall-clock time, for reporting
    retry_at: Optional[float] = None   # clock() reading before which a stale entry is served


class SnapshotCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(source: str, params: str) -> str:
        return hashlib.md5(f"{source}-{params}".encode("utf-8")).hexdigest()

    def get(self, key: str) -> Optional[CacheEntry]:
        """Entry for ``key`` regardless of age."""
        return self._entries.get(key)

    def set(self, key: str, data: List[DisasterRecord]) -> CacheEntry:
        entry = CacheEntry(
            data=data,
            timestamp=self._clock(),
            captured_at=datetime.now(timezone.utc),
        )
        self._entries[key] = entry
        return entry

    def age(self, entry: CacheEntry) -> float:
        return self._clock() - entry.timestamp

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self.age(entry) < self.ttl_seconds

    def defer(self, key: str, seconds: float) -> Optional[CacheEntry]:
        """Keep serving ``key`` as-is for ``seconds`` even if it has expired."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.retry_at = self._clock() + seconds
        return entry

    def retry_in(self, entry: CacheEntry) -> float:
        """Seconds left in the entry's deferral window (0 when none)."""
        if entry.retry_at is None:
            return 0.0
        return max(0.0, entry.retry_at - self._clock())

    def is_servable(self, entry: CacheEntry) -> bool:
        return self.is_fresh(entry) or self.retry_in(entry) > 0

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
