"""
aggregator.py — Merge disaster feeds into one cached, normalised list.

═══════════════════════════════════════════════════════════════════════════
REFRESH CYCLE
═══════════════════════════════════════════════════════════════════════════

    get_disaster_data(force_refresh)
          │
          ├── fresh cache entry (age < TTL) and not forced ──► cached list
          ├── stale entry inside its retry_after window ─────► cached list
          │
          ▼
    ┌─────────────────────┐
    │  1. Fan-out         │  every FeedSource concurrently, each bounded
    │                     │  by fetch_timeout; a failing source gives []
    └─────────┬───────────┘
              │  all sources failed ──► last snapshot (any age), deferred
              │                         for retry_after seconds, or []
              ▼
    ┌─────────────────────┐
    │  2. Merge           │  source order, first occurrence of an id wins
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  3. Curated         │  Punjab / Himachal Pradesh flood entries when
    │     enrichment      │  no merged record covers them
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  4. Geocode         │  one lookup per distinct region/country text,
    │                     │  failures leave coordinates empty
    └─────────┬───────────┘
              ▼
    cache.set(snapshot) ──► snapshot

Concurrent callers that miss the cache while a refresh is running await
that same refresh instead of starting another one.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx

from backend.app.core.config import Settings
from backend.app.feeds import sources
from backend.app.feeds.cache import SnapshotCache
from backend.app.feeds.curated import curated_additions
from backend.app.feeds.geocoder import geocode
from backend.app.feeds.models import DisasterRecord
from backend.app.spatial.geo import Coordinates

logger = logging.getLogger(__name__)

FetchFn = Callable[[httpx.AsyncClient], Awaitable[List[DisasterRecord]]]
GeocodeFn = Callable[[httpx.AsyncClient, str], Awaitable[Optional[Coordinates]]]

CACHE_SOURCE = "disasters"
CACHE_PARAMS = "all"


@dataclass(frozen=True)
class FeedSource:
    name: str
    fetch: FetchFn


def default_sources(settings: Settings) -> List[FeedSource]:
    """ReliefWeb API, GDACS RSS and ReliefWeb updates RSS, in merge order."""
    return [
        FeedSource(
            sources.RELIEFWEB,
            functools.partial(
                sources.fetch_reliefweb,
                url=settings.RELIEFWEB_API_URL,
                countries=settings.FEED_COUNTRIES,
                appname=settings.RELIEFWEB_APPNAME,
                limit=settings.FEED_RELIEFWEB_LIMIT,
            ),
        ),
        FeedSource(
            sources.GDACS,
            functools.partial(
                sources.fetch_gdacs,
                url=settings.GDACS_RSS_URL,
                limit=settings.FEED_ITEM_LIMIT,
            ),
        ),
        FeedSource(
            sources.RELIEFWEB_RSS,
            functools.partial(
                sources.fetch_reliefweb_updates,
                url=settings.RELIEFWEB_UPDATES_RSS_URL,
                limit=settings.FEED_ITEM_LIMIT,
            ),
        ),
    ]


def dedupe(records: Sequence[DisasterRecord]) -> List[DisasterRecord]:
    """Drop records whose id was already seen, keeping the first."""
    seen = set()
    unique: List[DisasterRecord] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


class DisasterFeedAggregator:
    """
    Read-through cache over several disaster feeds.

    Parameters
    ----------
    sources : list of FeedSource
        Fetched concurrently; merge order follows list order.
    cache : SnapshotCache
        Owned by this aggregator; holds a single "all disasters" entry.
    geocoder : GeocodeFn | None
        ``async (client, query) -> Coordinates | None``; None disables the
        geocoding pass.
    fetch_timeout : float
        Seconds allowed per source.
    retry_after : float
        After a refresh in which every source failed, the stale snapshot is
        served for this long before upstream is tried again.
    client : httpx.AsyncClient | None
        Shared HTTP client. When omitted one is created lazily and closed by
        :meth:`close`.
    """

    def __init__(
        self,
        *,
        sources: Sequence[FeedSource],
        cache: SnapshotCache,
        geocoder: Optional[GeocodeFn] = None,
        fetch_timeout: float = 15.0,
        retry_after: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = "rescuehub-relief-api/1.0",
    ):
        self.sources = list(sources)
        self.cache = cache
        self.geocoder = geocoder
        self.fetch_timeout = fetch_timeout
        self.retry_after = retry_after
        self.user_agent = user_agent
        self._http_client = client
        self._owns_client = client is None
        self._cache_key = SnapshotCache.make_key(CACHE_SOURCE, CACHE_PARAMS)
        self._inflight: Optional[asyncio.Future] = None
        self.last_source_status: Dict[str, str] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "DisasterFeedAggregator":
        geocoder: Optional[GeocodeFn] = None
        if settings.GEOCODING_ENABLED:
            geocoder = functools.partial(
                geocode,
                url=settings.GEOCODER_URL,
                user_agent=settings.GEOCODER_USER_AGENT,
            )
        return cls(
            sources=default_sources(settings),
            cache=SnapshotCache(settings.DISASTER_CACHE_TTL),
            geocoder=geocoder,
            fetch_timeout=settings.FEED_FETCH_TIMEOUT,
            retry_after=settings.FEED_RETRY_AFTER,
            client=client,
            user_agent=settings.GEOCODER_USER_AGENT,
        )

    # ── HTTP client ──

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.fetch_timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            )
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    # ═══════════════════════════════════════════════════════════════════════
    # Public API
    # ═══════════════════════════════════════════════════════════════════════

    async def get_disaster_data(self, force_refresh: bool = False) -> List[DisasterRecord]:
        entry = self.cache.get(self._cache_key)
        if not force_refresh and entry is not None and self.cache.is_servable(entry):
            return entry.data

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._refresh())
        else:
            logger.debug("Joining in-flight disaster feed refresh")
        return await asyncio.shield(self._inflight)

    async def get_active_disasters(self) -> List[DisasterRecord]:
        return [d for d in await self.get_disaster_data() if d.is_active]

    async def get_disaster_by_id(self, disaster_id: str) -> Optional[DisasterRecord]:
        for record in await self.get_disaster_data():
            if record.id == disaster_id:
                return record
        return None

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Disaster feed cache cleared")

    def cache_info(self) -> Dict[str, Any]:
        entry = self.cache.get(self._cache_key)
        if entry is None:
            return {"cached": False, "ttl_seconds": self.cache.ttl_seconds}
        return {
            "cached": True,
            "fresh": self.cache.is_fresh(entry),
            "record_count": len(entry.data),
            "age_seconds": round(self.cache.age(entry), 1),
            "captured_at": entry.captured_at.isoformat(),
            "ttl_seconds": self.cache.ttl_seconds,
            "retry_in_seconds": round(self.cache.retry_in(entry), 1),
            "sources": dict(self.last_source_status),
        }

    # ═══════════════════════════════════════════════════════════════════════
    # Refresh
    # ═══════════════════════════════════════════════════════════════════════

    async def _fetch_source(
        self, source: FeedSource, client: httpx.AsyncClient,
    ) -> Optional[List[DisasterRecord]]:
        """Records from one source, or None if it failed or timed out."""
        start = time.perf_counter()
        try:
            records = await asyncio.wait_for(source.fetch(client), timeout=self.fetch_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Feed %s timed out after %.1fs", source.name, self.fetch_timeout,
                extra={"source": source.name},
            )
            self.last_source_status[source.name] = "timeout"
            return None
        except Exception as exc:
            logger.warning(
                "Feed %s failed: %s", source.name, exc,
                extra={"source": source.name},
            )
            self.last_source_status[source.name] = "error"
            return None

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Feed %s: %d records in %.0fms", source.name, len(records), duration_ms,
            extra={
                "source": source.name,
                "record_count": len(records),
                "duration_ms": duration_ms,
            },
        )
        self.last_source_status[source.name] = "ok"
        return records

    async def _geocode_missing(
        self, records: List[DisasterRecord], client: httpx.AsyncClient,
    ) -> None:
        if self.geocoder is None:
            return

        pending: Dict[str, List[DisasterRecord]] = {}
        for record in records:
            if record.location.coordinates is not None:
                continue
            query = record.location.geocode_query
            if query:
                pending.setdefault(query, []).append(record)
        if not pending:
            return

        queries = list(pending)
        results = await asyncio.gather(
            *(self.geocoder(client, q) for q in queries), return_exceptions=True,
        )
        resolved = 0
        for query, coords in zip(queries, results):
            if isinstance(coords, BaseException):
                logger.warning("Geocoding %r raised: %s", query, coords)
                continue
            if coords is None:
                continue
            resolved += 1
            for record in pending[query]:
                record.location.coordinates = coords

        logger.info("Geocoded %d of %d distinct locations", resolved, len(queries))

    def _stale_fallback(self, reason: str) -> List[DisasterRecord]:
        previous = self.cache.defer(self._cache_key, self.retry_after)
        if previous is not None:
            logger.warning(
                "%s; serving cached snapshot from %s for the next %.0fs",
                reason, previous.captured_at.isoformat(), self.retry_after,
                extra={"record_count": len(previous.data)},
            )
            return previous.data
        logger.error("%s; no cached snapshot available", reason)
        return []

    async def _refresh(self) -> List[DisasterRecord]:
        start = time.perf_counter()
        client = self._get_client()

        results = await asyncio.gather(
            *(self._fetch_source(source, client) for source in self.sources)
        )
        if all(r is None for r in results):
            return self._stale_fallback("All disaster feeds failed")

        try:
            merged = dedupe([record for batch in results if batch for record in batch])
            additions = curated_additions(merged)
            if additions:
                logger.info(
                    "Adding %d curated record(s): %s",
                    len(additions), ", ".join(r.id for r in additions),
                )
            merged.extend(additions)
            await self._geocode_missing(merged, client)
        except Exception:
            logger.exception("Disaster feed merge failed")
            return self._stale_fallback("Disaster feed merge failed")

        self.cache.set(self._cache_key, merged)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Disaster feeds refreshed: %d records in %.0fms", len(merged), duration_ms,
            extra={"record_count": len(merged), "duration_ms": duration_ms},
        )
        return merged
