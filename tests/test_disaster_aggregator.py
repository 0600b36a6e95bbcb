"""
test_disaster_aggregator.py — Tests for the cached disaster feed aggregator.

Covers:
    • TTL cache hits, expiry and forced refresh
    • Per-source failure isolation and timeouts
    • Stale-snapshot fallback when every source fails
    • Merge order / dedupe and curated enrichment
    • Geocoding pass (dedupe of lookups, failures, Unknown locations)
    • Concurrent refresh coalescing and derived views

Run with:
    pytest tests/test_disaster_aggregator.py -v
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

import httpx
import pytest

from backend.app.core.config import Settings
from backend.app.core.errors import ExternalServiceError
from backend.app.feeds.aggregator import (
    DisasterFeedAggregator,
    FeedSource,
    dedupe,
    default_sources,
)
from backend.app.feeds.cache import SnapshotCache
from backend.app.feeds.models import (
    DateRange,
    DisasterLocation,
    DisasterRecord,
    DisasterStatus,
    DisasterType,
    Severity,
)
from backend.app.spatial.geo import Coordinates


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_record(
    rid: str,
    name: str = "Earthquake in Nepal",
    *,
    source: str = "test",
    status: DisasterStatus = DisasterStatus.ALERT,
    country: str = "Nepal",
    region: Optional[str] = None,
    coordinates: Optional[Coordinates] = None,
) -> DisasterRecord:
    return DisasterRecord(
        id=rid,
        name=name,
        type=DisasterType.EARTHQUAKE,
        status=status,
        location=DisasterLocation(country=country, region=region, coordinates=coordinates),
        date=DateRange(start="2025-08-28T00:00:00+00:00"),
        description=name,
        severity=Severity.MEDIUM,
        source=source,
    )


class FakeFeed:
    """Returns a fixed batch; ``fail`` / ``hang`` switch behaviour per call."""

    def __init__(self, records: List[DisasterRecord], fail: bool = False, hang: bool = False):
        self.records = records
        self.fail = fail
        self.hang = hang
        self.calls = 0

    async def __call__(self, client: httpx.AsyncClient) -> List[DisasterRecord]:
        self.calls += 1
        await asyncio.sleep(0)
        if self.hang:
            await asyncio.sleep(5)
        if self.fail:
            raise ExternalServiceError("fake", "HTTP 503")
        return list(self.records)


def _mock_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404)))


def _make_aggregator(*feeds: FakeFeed, clock=None, geocoder=None, fetch_timeout=1.0):
    return DisasterFeedAggregator(
        sources=[FeedSource(f"feed{i}", feed) for i, feed in enumerate(feeds)],
        cache=SnapshotCache(1800, clock=clock or FakeClock()),
        geocoder=geocoder,
        fetch_timeout=fetch_timeout,
        client=_mock_client(),
    )


def _ids(records) -> List[str]:
    return [r.id for r in records]


CURATED_IDS = {"curated-punjab-flood", "curated-hp-flood"}


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Cache behaviour
# ═══════════════════════════════════════════════════════════════════════════

class TestCache:

    def test_fresh_cache_served_without_refetch(self):
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed)

        async def run():
            first = await agg.get_disaster_data()
            second = await agg.get_disaster_data()
            return first, second

        first, second = asyncio.run(run())
        assert first is second
        assert feed.calls == 1

    def test_refetch_after_ttl(self):
        clock = FakeClock()
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed, clock=clock)

        async def run():
            await agg.get_disaster_data()
            clock.advance(1799)
            await agg.get_disaster_data()
            assert feed.calls == 1
            clock.advance(1)
            await agg.get_disaster_data()

        asyncio.run(run())
        assert feed.calls == 2

    def test_force_refresh_bypasses_cache(self):
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed)

        async def run():
            await agg.get_disaster_data()
            await agg.get_disaster_data(force_refresh=True)

        asyncio.run(run())
        assert feed.calls == 2

    def test_clear_cache(self):
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed)

        async def run():
            await agg.get_disaster_data()
            agg.clear_cache()
            assert agg.cache_info()["cached"] is False
            await agg.get_disaster_data()

        asyncio.run(run())
        assert feed.calls == 2

    def test_cache_info(self):
        agg = _make_aggregator(FakeFeed([_make_record("gdacs-1")]))
        asyncio.run(agg.get_disaster_data())
        info = agg.cache_info()
        assert info["cached"] is True
        assert info["fresh"] is True
        assert info["record_count"] == 3
        assert info["ttl_seconds"] == 1800
        assert info["sources"] == {"feed0": "ok"}

    def test_make_key_is_stable(self):
        assert SnapshotCache.make_key("disasters", "all") == SnapshotCache.make_key("disasters", "all")
        assert SnapshotCache.make_key("disasters", "all") != SnapshotCache.make_key("disasters", "x")
        assert len(SnapshotCache.make_key("a", "b")) == 32


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Source failures
# ═══════════════════════════════════════════════════════════════════════════

class TestSourceFailures:

    def test_one_source_down(self):
        reliefweb = FakeFeed([_make_record("reliefweb-1", source="ReliefWeb")], fail=True)
        gdacs = FakeFeed([_make_record(f"gdacs-{i}", source="GDACS") for i in range(2)])
        updates = FakeFeed([
            _make_record(f"reliefweb-rss-{i}", source="ReliefWeb RSS") for i in range(3)
        ])
        agg = _make_aggregator(reliefweb, gdacs, updates)

        records = asyncio.run(agg.get_disaster_data())
        assert len(records) == 7
        assert not any(r.source == "ReliefWeb" for r in records)
        assert CURATED_IDS <= set(_ids(records))
        assert agg.last_source_status["feed0"] == "error"

    def test_source_timeout(self):
        slow = FakeFeed([_make_record("slow-1")], hang=True)
        fast = FakeFeed([_make_record("fast-1")])
        agg = _make_aggregator(slow, fast, fetch_timeout=0.05)

        records = asyncio.run(agg.get_disaster_data())
        assert "fast-1" in _ids(records)
        assert "slow-1" not in _ids(records)
        assert agg.last_source_status["feed0"] == "timeout"

    def test_all_fail_without_cache(self):
        agg = _make_aggregator(FakeFeed([], fail=True), FakeFeed([], fail=True))
        assert asyncio.run(agg.get_disaster_data()) == []
        assert len(agg.cache) == 0

    def test_all_fail_serves_stale_snapshot(self):
        clock = FakeClock()
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed, clock=clock)

        async def run():
            first = await agg.get_disaster_data()
            clock.advance(3600)
            feed.fail = True
            second = await agg.get_disaster_data()
            return first, second

        first, second = asyncio.run(run())
        assert second is first
        assert feed.calls == 2
        assert agg.cache_info()["fresh"] is False

    def test_outage_reads_served_without_refetch(self):
        clock = FakeClock()
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed, clock=clock)

        async def run():
            first = await agg.get_disaster_data()
            clock.advance(3600)
            feed.fail = True
            reads = [await agg.get_disaster_data() for _ in range(3)]
            return first, reads

        first, reads = asyncio.run(run())
        assert all(r is first for r in reads)
        assert feed.calls == 2
        assert agg.cache_info()["retry_in_seconds"] == 60.0

    def test_outage_retried_after_window(self):
        clock = FakeClock()
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed, clock=clock)

        async def run():
            await agg.get_disaster_data()
            clock.advance(3600)
            feed.fail = True
            await agg.get_disaster_data()
            clock.advance(59)
            await agg.get_disaster_data()
            assert feed.calls == 2
            clock.advance(1)
            feed.fail = False
            feed.records = [_make_record("gdacs-2")]
            return await agg.get_disaster_data()

        records = asyncio.run(run())
        assert feed.calls == 3
        assert "gdacs-2" in _ids(records)
        info = agg.cache_info()
        assert info["fresh"] is True
        assert info["retry_in_seconds"] == 0.0

    def test_hanging_outage_pays_timeout_once(self):
        clock = FakeClock()
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed, clock=clock, fetch_timeout=0.05)

        async def run():
            await agg.get_disaster_data()
            clock.advance(3600)
            feed.hang = True
            loop = asyncio.get_running_loop()
            durations = []
            for _ in range(3):
                start = loop.time()
                await agg.get_disaster_data()
                durations.append(loop.time() - start)
            return durations

        durations = asyncio.run(run())
        assert feed.calls == 2
        assert durations[0] >= 0.04
        assert max(durations[1:]) < 0.04

    def test_force_refresh_ignores_outage_window(self):
        clock = FakeClock()
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed, clock=clock)

        async def run():
            await agg.get_disaster_data()
            clock.advance(3600)
            feed.fail = True
            await agg.get_disaster_data()
            await agg.get_disaster_data(force_refresh=True)

        asyncio.run(run())
        assert feed.calls == 3

    def test_empty_but_successful_sources_still_enriched(self):
        agg = _make_aggregator(FakeFeed([]))
        records = asyncio.run(agg.get_disaster_data())
        assert set(_ids(records)) == CURATED_IDS


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Merge & enrichment
# ═══════════════════════════════════════════════════════════════════════════

class TestMerge:

    def test_source_order_preserved(self):
        agg = _make_aggregator(
            FakeFeed([_make_record("a-1"), _make_record("a-2")]),
            FakeFeed([_make_record("b-1")]),
        )
        records = asyncio.run(agg.get_disaster_data())
        assert _ids(records)[:3] == ["a-1", "a-2", "b-1"]

    def test_duplicate_ids_keep_first(self):
        first = _make_record("dup", name="First copy")
        second = _make_record("dup", name="Second copy")
        agg = _make_aggregator(FakeFeed([first]), FakeFeed([second]))
        records = asyncio.run(agg.get_disaster_data())
        dups = [r for r in records if r.id == "dup"]
        assert len(dups) == 1
        assert dups[0].name == "First copy"

    def test_ids_unique(self):
        agg = _make_aggregator(
            FakeFeed([_make_record("x"), _make_record("y")]),
            FakeFeed([_make_record("y"), _make_record("z")]),
        )
        ids = _ids(asyncio.run(agg.get_disaster_data()))
        assert len(ids) == len(set(ids))

    def test_dedupe_helper(self):
        records = [_make_record("a"), _make_record("b"), _make_record("a", name="later")]
        assert _ids(dedupe(records)) == ["a", "b"]

    def test_curated_skipped_when_covered(self):
        covered = _make_record("gdacs-9", name="Flood in Punjab", country="India")
        agg = _make_aggregator(FakeFeed([covered]))
        ids = set(_ids(asyncio.run(agg.get_disaster_data())))
        assert "curated-punjab-flood" not in ids
        assert "curated-hp-flood" in ids

    def test_curated_ids_stable_across_refreshes(self):
        agg = _make_aggregator(FakeFeed([]))

        async def run():
            first = await agg.get_disaster_data()
            second = await agg.get_disaster_data(force_refresh=True)
            return first, second

        first, second = asyncio.run(run())
        assert set(_ids(first)) == set(_ids(second)) == CURATED_IDS


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Geocoding
# ═══════════════════════════════════════════════════════════════════════════

class FakeGeocoder:
    def __init__(self, known=None, raise_for=()):
        self.known = known or {}
        self.raise_for = set(raise_for)
        self.queries: List[str] = []

    async def __call__(self, client, query: str) -> Optional[Coordinates]:
        self.queries.append(query)
        if query in self.raise_for:
            raise RuntimeError("geocoder exploded")
        return self.known.get(query)


class TestGeocoding:

    def test_one_lookup_per_distinct_query(self):
        geocoder = FakeGeocoder({"Nepal": Coordinates(28.0, 84.0)})
        agg = _make_aggregator(
            FakeFeed([_make_record("a"), _make_record("b"), _make_record("c")]),
            geocoder=geocoder,
        )
        records = asyncio.run(agg.get_disaster_data())
        assert geocoder.queries.count("Nepal") == 1
        nepal = [r for r in records if r.location.country == "Nepal"]
        assert all(r.location.coordinates == Coordinates(28.0, 84.0) for r in nepal)

    def test_region_preferred_over_country(self):
        geocoder = FakeGeocoder()
        agg = _make_aggregator(
            FakeFeed([_make_record("a", country="India", region="Assam")]),
            geocoder=geocoder,
        )
        asyncio.run(agg.get_disaster_data())
        assert "Assam" in geocoder.queries
        assert "India" not in geocoder.queries

    def test_existing_coordinates_kept(self):
        geocoder = FakeGeocoder({"Nepal": Coordinates(28.0, 84.0)})
        here = Coordinates(27.7, 85.3)
        agg = _make_aggregator(FakeFeed([_make_record("a", coordinates=here)]), geocoder=geocoder)
        records = asyncio.run(agg.get_disaster_data())
        assert records[0].location.coordinates == here
        assert "Nepal" not in geocoder.queries

    def test_unknown_location_not_geocoded(self):
        geocoder = FakeGeocoder()
        agg = _make_aggregator(
            FakeFeed([_make_record("a", country="Unknown")]), geocoder=geocoder,
        )
        records = asyncio.run(agg.get_disaster_data())
        assert "Unknown" not in geocoder.queries
        assert records[0].location.coordinates is None

    def test_failures_leave_coordinates_empty(self):
        geocoder = FakeGeocoder(raise_for={"Nepal"})
        agg = _make_aggregator(FakeFeed([_make_record("a")]), geocoder=geocoder)
        records = asyncio.run(agg.get_disaster_data())
        assert _ids(records)[0] == "a"
        assert records[0].location.coordinates is None

    def test_curated_records_geocoded_by_region(self):
        geocoder = FakeGeocoder({"Punjab": Coordinates(31.1, 75.3)})
        agg = _make_aggregator(FakeFeed([]), geocoder=geocoder)
        records = asyncio.run(agg.get_disaster_data())
        punjab = [r for r in records if r.id == "curated-punjab-flood"][0]
        assert punjab.location.coordinates == Coordinates(31.1, 75.3)


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: Concurrency & derived views
# ═══════════════════════════════════════════════════════════════════════════

class TestViews:

    def test_concurrent_callers_share_one_refresh(self):
        feed = FakeFeed([_make_record("gdacs-1")])
        agg = _make_aggregator(feed)

        async def run():
            return await asyncio.gather(*(agg.get_disaster_data() for _ in range(5)))

        results = asyncio.run(run())
        assert feed.calls == 1
        assert all(r is results[0] for r in results)

    def test_active_filter(self):
        agg = _make_aggregator(FakeFeed([
            _make_record("ongoing", status=DisasterStatus.ONGOING),
            _make_record("alert", status=DisasterStatus.ALERT),
            _make_record("past", status=DisasterStatus.PAST),
        ]))
        ids = _ids(asyncio.run(agg.get_active_disasters()))
        assert "past" not in ids
        assert {"ongoing", "alert"} <= set(ids)

    def test_by_id(self):
        agg = _make_aggregator(FakeFeed([_make_record("gdacs-7")]))

        async def run():
            return (
                await agg.get_disaster_by_id("gdacs-7"),
                await agg.get_disaster_by_id("nope"),
            )

        found, missing = asyncio.run(run())
        assert found.id == "gdacs-7"
        assert missing is None

    def test_default_sources_order(self):
        names = [s.name for s in default_sources(Settings())]
        assert names == ["ReliefWeb", "GDACS", "ReliefWeb RSS"]

    def test_owned_client_closed(self):
        agg = DisasterFeedAggregator(sources=[], cache=SnapshotCache(60))

        async def run():
            client = agg._get_client()
            await agg.close()
            return client

        assert asyncio.run(run()).is_closed

    def test_injected_client_not_closed(self):
        client = _mock_client()
        agg = DisasterFeedAggregator(sources=[], cache=SnapshotCache(60), client=client)
        asyncio.run(agg.close())
        assert not client.is_closed
