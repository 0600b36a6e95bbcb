"""
test_proximity_matcher.py — Tests for volunteer proximity matching.

Covers:
    • Radius filtering and distance ordering
    • Eligibility (availability, coordinates, verification, phone)
    • Boundary inclusion and tie ordering
    • Input validation and storage failures

Run with:
    pytest tests/test_proximity_matcher.py -v
"""

from __future__ import annotations

import asyncio

import pytest

from backend.app.spatial.geo import Coordinates, haversine_km
from backend.app.storage.memory import MemoryStorage
from backend.app.storage.models import User, UserRole, VerificationStatus, Volunteer
from backend.app.volunteers.matcher import ProximityMatcher, rank_by_distance

MIAMI = (25.7617, -80.1918)
FORT_LAUDERDALE = (26.1224, -80.1373)


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def _make_volunteer(
    vid: str,
    user_id: str,
    coords=MIAMI,
    availability: bool = True,
    verified: bool = True,
) -> Volunteer:
    return Volunteer(
        id=vid,
        user_id=user_id,
        skills=["first_aid"],
        availability=availability,
        coordinates=Coordinates(*coords) if coords is not None else None,
        verification_status=(
            VerificationStatus.VERIFIED if verified else VerificationStatus.PENDING
        ),
    )


def _make_storage(*volunteers: Volunteer, phones=None) -> MemoryStorage:
    """Empty storage with one user per volunteer (phone +1000000000N)."""
    phones = phones or {}
    storage = MemoryStorage(seed=False)
    for i, v in enumerate(volunteers):
        storage.add_user(User(
            id=v.user_id,
            username=f"u{i}",
            email=f"u{i}@example.com",
            full_name=f"Volunteer {v.id}",
            role=UserRole.VOLUNTEER,
            phone=phones.get(v.user_id, f"+100000000{i}"),
        ))
        storage.add_volunteer(v)
    return storage


def _find(matcher: ProximityMatcher, lat, lng, radius=None):
    return asyncio.run(matcher.find_nearby_volunteers(lat, lng, radius))


class _BrokenStorage(MemoryStorage):
    async def get_available_volunteers(self):
        raise RuntimeError("storage offline")


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Example scenarios
# ═══════════════════════════════════════════════════════════════════════════

class TestScenarios:

    def test_same_location_matches_at_zero(self):
        matcher = ProximityMatcher(_make_storage(_make_volunteer("v1", "u1")))
        result = _find(matcher, *MIAMI, 50)
        assert len(result) == 1
        assert result[0].volunteer_id == "v1"
        assert result[0].distance_km == 0.0

    def test_forty_km_away_within_fifty(self):
        matcher = ProximityMatcher(_make_storage(_make_volunteer("v1", "u1")))
        result = _find(matcher, *FORT_LAUDERDALE, 50)
        assert len(result) == 1
        assert 40.0 < result[0].distance_km < 41.0

    def test_excluded_with_small_radius(self):
        matcher = ProximityMatcher(_make_storage(_make_volunteer("v1", "u1")))
        assert _find(matcher, *FORT_LAUDERDALE, 10) == []

    def test_default_radius_is_fifty(self):
        matcher = ProximityMatcher(_make_storage(_make_volunteer("v1", "u1")))
        assert matcher.default_radius_km == 50.0
        assert len(_find(matcher, *FORT_LAUDERDALE)) == 1


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Seeded pool
# ═══════════════════════════════════════════════════════════════════════════

class TestSeededPool:

    def test_all_three_within_fifty_km_closest_first(self):
        matcher = ProximityMatcher(MemoryStorage(seed=True))
        result = _find(matcher, *MIAMI, 50)
        assert [m.volunteer_id for m in result] == ["vol_1", "vol_2", "vol_3"]
        assert result[0].name == "Dr. Mike Johnson"
        assert result[0].phone == "+1234567892"

    def test_ten_km_drops_fort_lauderdale(self):
        matcher = ProximityMatcher(MemoryStorage(seed=True))
        result = _find(matcher, *MIAMI, 10)
        assert [m.volunteer_id for m in result] == ["vol_1", "vol_2"]
        assert result[1].distance_km == pytest.approx(6.98, abs=0.05)

    def test_distance_rounded_to_two_decimals(self):
        matcher = ProximityMatcher(MemoryStorage(seed=True))
        for m in _find(matcher, *MIAMI, 50):
            assert m.distance_km == round(m.distance_km, 2)

    def test_idempotent(self):
        matcher = ProximityMatcher(MemoryStorage(seed=True))
        assert _find(matcher, *MIAMI, 50) == _find(matcher, *MIAMI, 50)

    def test_notification_has_no_emergency_attached(self):
        matcher = ProximityMatcher(MemoryStorage(seed=True))
        assert all(m.emergency is None for m in _find(matcher, *MIAMI, 50))


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Eligibility
# ═══════════════════════════════════════════════════════════════════════════

class TestEligibility:

    def test_unavailable_excluded(self):
        storage = _make_storage(
            _make_volunteer("v1", "u1", availability=False),
            _make_volunteer("v2", "u2"),
        )
        result = _find(ProximityMatcher(storage), *MIAMI, 50)
        assert [m.volunteer_id for m in result] == ["v2"]

    def test_unverified_excluded(self):
        storage = _make_storage(_make_volunteer("v1", "u1", verified=False))
        assert _find(ProximityMatcher(storage), *MIAMI, 50) == []

    def test_missing_coordinates_excluded(self):
        storage = _make_storage(_make_volunteer("v1", "u1", coords=None))
        assert _find(ProximityMatcher(storage), *MIAMI, 50) == []

    def test_missing_phone_excluded(self):
        storage = _make_storage(
            _make_volunteer("v1", "u1"),
            _make_volunteer("v2", "u2"),
            phones={"u1": None},
        )
        result = _find(ProximityMatcher(storage), *MIAMI, 50)
        assert [m.volunteer_id for m in result] == ["v2"]

    def test_missing_user_excluded(self):
        storage = MemoryStorage(seed=False)
        storage.add_volunteer(_make_volunteer("v1", "ghost"))
        assert _find(ProximityMatcher(storage), *MIAMI, 50) == []


# ═══════════════════════════════════════════════════════════════════════════
# Section 4: Ordering & boundary
# ═══════════════════════════════════════════════════════════════════════════

class TestOrdering:

    def test_ties_keep_input_order(self):
        storage = _make_storage(
            _make_volunteer("b", "u1", coords=(25.80, -80.19)),
            _make_volunteer("a", "u2", coords=(25.80, -80.19)),
            _make_volunteer("c", "u3", coords=MIAMI),
        )
        result = _find(ProximityMatcher(storage), *MIAMI, 50)
        assert [m.volunteer_id for m in result] == ["c", "b", "a"]

    def test_sorted_and_within_radius(self):
        volunteers = [
            _make_volunteer(f"v{i}", f"u{i}", coords=(25.0 + i * 0.07, -80.0 - i * 0.05))
            for i in range(20)
        ]
        storage = _make_storage(*volunteers)
        target = Coordinates(25.6, -80.3)
        result = _find(ProximityMatcher(storage), target.lat, target.lng, 60)

        distances = [m.distance_km for m in result]
        assert distances == sorted(distances)
        assert all(d <= 60.0 for d in distances)
        assert 0 < len(result) < 20

    def test_exact_boundary_included(self):
        far = Coordinates(*FORT_LAUDERDALE)
        radius = haversine_km(Coordinates(*MIAMI), far)
        storage = _make_storage(_make_volunteer("v1", "u1", coords=FORT_LAUDERDALE))
        assert len(_find(ProximityMatcher(storage), *MIAMI, radius)) == 1

    def test_just_beyond_boundary_excluded(self):
        radius = haversine_km(Coordinates(*MIAMI), Coordinates(*FORT_LAUDERDALE))
        storage = _make_storage(_make_volunteer("v1", "u1", coords=FORT_LAUDERDALE))
        assert _find(ProximityMatcher(storage), *MIAMI, radius - 1e-6) == []

    def test_rank_by_distance_is_pure(self):
        volunteers = [
            _make_volunteer("far", "u1", coords=FORT_LAUDERDALE),
            _make_volunteer("near", "u2", coords=MIAMI),
        ]
        ranked = rank_by_distance(Coordinates(*MIAMI), volunteers, 50)
        assert [v.id for v, _ in ranked] == ["near", "far"]
        assert ranked[0][1] == 0.0


# ═══════════════════════════════════════════════════════════════════════════
# Section 5: Validation & failures
# ═══════════════════════════════════════════════════════════════════════════

class TestValidation:

    def test_missing_coordinates_returns_empty(self):
        matcher = ProximityMatcher(MemoryStorage(seed=True))
        assert _find(matcher, None, -80.19, 50) == []
        assert _find(matcher, 25.76, None, 50) == []

    def test_invalid_latitude_raises(self):
        matcher = ProximityMatcher(MemoryStorage(seed=True))
        with pytest.raises(ValueError):
            _find(matcher, 95.0, 0.0, 50)

    @pytest.mark.parametrize("radius", [0, -5])
    def test_non_positive_radius_raises(self, radius):
        matcher = ProximityMatcher(MemoryStorage(seed=True))
        with pytest.raises(ValueError):
            _find(matcher, *MIAMI, radius)

    def test_non_positive_default_radius_rejected(self):
        with pytest.raises(ValueError):
            ProximityMatcher(MemoryStorage(seed=False), default_radius_km=0)

    def test_storage_error_propagates(self):
        matcher = ProximityMatcher(_BrokenStorage(seed=False))
        with pytest.raises(RuntimeError, match="storage offline"):
            _find(matcher, *MIAMI, 50)

    def test_empty_pool_is_not_an_error(self):
        matcher = ProximityMatcher(MemoryStorage(seed=False))
        assert _find(matcher, *MIAMI, 50) == []
