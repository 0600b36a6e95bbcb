"""
matcher.py — Proximity matching of volunteers to an emergency location.

═══════════════════════════════════════════════════════════════════════════
MATCHING PIPELINE
═══════════════════════════════════════════════════════════════════════════

    storage.get_available_volunteers()
              │
              ▼
    ┌─────────────────────┐
    │  1. Eligibility     │  availability=True AND coordinates present
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  2. Distance        │  haversine(target, volunteer)   (km)
    │     + radius filter │  keep d ≤ radius_km (inclusive)
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  3. Ordering        │  ascending distance; equal distances keep
    │                     │  the order storage returned them in
    └─────────┬───────────┘
              ▼
    ┌─────────────────────┐
    │  4. Contact lookup  │  storage.get_user_by_id → phone + name
    │                     │  no phone → excluded (unreachable)
    └─────────────────────┘

An empty result is a normal outcome. Callers decide whether to warn.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from backend.app.spatial.geo import Coordinates, haversine_km, within_radius
from backend.app.storage.base import Storage
from backend.app.storage.models import Volunteer
from backend.app.volunteers.models import VolunteerNotification

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 50.0


def rank_by_distance(
    target: Coordinates,
    volunteers: Iterable[Volunteer],
    radius_km: float,
) -> List[Tuple[Volunteer, float]]:
    """
    Pair eligible volunteers with their distance to ``target``.

    Parameters
    ----------
    target : Coordinates
        Emergency location.
    volunteers : iterable of Volunteer
        Candidate pool. Unavailable volunteers and those without
        coordinates are skipped before any distance is computed.
    radius_km : float
        Inclusive search radius.

    Returns
    -------
    list of (Volunteer, distance_km)
        Sorted closest first with unrounded distances. ``sorted`` is
        stable, so ties keep input order.

    Examples
    --------
    >>> v = Volunteer("v1", "u1", coordinates=Coordinates(25.7617, -80.1918))
    >>> [(x.id, round(d, 2)) for x, d in rank_by_distance(Coordinates(25.7617, -80.1918), [v], 50)]
    [('v1', 0.0)]
    """
    in_range: List[Tuple[Volunteer, float]] = []
    for volunteer in volunteers:
        if not volunteer.availability or volunteer.coordinates is None:
            continue
        distance = haversine_km(target, volunteer.coordinates)
        if within_radius(distance, radius_km):
            in_range.append((volunteer, distance))

    return sorted(in_range, key=lambda pair: pair[1])


class ProximityMatcher:
    """Find reachable volunteers near a point, closest first."""

    def __init__(self, storage: Storage, default_radius_km: float = DEFAULT_RADIUS_KM):
        if default_radius_km <= 0:
            raise ValueError(f"default_radius_km must be positive, got {default_radius_km}")
        self.storage = storage
        self.default_radius_km = default_radius_km

    async def find_nearby_volunteers(
        self,
        target_lat: Optional[float],
        target_lng: Optional[float],
        radius_km: Optional[float] = None,
    ) -> List[VolunteerNotification]:
        """
        Return volunteers within ``radius_km`` of the target, closest first.

        Missing coordinates short-circuit to an empty list with a warning.
        Out-of-range coordinates or a non-positive radius raise ValueError.
        Storage errors propagate to the caller.
        """
        if target_lat is None or target_lng is None:
            logger.warning("Proximity search skipped: target coordinates missing")
            return []

        radius = self.default_radius_km if radius_km is None else radius_km
        if radius <= 0:
            raise ValueError(f"radius_km must be positive, got {radius}")

        target = Coordinates(target_lat, target_lng)

        volunteers = await self.storage.get_available_volunteers()
        ranked = rank_by_distance(target, volunteers, radius)

        matches: List[VolunteerNotification] = []
        for volunteer, distance in ranked:
            user = await self.storage.get_user_by_id(volunteer.user_id)
            if user is None or not user.phone:
                logger.debug(
                    "Volunteer %s in range but unreachable (no phone)", volunteer.id,
                    extra={"volunteer_id": volunteer.id},
                )
                continue
            matches.append(
                VolunteerNotification(
                    volunteer_id=volunteer.id,
                    phone=user.phone,
                    name=user.full_name,
                    distance_km=round(distance, 2),
                )
            )

        logger.info(
            "Proximity search at (%.4f, %.4f) r=%.1f km: %d of %d volunteers matched",
            target.lat, target.lng, radius, len(matches), len(volunteers),
            extra={"candidate_count": len(matches)},
        )
        return matches
