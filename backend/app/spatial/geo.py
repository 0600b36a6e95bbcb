"""
geo.py — Great-circle distance and coordinate helpers.

All distances are in **kilometers**. Coordinates are in **decimal degrees**.

Haversine Formula
=================
Given two points P₁(φ₁, λ₁) and P₂(φ₂, λ₂):

    a = sin²(Δφ / 2) + cos(φ₁) · cos(φ₂) · sin²(Δλ / 2)
    c = 2 · atan2(√a, √(1 − a))
    d = R · c

Where:
    φ  = latitude in radians
    λ  = longitude in radians
    R  = 6 371 km (mean Earth radius)

All angles are converted to radians before use. The result is symmetric:
haversine_km(A, B) == haversine_km(B, A).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EARTH_RADIUS_KM: float = 6_371.0

# Radius comparisons are inclusive within this slack (km)
DISTANCE_TOLERANCE_KM: float = 1e-9


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coordinates:
    """A geographic point in decimal degrees (wire keys: lat / lng)."""
    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not (-90.0 <= self.lat <= 90.0):
            raise ValueError(f"Latitude must be in [-90, 90], got {self.lat}")
        if not (-180.0 <= self.lng <= 180.0):
            raise ValueError(f"Longitude must be in [-180, 180], got {self.lng}")

    @property
    def lat_rad(self) -> float:
        return math.radians(self.lat)

    @property
    def lng_rad(self) -> float:
        return math.radians(self.lng)

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


# ---------------------------------------------------------------------------
# Haversine implementation
# ---------------------------------------------------------------------------

def haversine_km(point1: Coordinates, point2: Coordinates) -> float:
    """
    Great-circle distance between two points in kilometers (unrounded).

    >>> haversine_km(Coordinates(0, 0), Coordinates(0, 0))
    0.0
    """
    d_lat = point2.lat_rad - point1.lat_rad
    d_lng = point2.lng_rad - point1.lng_rad

    a = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(point1.lat_rad)
        * math.cos(point2.lat_rad)
        * math.sin(d_lng / 2.0) ** 2
    )
    # Rounding error can push a fractionally past 1 for antipodal points
    a = min(1.0, max(0.0, a))

    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


def within_radius(distance_km: float, radius_km: float) -> bool:
    """Inclusive radius check with floating-point tolerance."""
    return distance_km <= radius_km + DISTANCE_TOLERANCE_KM
