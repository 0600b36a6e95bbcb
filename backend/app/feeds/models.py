"""
models.py — Normalised disaster record shared by every feed source.

Wire shape (camelCase JSON, optional keys omitted when empty):

    {
        "id": "gdacs-1102983",
        "name": "Red alert for flood in India",
        "type": "Flood",
        "status": "alert",
        "location": {"country": "India", "region": "Punjab",
                     "coordinates": {"lat": 30.9, "lng": 75.8}},
        "date": {"start": "2025-08-28T06:00:00+00:00", "end": null},
        "description": "...",
        "severity": "critical",
        "source": "GDACS",
        "url": "https://www.gdacs.org/..."
    }

Identifiers are always source-prefixed (``reliefweb-``, ``gdacs-``,
``reliefweb-rss-``, ``curated-``) so the same real-world event reported by
two feeds never collides.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from backend.app.spatial.geo import Coordinates


class DisasterType(str, Enum):
    FLOOD      = "Flood"
    EARTHQUAKE = "Earthquake"
    CYCLONE    = "Cyclone"
    FIRE       = "Fire"
    DROUGHT    = "Drought"
    LANDSLIDE  = "Landslide"
    STORM      = "Storm"
    GENERIC    = "Disaster"


class DisasterStatus(str, Enum):
    ONGOING = "ongoing"
    PAST    = "past"
    ALERT   = "alert"


class Severity(str, Enum):
    LOW      = "low"
    MEDIUM   = "medium"
    HIGH     = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}

ACTIVE_STATUSES = frozenset({DisasterStatus.ONGOING, DisasterStatus.ALERT})

UNKNOWN_COUNTRY = "Unknown"


@dataclass
class DisasterLocation:
    country: str = UNKNOWN_COUNTRY
    region: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    @property
    def geocode_query(self) -> Optional[str]:
        """Text used for a geocoding lookup, or None if nothing useful is known."""
        query = self.region or self.country
        if not query or query == UNKNOWN_COUNTRY:
            return None
        return query

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"country": self.country}
        if self.region:
            body["region"] = self.region
        if self.coordinates is not None:
            body["coordinates"] = self.coordinates.to_dict()
        return body


@dataclass
class DateRange:
    start: str
    end: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"start": self.start}
        if self.end:
            body["end"] = self.end
        return body


@dataclass
class DisasterRecord:
    id: str
    name: str
    type: DisasterType
    status: DisasterStatus
    location: DisasterLocation
    date: DateRange
    description: str
    severity: Severity
    source: str
    url: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def search_text(self) -> str:
        return f"{self.name} {self.description}".lower()

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "status": self.status.value,
            "location": self.location.to_dict(),
            "date": self.date.to_dict(),
            "description": self.description,
            "severity": self.severity.value,
            "source": self.source,
        }
        if self.url:
            body["url"] = self.url
        return body
