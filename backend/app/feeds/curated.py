"""
curated.py — Hand-maintained fallback records.

Live feeds frequently miss the Punjab and Himachal Pradesh monsoon floods.
After merging, each entry below is added only if no record's
``name + description`` already mentions one of its region keywords together
with "flood". This is a fixed list for these two events, not a general
coverage mechanism.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from backend.app.feeds.models import (
    DateRange,
    DisasterLocation,
    DisasterRecord,
    DisasterStatus,
    DisasterType,
    Severity,
)

CURATED_SOURCE = "Curated"


@dataclass(frozen=True)
class CuratedEntry:
    id: str
    name: str
    region: str
    keywords: Tuple[str, ...]
    hazard: str
    description: str
    url: str

    def is_covered_by(self, records: Sequence[DisasterRecord]) -> bool:
        for record in records:
            text = record.search_text
            if self.hazard in text and any(k in text for k in self.keywords):
                return True
        return False

    def to_record(self, now: Optional[datetime] = None) -> DisasterRecord:
        start = (now or datetime.now(timezone.utc)).isoformat()
        return DisasterRecord(
            id=self.id,
            name=self.name,
            type=DisasterType.FLOOD,
            status=DisasterStatus.ONGOING,
            location=DisasterLocation(country="India", region=self.region),
            date=DateRange(start=start),
            description=self.description,
            severity=Severity.HIGH,
            source=CURATED_SOURCE,
            url=self.url,
        )


CURATED_ENTRIES: Tuple[CuratedEntry, ...] = (
    CuratedEntry(
        id="curated-punjab-flood",
        name="Recent Floods in Punjab",
        region="Punjab",
        keywords=("punjab",),
        hazard="flood",
        description=(
            "Widespread flooding reported in parts of Punjab. "
            "Aggregated from multiple recent reports."
        ),
        url="https://reliefweb.int/updates?search=Punjab%20flood",
    ),
    CuratedEntry(
        id="curated-hp-flood",
        name="Recent Floods in Himachal Pradesh",
        region="Himachal Pradesh",
        keywords=("himachal pradesh", "himachal"),
        hazard="flood",
        description=(
            "Cloudbursts and heavy rains triggered flooding/landslides in "
            "Himachal Pradesh. Aggregated from recent reports."
        ),
        url="https://reliefweb.int/updates?search=Himachal%20Pradesh%20flood",
    ),
)


def curated_additions(
    records: Sequence[DisasterRecord],
    entries: Sequence[CuratedEntry] = CURATED_ENTRIES,
    now: Optional[datetime] = None,
) -> List[DisasterRecord]:
    """Curated records whose event is not already represented in ``records``."""
    return [e.to_record(now) for e in entries if not e.is_covered_by(records)]
