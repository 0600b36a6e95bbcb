"""
classifier.py — Keyword heuristics for feed text.

Pure functions, ``text → label``. They are best-effort enrichment: a
headline that says "fire safety drill" will still be typed as Fire.

═══════════════════════════════════════════════════════════════════════════
RULES (first match wins, case-insensitive substring)
═══════════════════════════════════════════════════════════════════════════

    Type
        earthquake | quake | seismic        → Earthquake
        flood | inundation                  → Flood
        cyclone | hurricane | typhoon       → Cyclone
        landslide                           → Landslide
        wildfire | fire                     → Fire
        drought                             → Drought
        storm | tropical                    → Storm
        (none)                              → Disaster

    Severity
        severe | massive | major | red alert     → critical
        high | serious | orange alert            → high
        moderate | yellow alert                  → medium
        (none)                                   → low

    Country (whole-word)
        any Indian state / territory name  → India
        else first of India, Bangladesh, Nepal, Sri Lanka,
             Pakistan, Myanmar, Bhutan     → that country
        (none)                             → Unknown
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence, Tuple

from backend.app.feeds.models import (
    UNKNOWN_COUNTRY,
    DisasterStatus,
    DisasterType,
    Severity,
)

TYPE_KEYWORDS: Tuple[Tuple[DisasterType, Tuple[str, ...]], ...] = (
    (DisasterType.EARTHQUAKE, ("earthquake", "quake", "seismic")),
    (DisasterType.FLOOD, ("flood", "inundation")),
    (DisasterType.CYCLONE, ("cyclone", "hurricane", "typhoon")),
    (DisasterType.LANDSLIDE, ("landslide",)),
    (DisasterType.FIRE, ("wildfire", "fire")),
    (DisasterType.DROUGHT, ("drought",)),
    (DisasterType.STORM, ("storm", "tropical")),
)

SEVERITY_KEYWORDS: Tuple[Tuple[Severity, Tuple[str, ...]], ...] = (
    (Severity.CRITICAL, ("severe", "massive", "major", "red alert")),
    (Severity.HIGH, ("high", "serious", "orange alert")),
    (Severity.MEDIUM, ("moderate", "yellow alert")),
)

COUNTRIES: Tuple[str, ...] = (
    "India", "Bangladesh", "Nepal", "Sri Lanka", "Pakistan", "Myanmar", "Bhutan",
)

INDIAN_STATES: Tuple[str, ...] = (
    "Punjab", "Himachal Pradesh", "Himachal", "Haryana", "Uttar Pradesh",
    "Rajasthan", "Gujarat", "Bihar", "Assam", "Kerala", "Tamil Nadu",
    "Karnataka", "Maharashtra", "West Bengal", "Odisha", "Telangana",
    "Andhra Pradesh", "Madhya Pradesh", "Uttarakhand", "Jammu", "Kashmir",
)

REGIONS: Tuple[str, ...] = (
    "Punjab", "Himachal Pradesh", "Himachal", "Delhi", "Mumbai",
    "Chennai", "Kolkata", "Bengaluru",
)


@dataclass(frozen=True)
class Classification:
    type: DisasterType
    severity: Severity
    country: str
    region: Optional[str]


@lru_cache(maxsize=None)
def _word_pattern(name: str) -> "re.Pattern[str]":
    return re.compile(rf"\b{re.escape(name)}\b", re.IGNORECASE)


def _first_word_match(text: str, names: Sequence[str]) -> Optional[str]:
    for name in names:
        if _word_pattern(name).search(text):
            return name
    return None


def infer_type(text: str) -> DisasterType:
    t = text.lower()
    for disaster_type, keywords in TYPE_KEYWORDS:
        if any(k in t for k in keywords):
            return disaster_type
    return DisasterType.GENERIC


def infer_severity(text: str) -> Severity:
    t = text.lower()
    for severity, keywords in SEVERITY_KEYWORDS:
        if any(k in t for k in keywords):
            return severity
    return Severity.LOW


def infer_country(text: str) -> str:
    if _first_word_match(text, INDIAN_STATES):
        return "India"
    return _first_word_match(text, COUNTRIES) or UNKNOWN_COUNTRY


def infer_region(text: str) -> Optional[str]:
    return _first_word_match(text, REGIONS)


def classify(text: str) -> Classification:
    """Run every heuristic over ``text``."""
    return Classification(
        type=infer_type(text),
        severity=infer_severity(text),
        country=infer_country(text),
        region=infer_region(text),
    )


# ═══════════════════════════════════════════════════════════════════════════
# ReliefWeb field mapping
# ═══════════════════════════════════════════════════════════════════════════

def map_reliefweb_status(status: Optional[str]) -> DisasterStatus:
    s = (status or "").lower()
    if "ongoing" in s or "active" in s or "current" in s:
        return DisasterStatus.ONGOING
    if "alert" in s or "warning" in s:
        return DisasterStatus.ALERT
    return DisasterStatus.PAST


def map_reliefweb_severity(status: Optional[str]) -> Severity:
    s = (status or "").lower()
    if "critical" in s or "severe" in s:
        return Severity.CRITICAL
    if "high" in s or "major" in s:
        return Severity.HIGH
    if "medium" in s or "moderate" in s:
        return Severity.MEDIUM
    return Severity.LOW


def max_severity(*levels: Severity) -> Severity:
    return max(levels, key=lambda s: s.rank)
