"""
test_classifier.py — Tests for feed text classification heuristics.

Run with:
    pytest tests/test_classifier.py -v
"""

import pytest

from backend.app.feeds.classifier import (
    classify,
    infer_country,
    infer_region,
    infer_severity,
    infer_type,
    map_reliefweb_severity,
    map_reliefweb_status,
    max_severity,
)
from backend.app.feeds.models import DisasterStatus, DisasterType, Severity


class TestInferType:

    @pytest.mark.parametrize("text,expected", [
        ("M 6.1 Earthquake near Kathmandu", DisasterType.EARTHQUAKE),
        ("Seismic activity reported", DisasterType.EARTHQUAKE),
        ("India: Monsoon Floods - Aug 2025", DisasterType.FLOOD),
        ("Severe inundation in low-lying areas", DisasterType.FLOOD),
        ("Tropical Cyclone REMAL", DisasterType.CYCLONE),
        ("Typhoon approaching coast", DisasterType.CYCLONE),
        ("Landslide blocks highway in Shimla", DisasterType.LANDSLIDE),
        ("Forest wildfire spreads", DisasterType.FIRE),
        ("Drought conditions worsen", DisasterType.DROUGHT),
        ("Tropical depression forms", DisasterType.STORM),
        ("Hailstorm damages crops", DisasterType.STORM),
        ("Refugee situation update", DisasterType.GENERIC),
        ("", DisasterType.GENERIC),
    ])
    def test_keywords(self, text, expected):
        assert infer_type(text) == expected

    def test_first_rule_wins(self):
        assert infer_type("Earthquake triggers flood") == DisasterType.EARTHQUAKE
        assert infer_type("Flood and landslide") == DisasterType.FLOOD

    def test_case_insensitive(self):
        assert infer_type("FLOOD WARNING") == DisasterType.FLOOD


class TestInferSeverity:

    @pytest.mark.parametrize("text,expected", [
        ("Severe flooding", Severity.CRITICAL),
        ("Red alert issued", Severity.CRITICAL),
        ("Major damage", Severity.CRITICAL),
        ("Orange alert for rainfall", Severity.HIGH),
        ("Serious situation", Severity.HIGH),
        ("Moderate rainfall", Severity.MEDIUM),
        ("Yellow alert in district", Severity.MEDIUM),
        ("Minor tremor", Severity.LOW),
    ])
    def test_keywords(self, text, expected):
        assert infer_severity(text) == expected

    def test_highest_tier_checked_first(self):
        assert infer_severity("moderate now, severe later") == Severity.CRITICAL


class TestInferCountry:

    @pytest.mark.parametrize("text,expected", [
        ("Floods in Punjab", "India"),
        ("Himachal Pradesh cloudburst", "India"),
        ("Assam river overflow", "India"),
        ("Bangladesh: Cyclone Remal", "Bangladesh"),
        ("Earthquake in Nepal", "Nepal"),
        ("Sri Lanka floods", "Sri Lanka"),
        ("Floods in Europe", "Unknown"),
    ])
    def test_countries(self, text, expected):
        assert infer_country(text) == expected

    def test_state_takes_precedence(self):
        assert infer_country("Pakistan and Punjab floods") == "India"

    def test_whole_word_only(self):
        assert infer_country("Indiana tornado") == "Unknown"

    def test_case_insensitive(self):
        assert infer_country("floods in kerala") == "India"


class TestInferRegion:

    def test_known_region(self):
        assert infer_region("Heavy rain in Punjab") == "Punjab"
        assert infer_region("Waterlogging in Mumbai") == "Mumbai"

    def test_longest_name_listed_first(self):
        assert infer_region("Himachal Pradesh landslides") == "Himachal Pradesh"

    def test_none(self):
        assert infer_region("Nepal earthquake") is None


class TestClassify:

    def test_combined(self):
        c = classify("Red alert: severe flood in Punjab")
        assert c.type == DisasterType.FLOOD
        assert c.severity == Severity.CRITICAL
        assert c.country == "India"
        assert c.region == "Punjab"


class TestReliefWebMapping:

    @pytest.mark.parametrize("status,expected", [
        ("ongoing", DisasterStatus.ONGOING),
        ("Active", DisasterStatus.ONGOING),
        ("current", DisasterStatus.ONGOING),
        ("alert", DisasterStatus.ALERT),
        ("warning", DisasterStatus.ALERT),
        ("past", DisasterStatus.PAST),
        (None, DisasterStatus.PAST),
    ])
    def test_status(self, status, expected):
        assert map_reliefweb_status(status) == expected

    @pytest.mark.parametrize("status,expected", [
        ("critical", Severity.CRITICAL),
        ("high", Severity.HIGH),
        ("moderate", Severity.MEDIUM),
        ("ongoing", Severity.LOW),
        (None, Severity.LOW),
    ])
    def test_severity(self, status, expected):
        assert map_reliefweb_severity(status) == expected

    def test_max_severity(self):
        assert max_severity(Severity.LOW, Severity.HIGH, Severity.MEDIUM) == Severity.HIGH
        assert max_severity(Severity.LOW) == Severity.LOW
