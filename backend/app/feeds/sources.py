"""
sources.py — Fetch + normalise the three upstream disaster feeds.

═══════════════════════════════════════════════════════════════════════════
SOURCES
═══════════════════════════════════════════════════════════════════════════

    Source            Format      Id prefix         Status
    ──────────        ──────      ─────────         ──────────────────────
    ReliefWeb API     JSON        reliefweb-        from fields.status
    GDACS             RSS/XML     gdacs-            alert
    ReliefWeb updates RSS/XML     reliefweb-rss-    alert

RSS is parsed loosely: each ``<item>`` block is cut out with a regex and
its child tags are read one by one, so a single malformed item (or a
document that is not well-formed XML) does not lose the whole feed. CDATA
wrappers, HTML entities and inline markup are stripped from text fields.

Each ``fetch_*`` raises ExternalServiceError on a non-2xx response and lets
transport errors propagate; the aggregator isolates failures per source.
Each ``parse_*`` is a pure function over the response body.
"""

from __future__ import annotations

import hashlib
import html
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from backend.app.core.errors import ExternalServiceError
from backend.app.feeds.classifier import (
    classify,
    infer_type,
    map_reliefweb_severity,
    map_reliefweb_status,
    max_severity,
)
from backend.app.feeds.models import (
    UNKNOWN_COUNTRY,
    DateRange,
    DisasterLocation,
    DisasterRecord,
    DisasterStatus,
)
from backend.app.spatial.geo import Coordinates

logger = logging.getLogger(__name__)

RELIEFWEB = "ReliefWeb"
GDACS = "GDACS"
RELIEFWEB_RSS = "ReliefWeb RSS"

NO_DESCRIPTION = "No description available"


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

_ITEM_RE = re.compile(r"<item\b[^>]*>(.*?)</item>", re.IGNORECASE | re.DOTALL)
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_MARKUP_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def _tag_text(block: str, tag: str) -> Optional[str]:
    """Inner text of the first ``<tag ...>..</tag>`` in ``block``, cleaned."""
    match = re.search(
        rf"<{re.escape(tag)}\b[^>]*>(.*?)</{re.escape(tag)}>",
        block,
        re.IGNORECASE | re.DOTALL,
    )
    if match is None:
        return None
    raw = _CDATA_RE.sub(lambda m: m.group(1), match.group(1))
    text = html.unescape(_MARKUP_RE.sub(" ", raw))
    text = _SPACE_RE.sub(" ", text).strip()
    return text or None


def _safe_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _to_iso(pub_date: Optional[str]) -> str:
    """RFC 822 date → ISO 8601 UTC; unparsable or missing dates become now."""
    if pub_date:
        try:
            parsed = parsedate_to_datetime(pub_date)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc).isoformat()
        except (TypeError, ValueError):
            logger.debug("Unparsable pubDate %r", pub_date)
    return datetime.now(timezone.utc).isoformat()


def _item_coordinates(block: str) -> Optional[Coordinates]:
    lat = _safe_float(_tag_text(block, "geo:lat"))
    lng = _safe_float(_tag_text(block, "geo:long"))
    if lat is None or lng is None:
        return None
    try:
        return Coordinates(lat, lng)
    except ValueError:
        return None


def parse_rss_items(xml_text: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Extract raw RSS items.

    Returns dicts with ``title, link, pub_date, description, guid,
    coordinates``. Items without a title are dropped. The guid falls back to
    the link, then to an md5 of the title.
    """
    items: List[Dict[str, Any]] = []
    for match in _ITEM_RE.finditer(xml_text or ""):
        if limit is not None and len(items) >= limit:
            break
        block = match.group(1)
        title = _tag_text(block, "title")
        if not title:
            continue
        link = _tag_text(block, "link")
        guid = (
            _tag_text(block, "guid")
            or link
            or hashlib.md5(title.encode("utf-8")).hexdigest()[:16]
        )
        items.append({
            "title": title,
            "link": link,
            "pub_date": _tag_text(block, "pubDate"),
            "description": _tag_text(block, "description"),
            "guid": guid,
            "coordinates": _item_coordinates(block),
        })
    return items


def _region_for(region: Optional[str], country: str) -> Optional[str]:
    if region:
        return region
    return country if country != UNKNOWN_COUNTRY else None


async def _get(
    client: httpx.AsyncClient,
    service: str,
    url: str,
    params: Optional[Sequence[Tuple[str, str]]] = None,
) -> httpx.Response:
    response = await client.get(url, params=params)
    if response.status_code >= 400:
        raise ExternalServiceError(
            service, f"HTTP {response.status_code}", url=str(response.url),
        )
    return response


# ═══════════════════════════════════════════════════════════════════════════
# ReliefWeb disasters API
# ═══════════════════════════════════════════════════════════════════════════

def reliefweb_params(countries: Sequence[str], appname: str, limit: int) -> List[Tuple[str, str]]:
    """Query string for the disasters endpoint, OR-filtered on country name."""
    params: List[Tuple[str, str]] = [
        ("appname", appname),
        ("limit", str(limit)),
        ("profile", "full"),
        ("filter[field]", "country.name"),
        ("filter[operator]", "OR"),
    ]
    params.extend(("filter[value][]", country) for country in countries)
    return params


def parse_reliefweb(payload: Dict[str, Any]) -> List[DisasterRecord]:
    records: List[DisasterRecord] = []
    for item in payload.get("data") or []:
        fields = item.get("fields") or {}
        item_id = item.get("id")
        name = fields.get("name")
        if item_id is None or not name:
            continue

        description = fields.get("description") or NO_DESCRIPTION
        text = f"{name} {description}"
        guess = classify(text)

        types = fields.get("type") or []
        type_name = types[0].get("name") if types else None
        countries = fields.get("country") or []
        country = (countries[0].get("name") if countries else None) or guess.country

        status_text = fields.get("status") or ""
        dates = fields.get("date") or {}

        records.append(DisasterRecord(
            id=f"reliefweb-{item_id}",
            name=name,
            type=infer_type(type_name) if type_name else guess.type,
            status=map_reliefweb_status(status_text),
            location=DisasterLocation(
                country=country,
                region=_region_for(guess.region, country),
            ),
            date=DateRange(
                start=dates.get("created") or _to_iso(None),
                end=dates.get("changed"),
            ),
            description=description,
            severity=max_severity(map_reliefweb_severity(status_text), guess.severity),
            source=RELIEFWEB,
            url=fields.get("url_alias") or fields.get("url"),
        ))
    return records


async def fetch_reliefweb(
    client: httpx.AsyncClient,
    *,
    url: str,
    countries: Sequence[str],
    appname: str,
    limit: int = 20,
) -> List[DisasterRecord]:
    response = await _get(client, RELIEFWEB, url, reliefweb_params(countries, appname, limit))
    return parse_reliefweb(response.json())


# ═══════════════════════════════════════════════════════════════════════════
# GDACS RSS
# ═══════════════════════════════════════════════════════════════════════════

def parse_gdacs(xml_text: str, limit: int = 15) -> List[DisasterRecord]:
    records: List[DisasterRecord] = []
    for item in parse_rss_items(xml_text, limit):
        description = item["description"] or item["title"]
        guess = classify(f"{item['title']} {description}")
        records.append(DisasterRecord(
            id=f"gdacs-{item['guid']}",
            name=item["title"],
            type=guess.type,
            status=DisasterStatus.ALERT,
            location=DisasterLocation(
                country=guess.country,
                region=_region_for(guess.region, guess.country),
                coordinates=item["coordinates"],
            ),
            date=DateRange(start=_to_iso(item["pub_date"])),
            description=description,
            severity=guess.severity,
            source=GDACS,
            url=item["link"],
        ))
    return records


async def fetch_gdacs(
    client: httpx.AsyncClient, *, url: str, limit: int = 15,
) -> List[DisasterRecord]:
    response = await _get(client, GDACS, url)
    return parse_gdacs(response.text, limit)


# ═══════════════════════════════════════════════════════════════════════════
# ReliefWeb updates RSS
# ═══════════════════════════════════════════════════════════════════════════

def parse_reliefweb_updates(xml_text: str, limit: int = 15) -> List[DisasterRecord]:
    """Headlines only: classification and description both use the title."""
    records: List[DisasterRecord] = []
    for item in parse_rss_items(xml_text, limit):
        title = item["title"]
        guess = classify(title)
        records.append(DisasterRecord(
            id=f"reliefweb-rss-{item['guid']}",
            name=title,
            type=guess.type,
            status=DisasterStatus.ALERT,
            location=DisasterLocation(
                country=guess.country,
                region=_region_for(guess.region, guess.country),
                coordinates=item["coordinates"],
            ),
            date=DateRange(start=_to_iso(item["pub_date"])),
            description=title,
            severity=guess.severity,
            source=RELIEFWEB_RSS,
            url=item["link"],
        ))
    return records


async def fetch_reliefweb_updates(
    client: httpx.AsyncClient, *, url: str, limit: int = 15,
) -> List[DisasterRecord]:
    response = await _get(client, RELIEFWEB_RSS, url)
    return parse_reliefweb_updates(response.text, limit)
