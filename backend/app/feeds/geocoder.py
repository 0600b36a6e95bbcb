"""
geocoder.py — Place name → coordinates via a Nominatim-compatible search API.

    GET {url}?format=json&q={query}&limit=1
    → [{"lat": "30.90", "lon": "75.85", ...}]

Best-effort: every failure is logged and returns None.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from backend.app.spatial.geo import Coordinates

logger = logging.getLogger(__name__)

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"


async def geocode(
    client: httpx.AsyncClient,
    query: str,
    *,
    url: str = NOMINATIM_SEARCH_URL,
    user_agent: str = "rescuehub-relief-api/1.0",
) -> Optional[Coordinates]:
    try:
        response = await client.get(
            url,
            params={"format": "json", "q": query, "limit": "1"},
            headers={"User-Agent": user_agent},
        )
        if response.status_code >= 400:
            logger.warning("Geocoding %r failed: HTTP %d", query, response.status_code)
            return None
        results = response.json()
        if not results:
            logger.debug("Geocoding %r: no match", query)
            return None
        return Coordinates(float(results[0]["lat"]), float(results[0]["lon"]))
    except (httpx.HTTPError, ValueError, KeyError, TypeError, IndexError) as exc:
        logger.warning("Geocoding %r failed: %s", query, exc)
        return None
