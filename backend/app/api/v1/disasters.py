"""
FastAPI routes: aggregated disaster information.

    GET  /api/disasters            — all records (cached up to 30 min)
    GET  /api/disasters/active     — status ongoing or alert
    GET  /api/disasters/cache      — cache state
    GET  /api/disasters/{id}       — one record
    POST /api/disasters/refresh    — drop the cache and refetch

Responses are bare JSON arrays / objects in the DisasterRecord wire shape.
Upstream outages never surface here as errors; the aggregator degrades to
partial, stale or empty data instead.
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from backend.app.api.dependencies import get_aggregator
from backend.app.core.errors import NotFoundError
from backend.app.feeds.aggregator import DisasterFeedAggregator

router = APIRouter(prefix="/api/disasters", tags=["disasters"])


@router.get("", summary="All disaster records")
async def list_disasters(
    aggregator: DisasterFeedAggregator = Depends(get_aggregator),
) -> List[Dict[str, Any]]:
    return [d.to_dict() for d in await aggregator.get_disaster_data()]


@router.get("/active", summary="Ongoing and alert-level disasters")
async def list_active(
    aggregator: DisasterFeedAggregator = Depends(get_aggregator),
) -> List[Dict[str, Any]]:
    return [d.to_dict() for d in await aggregator.get_active_disasters()]


@router.get("/cache", summary="Disaster feed cache state")
async def cache_state(
    aggregator: DisasterFeedAggregator = Depends(get_aggregator),
) -> Dict[str, Any]:
    return aggregator.cache_info()


@router.post("/refresh", summary="Force a refetch from every feed")
async def refresh(
    aggregator: DisasterFeedAggregator = Depends(get_aggregator),
) -> List[Dict[str, Any]]:
    aggregator.clear_cache()
    return [d.to_dict() for d in await aggregator.get_disaster_data(force_refresh=True)]


@router.get("/{disaster_id}", summary="One disaster record")
async def get_disaster(
    disaster_id: str,
    aggregator: DisasterFeedAggregator = Depends(get_aggregator),
) -> Dict[str, Any]:
    record = await aggregator.get_disaster_by_id(disaster_id)
    if record is None:
        raise NotFoundError("Disaster", id=disaster_id)
    return record.to_dict()
