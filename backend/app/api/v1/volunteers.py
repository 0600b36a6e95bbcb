"""
FastAPI routes: volunteer registration, availability and proximity search.

    POST  /api/volunteers                              — register
    GET   /api/volunteers                              — available + verified
    GET   /api/volunteers/nearby?lat=&lng=&radius_km=  — matcher output
    GET   /api/volunteers/user/{user_id}               — by owning user
    PATCH /api/volunteers/{user_id}/availability       — toggle availability
    PATCH /api/volunteers/{volunteer_id}/verification  — verify / reject
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from backend.app.api.dependencies import get_broadcaster, get_matcher, get_storage
from backend.app.api.schemas import AvailabilityUpdate, VerificationUpdate, VolunteerCreate
from backend.app.core.config import settings
from backend.app.core.errors import NotFoundError
from backend.app.realtime.broadcaster import (
    NEW_VOLUNTEER,
    VOLUNTEER_AVAILABILITY_UPDATE,
    ConnectionManager,
)
from backend.app.storage.base import Storage
from backend.app.volunteers.matcher import ProximityMatcher

router = APIRouter(prefix="/api/volunteers", tags=["volunteers"])


@router.post("", summary="Register a volunteer")
async def register_volunteer(
    body: VolunteerCreate,
    storage: Storage = Depends(get_storage),
    broadcaster: ConnectionManager = Depends(get_broadcaster),
) -> Dict[str, Any]:
    volunteer = await storage.create_volunteer(
        user_id=body.user_id,
        skills=body.skills,
        availability=body.availability,
        location=body.location,
        coordinates=body.coordinates_or_none(),
        vehicle_type=body.vehicle_type,
    )
    await broadcaster.broadcast(NEW_VOLUNTEER, volunteer.to_dict())
    return {"volunteer": volunteer.to_dict()}


@router.get("", summary="List available, verified volunteers")
async def list_available(storage: Storage = Depends(get_storage)) -> Dict[str, Any]:
    volunteers = await storage.get_available_volunteers()
    return {"volunteers": [v.to_dict() for v in volunteers]}


@router.get(
    "/nearby",
    summary="Find volunteers near a point",
    description="Reachable volunteers within radius_km, closest first.",
)
async def nearby(
    lat: float = Query(..., ge=-90.0, le=90.0, examples=[25.7617]),
    lng: float = Query(..., ge=-180.0, le=180.0, examples=[-80.1918]),
    radius_km: Optional[float] = Query(None, gt=0.0, le=settings.MAX_RADIUS_KM),
    matcher: ProximityMatcher = Depends(get_matcher),
) -> Dict[str, Any]:
    radius = radius_km if radius_km is not None else matcher.default_radius_km
    matches = await matcher.find_nearby_volunteers(lat, lng, radius)
    return {
        "center": {"lat": lat, "lng": lng},
        "radiusKm": radius,
        "count": len(matches),
        "volunteers": [m.to_dict() for m in matches],
    }


@router.get("/user/{user_id}", summary="Get a volunteer by owning user")
async def get_by_user(user_id: str, storage: Storage = Depends(get_storage)) -> Dict[str, Any]:
    volunteer = await storage.get_volunteer_by_user_id(user_id)
    if volunteer is None:
        raise NotFoundError("Volunteer", user_id=user_id)
    return {"volunteer": volunteer.to_dict()}


@router.patch("/{user_id}/availability", summary="Set volunteer availability")
async def set_availability(
    user_id: str,
    body: AvailabilityUpdate,
    storage: Storage = Depends(get_storage),
    broadcaster: ConnectionManager = Depends(get_broadcaster),
) -> Dict[str, Any]:
    volunteer = await storage.update_volunteer_availability(user_id, body.availability)
    if volunteer is None:
        raise NotFoundError("Volunteer", user_id=user_id)
    await broadcaster.broadcast(VOLUNTEER_AVAILABILITY_UPDATE, volunteer.to_dict())
    return {"volunteer": volunteer.to_dict()}


@router.patch("/{volunteer_id}/verification", summary="Set volunteer verification status")
async def set_verification(
    volunteer_id: str,
    body: VerificationUpdate,
    storage: Storage = Depends(get_storage),
) -> Dict[str, Any]:
    volunteer = await storage.update_volunteer_verification(volunteer_id, body.status)
    if volunteer is None:
        raise NotFoundError("Volunteer", id=volunteer_id)
    return {"volunteer": volunteer.to_dict()}
