"""
FastAPI routes: emergency request intake and lifecycle.

    POST  /api/emergency-requests                    — persist + notify volunteers
    GET   /api/emergency-requests                    — active (not closed) requests
    GET   /api/emergency-requests/{id}               — one request
    PATCH /api/emergency-requests/{id}/status        — lifecycle transition
    GET   /api/users/{user_id}/emergency-requests    — a user's requests
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from backend.app.api.dependencies import get_broadcaster, get_dispatcher, get_storage
from backend.app.api.schemas import EmergencyRequestCreate, StatusUpdate
from backend.app.core.errors import NotFoundError
from backend.app.realtime.broadcaster import (
    NEW_EMERGENCY_REQUEST,
    REQUEST_STATUS_UPDATE,
    ConnectionManager,
)
from backend.app.storage.base import Storage
from backend.app.volunteers.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["emergency-requests"])


@router.post(
    "/emergency-requests",
    summary="Submit an emergency request",
    description=(
        "Stores the request, alerts verified volunteers within range by SMS "
        "and reports how many were reached."
    ),
)
async def create_emergency_request(
    body: EmergencyRequestCreate,
    storage: Storage = Depends(get_storage),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    broadcaster: ConnectionManager = Depends(get_broadcaster),
) -> Dict[str, Any]:
    request = await storage.create_emergency_request(
        user_id=body.user_id,
        type=body.type,
        urgency=body.urgency,
        title=body.title,
        description=body.description,
        location=body.location,
        coordinates=body.coordinates_or_none(),
        people_count=body.people_count,
    )

    result = await dispatcher.notify_nearby_volunteers(request)
    if not result.success:
        logger.warning(
            "Volunteer notification failed for %s: %s", request.id, "; ".join(result.errors),
            extra={"emergency_id": request.id},
        )

    await broadcaster.broadcast(NEW_EMERGENCY_REQUEST, request.to_dict())

    return {
        "emergencyRequest": request.to_dict(),
        "notification": result.to_dict(),
    }


@router.get("/emergency-requests", summary="List active emergency requests")
async def list_active_requests(storage: Storage = Depends(get_storage)) -> Dict[str, Any]:
    requests = await storage.get_active_emergency_requests()
    return {"requests": [r.to_dict() for r in requests]}


@router.get("/emergency-requests/{request_id}", summary="Get an emergency request")
async def get_request(request_id: str, storage: Storage = Depends(get_storage)) -> Dict[str, Any]:
    request = await storage.get_emergency_request(request_id)
    if request is None:
        raise NotFoundError("Emergency request", id=request_id)
    return {"request": request.to_dict()}


@router.patch(
    "/emergency-requests/{request_id}/status",
    summary="Update emergency request status",
    description="Closed requests cannot be changed (409).",
)
async def update_status(
    request_id: str,
    body: StatusUpdate,
    storage: Storage = Depends(get_storage),
    broadcaster: ConnectionManager = Depends(get_broadcaster),
) -> Dict[str, Any]:
    request = await storage.update_emergency_request_status(
        request_id, body.status, body.assigned_volunteer_id,
    )
    if request is None:
        raise NotFoundError("Emergency request", id=request_id)

    await broadcaster.broadcast(REQUEST_STATUS_UPDATE, request.to_dict())
    return {"request": request.to_dict()}


@router.get("/users/{user_id}/emergency-requests", summary="List a user's emergency requests")
async def list_user_requests(user_id: str, storage: Storage = Depends(get_storage)) -> Dict[str, Any]:
    requests = await storage.get_user_emergency_requests(user_id)
    return {"requests": [r.to_dict() for r in requests]}
