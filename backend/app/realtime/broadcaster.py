"""
broadcaster.py — WebSocket fan-out for live dashboard updates.

Every event is sent as ``{"type": <event>, "data": <payload>}``.

Events emitted by the API:
    new_emergency_request           — after intake + volunteer dispatch
    request_status_update           — emergency request lifecycle change
    new_volunteer                   — volunteer registration
    volunteer_availability_update   — availability toggle
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

NEW_EMERGENCY_REQUEST = "new_emergency_request"
REQUEST_STATUS_UPDATE = "request_status_update"
NEW_VOLUNTEER = "new_volunteer"
VOLUNTEER_AVAILABILITY_UPDATE = "volunteer_availability_update"


class ConnectionManager:
    """Tracks open sockets and pushes events to all of them."""

    def __init__(self):
        self.active: Set[WebSocket] = set()

    @property
    def count(self) -> int:
        return len(self.active)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.active.add(ws)
        logger.info("WebSocket connected (%d open)", self.count)

    def disconnect(self, ws: WebSocket) -> None:
        self.active.discard(ws)
        logger.info("WebSocket disconnected (%d open)", self.count)

    async def broadcast(self, event_type: str, data: Any) -> int:
        """Send an event to every socket; returns how many received it."""
        payload: Dict[str, Any] = {"type": event_type, "data": data}
        dead: Set[WebSocket] = set()
        for ws in list(self.active):
            try:
                await ws.send_json(payload)
            except Exception as exc:
                logger.debug("Dropping dead WebSocket: %s", exc)
                dead.add(ws)
        self.active -= dead
        return self.count
