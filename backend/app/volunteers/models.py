"""
models.py — Transient structures for one matching / notification cycle.

Defines:
    • EmergencySummary      — the slice of an emergency request embedded in alerts
    • VolunteerNotification — a matched, reachable volunteer plus distance
    • DeliveryStatus        — per-recipient delivery state
    • DeliveryAttempt       — single send attempt record
    • NotificationResult    — aggregate outcome returned to the intake handler

None of these are persisted; they live for the duration of one dispatch.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from backend.app.storage.models import EmergencyRequest


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class DeliveryStatus(str, Enum):
    """Delivery state machine per recipient."""
    PENDING   = "pending"     # queued, not yet sent
    SENDING   = "sending"     # send in progress
    DELIVERED = "delivered"   # provider accepted the message
    FAILED    = "failed"      # all retries exhausted
    SKIPPED   = "skipped"     # recipient has no usable contact
    TIMED_OUT = "timed_out"   # delivery deadline passed


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EmergencySummary:
    """Fields of an emergency request that go into a volunteer alert."""
    id: str
    type: str
    urgency: str
    title: str
    description: str
    location: str
    people_count: int

    @classmethod
    def from_request(cls, request: EmergencyRequest) -> "EmergencySummary":
        return cls(
            id=request.id,
            type=request.type.value,
            urgency=request.urgency.value,
            title=request.title,
            description=request.description,
            location=request.location,
            people_count=request.people_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "urgency": self.urgency,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "peopleCount": self.people_count,
        }


@dataclass(frozen=True)
class VolunteerNotification:
    """
    A volunteer the matcher found in range and reachable by phone.

    Attributes
    ----------
    volunteer_id : str
    phone : str
        Contact number of the owning user.
    name : str
        Display name of the owning user.
    distance_km : float
        Great-circle distance to the emergency, rounded to 2 decimals.
    emergency : EmergencySummary | None
        Attached by the dispatcher; the matcher leaves it empty.
    """
    volunteer_id: str
    phone: str
    name: str
    distance_km: float
    emergency: Optional[EmergencySummary] = None

    def with_emergency(self, emergency: EmergencySummary) -> "VolunteerNotification":
        return replace(self, emergency=emergency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "volunteerId": self.volunteer_id,
            "phone": self.phone,
            "name": self.name,
            "distance": self.distance_km,
            "emergencyRequest": self.emergency.to_dict() if self.emergency else None,
        }


@dataclass
class DeliveryAttempt:
    """Record of a single delivery attempt to one volunteer."""
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    channel: str = "sms"
    volunteer_id: str = ""
    status: DeliveryStatus = DeliveryStatus.PENDING
    attempted_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None
    retry_count: int = 0
    error_message: Optional[str] = None
    provider_response: Optional[Dict[str, Any]] = None

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt_id": self.attempt_id,
            "channel": self.channel,
            "volunteer_id": self.volunteer_id,
            "status": self.status.value,
            "attempted_at": self.attempted_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "retry_count": self.retry_count,
            "error_message": self.error_message,
        }


@dataclass
class NotificationResult:
    """Outcome of notifying volunteers about one emergency request."""
    success: bool
    notified_count: int = 0
    errors: List[str] = field(default_factory=list)
    message: Optional[str] = None
    attempts: List[DeliveryAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": self.success,
            "notifiedCount": self.notified_count,
            "errors": list(self.errors),
        }
        if self.message:
            body["message"] = self.message
        return body
