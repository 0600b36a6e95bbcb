"""
models.py — Entities owned by the storage collaborator.

Defines:
    • User              — account holding contact details (phone, name)
    • Volunteer         — registered helper with skills and location
    • EmergencyRequest  — a submitted need for help and its lifecycle

═══════════════════════════════════════════════════════════════════════════
EMERGENCY REQUEST LIFECYCLE
═══════════════════════════════════════════════════════════════════════════

    pending ──► assigned ──► enroute ──► resolved ──► closed
       │            │           │
       └────────────┴───────────┴──────► resolved / closed

    A request may fall back from assigned/enroute to an earlier state when
    a volunteer drops out. Once closed it is immutable.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from backend.app.spatial.geo import Coordinates


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class UserRole(str, Enum):
    SURVIVOR  = "survivor"
    VOLUNTEER = "volunteer"
    NGO       = "ngo"
    DONOR     = "donor"
    ADMIN     = "admin"


class EmergencyType(str, Enum):
    """Category of help requested."""
    MEDICAL             = "medical"
    FOOD                = "food"
    WATER               = "water"
    SHELTER             = "shelter"
    RESCUE              = "rescue"
    NATURAL_DISASTER    = "natural_disaster"
    FIRE                = "fire"
    FLOOD               = "flood"
    STRUCTURAL_COLLAPSE = "structural_collapse"
    MISSING_PERSON      = "missing_person"
    VOICE_EMERGENCY     = "voice_emergency"
    OTHER               = "other"


class Urgency(str, Enum):
    LOW      = "low"
    MEDIUM   = "medium"
    CRITICAL = "critical"


class RequestStatus(str, Enum):
    PENDING  = "pending"
    ASSIGNED = "assigned"
    ENROUTE  = "enroute"
    RESOLVED = "resolved"
    CLOSED   = "closed"


class VerificationStatus(str, Enum):
    PENDING  = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


ALLOWED_TRANSITIONS: Dict[RequestStatus, FrozenSet[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({
        RequestStatus.ASSIGNED, RequestStatus.RESOLVED, RequestStatus.CLOSED,
    }),
    RequestStatus.ASSIGNED: frozenset({
        RequestStatus.PENDING, RequestStatus.ENROUTE,
        RequestStatus.RESOLVED, RequestStatus.CLOSED,
    }),
    RequestStatus.ENROUTE: frozenset({
        RequestStatus.ASSIGNED, RequestStatus.RESOLVED, RequestStatus.CLOSED,
    }),
    RequestStatus.RESOLVED: frozenset({RequestStatus.CLOSED}),
    RequestStatus.CLOSED: frozenset(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    """True if a request in ``current`` may move to ``target``."""
    if current == RequestStatus.CLOSED:
        return False
    return current == target or target in ALLOWED_TRANSITIONS[current]


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: str
    username: str
    email: str
    full_name: str
    role: UserRole = UserRole.SURVIVOR
    phone: Optional[str] = None
    is_verified: bool = False
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "fullName": self.full_name,
            "role": self.role.value,
            "phone": self.phone,
            "isVerified": self.is_verified,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class Volunteer:
    """
    A registered helper.

    Only volunteers with ``availability=True`` and a VERIFIED status are
    returned by ``Storage.get_available_volunteers``.
    """
    id: str
    user_id: str
    skills: List[str] = field(default_factory=list)
    availability: bool = True
    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    vehicle_type: Optional[str] = None
    rating: float = 0.0
    total_responses: int = 0
    verification_status: VerificationStatus = VerificationStatus.PENDING
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "skills": list(self.skills),
            "availability": self.availability,
            "location": self.location,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "vehicleType": self.vehicle_type,
            "rating": round(self.rating, 2),
            "totalResponses": self.total_responses,
            "verificationStatus": self.verification_status.value,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class EmergencyRequest:
    id: str
    user_id: str
    type: EmergencyType
    urgency: Urgency
    title: str
    description: str
    location: str
    coordinates: Optional[Coordinates] = None
    people_count: int = 1
    status: RequestStatus = RequestStatus.PENDING
    assigned_volunteer_id: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type.value,
            "urgency": self.urgency.value,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "peopleCount": self.people_count,
            "status": self.status.value,
            "assignedVolunteerId": self.assigned_volunteer_id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
