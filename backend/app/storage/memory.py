"""
memory.py — In-process storage backend.

Holds users, volunteers and emergency requests in dictionaries keyed by id.
When ``seed=True`` a small Miami / Fort Lauderdale data set is loaded so the
API and matcher have something to work with on a fresh start.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from backend.app.core.errors import ConflictError, NotFoundError
from backend.app.spatial.geo import Coordinates
from backend.app.storage.base import Storage
from backend.app.storage.models import (
    EmergencyRequest,
    EmergencyType,
    RequestStatus,
    Urgency,
    User,
    UserRole,
    VerificationStatus,
    Volunteer,
    can_transition,
    generate_id,
)

logger = logging.getLogger(__name__)


class MemoryStorage(Storage):
    """Dictionary-backed implementation of :class:`Storage`."""

    def __init__(self, seed: bool = True):
        self._users: Dict[str, User] = {}
        self._volunteers: Dict[str, Volunteer] = {}
        self._requests: Dict[str, EmergencyRequest] = {}
        if seed:
            self._seed()

    # ═══════════════════════════════════════════════════════════════════════
    # Sample data
    # ═══════════════════════════════════════════════════════════════════════

    def _seed(self) -> None:
        users = [
            User("user_1", "john_doe", "john@example.com", "John Doe",
                 UserRole.SURVIVOR, "+1234567890", True),
            User("user_2", "jane_smith", "jane@example.com", "Jane Smith",
                 UserRole.DONOR, "+1234567891", True),
            User("user_3", "dr_mike", "mike@example.com", "Dr. Mike Johnson",
                 UserRole.VOLUNTEER, "+1234567892", True),
            User("user_4", "sarah_w", "sarah@example.com", "Sarah Williams",
                 UserRole.VOLUNTEER, "+1234567893", True),
            User("user_5", "alex_chen", "alex@example.com", "Alex Chen",
                 UserRole.VOLUNTEER, "+1234567894", True),
        ]
        for user in users:
            self._users[user.id] = user

        volunteers = [
            Volunteer(
                id="vol_1", user_id="user_3",
                skills=["medical", "first_aid", "emergency_response"],
                location="Miami, FL",
                coordinates=Coordinates(25.7617, -80.1918),
                vehicle_type="ambulance", rating=4.8, total_responses=15,
                verification_status=VerificationStatus.VERIFIED,
            ),
            Volunteer(
                id="vol_2", user_id="user_4",
                skills=["fire_safety", "rescue", "first_aid"],
                location="Miami Beach, FL",
                coordinates=Coordinates(25.7907, -80.1300),
                vehicle_type="fire_truck", rating=4.9, total_responses=22,
                verification_status=VerificationStatus.VERIFIED,
            ),
            Volunteer(
                id="vol_3", user_id="user_5",
                skills=["water_rescue", "boat_operation", "search_rescue"],
                location="Fort Lauderdale, FL",
                coordinates=Coordinates(26.1224, -80.1373),
                vehicle_type="boat", rating=4.7, total_responses=18,
                verification_status=VerificationStatus.VERIFIED,
            ),
        ]
        for volunteer in volunteers:
            self._volunteers[volunteer.id] = volunteer

        request = EmergencyRequest(
            id="req_1", user_id="user_1",
            type=EmergencyType.MEDICAL, urgency=Urgency.CRITICAL,
            title="Medical Emergency - Heart Attack",
            description="Elderly person experiencing chest pain and difficulty breathing",
            location="123 Main St, Miami, FL",
            coordinates=Coordinates(25.7617, -80.1918),
            people_count=1,
        )
        self._requests[request.id] = request

        logger.info(
            "Seeded storage: %d users, %d volunteers, %d requests",
            len(self._users), len(self._volunteers), len(self._requests),
        )

    # ═══════════════════════════════════════════════════════════════════════
    # Users
    # ═══════════════════════════════════════════════════════════════════════

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def add_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    # ═══════════════════════════════════════════════════════════════════════
    # Emergency requests
    # ═══════════════════════════════════════════════════════════════════════

    async def create_emergency_request(
        self,
        *,
        user_id: str,
        type: EmergencyType,
        urgency: Urgency,
        title: str,
        description: str,
        location: str,
        coordinates: Optional[Coordinates] = None,
        people_count: int = 1,
    ) -> EmergencyRequest:
        if user_id not in self._users:
            raise NotFoundError("User", user_id=user_id)

        request = EmergencyRequest(
            id=generate_id("req"),
            user_id=user_id,
            type=type,
            urgency=urgency,
            title=title,
            description=description,
            location=location,
            coordinates=coordinates,
            people_count=people_count,
        )
        self._requests[request.id] = request
        logger.info(
            "Emergency request created: %s (%s/%s)",
            request.id, type.value, urgency.value,
            extra={"emergency_id": request.id},
        )
        return request

    async def get_emergency_request(self, request_id: str) -> Optional[EmergencyRequest]:
        return self._requests.get(request_id)

    async def get_active_emergency_requests(self) -> List[EmergencyRequest]:
        return [
            r for r in self._requests.values()
            if r.status != RequestStatus.CLOSED
        ]

    async def get_user_emergency_requests(self, user_id: str) -> List[EmergencyRequest]:
        return [r for r in self._requests.values() if r.user_id == user_id]

    async def update_emergency_request_status(
        self,
        request_id: str,
        status: RequestStatus,
        assigned_volunteer_id: Optional[str] = None,
    ) -> Optional[EmergencyRequest]:
        request = self._requests.get(request_id)
        if request is None:
            return None

        if not can_transition(request.status, status):
            raise ConflictError(
                f"Cannot move request from {request.status.value} to {status.value}",
                request_id=request_id,
                current_status=request.status.value,
                requested_status=status.value,
            )

        request.status = status
        if assigned_volunteer_id is not None:
            request.assigned_volunteer_id = assigned_volunteer_id
        request.updated_at = datetime.now(timezone.utc)
        return request

    # ═══════════════════════════════════════════════════════════════════════
    # Volunteers
    # ═══════════════════════════════════════════════════════════════════════

    async def create_volunteer(
        self,
        *,
        user_id: str,
        skills: List[str],
        availability: bool = True,
        location: Optional[str] = None,
        coordinates: Optional[Coordinates] = None,
        vehicle_type: Optional[str] = None,
    ) -> Volunteer:
        if user_id not in self._users:
            raise NotFoundError("User", user_id=user_id)
        if await self.get_volunteer_by_user_id(user_id) is not None:
            raise ConflictError("User is already registered as a volunteer", user_id=user_id)

        volunteer = Volunteer(
            id=generate_id("vol"),
            user_id=user_id,
            skills=list(skills),
            availability=availability,
            location=location,
            coordinates=coordinates,
            vehicle_type=vehicle_type,
        )
        self._volunteers[volunteer.id] = volunteer
        logger.info(
            "Volunteer registered: %s (pending verification)", volunteer.id,
            extra={"volunteer_id": volunteer.id},
        )
        return volunteer

    def add_volunteer(self, volunteer: Volunteer) -> Volunteer:
        self._volunteers[volunteer.id] = volunteer
        return volunteer

    async def get_volunteer(self, volunteer_id: str) -> Optional[Volunteer]:
        return self._volunteers.get(volunteer_id)

    async def get_volunteer_by_user_id(self, user_id: str) -> Optional[Volunteer]:
        for volunteer in self._volunteers.values():
            if volunteer.user_id == user_id:
                return volunteer
        return None

    async def get_available_volunteers(self) -> List[Volunteer]:
        return [
            v for v in self._volunteers.values()
            if v.availability and v.verification_status == VerificationStatus.VERIFIED
        ]

    async def update_volunteer_availability(
        self, user_id: str, availability: bool,
    ) -> Optional[Volunteer]:
        volunteer = await self.get_volunteer_by_user_id(user_id)
        if volunteer is None:
            return None
        volunteer.availability = availability
        return volunteer

    async def update_volunteer_verification(
        self, volunteer_id: str, status: VerificationStatus,
    ) -> Optional[Volunteer]:
        volunteer = self._volunteers.get(volunteer_id)
        if volunteer is None:
            return None
        volunteer.verification_status = status
        return volunteer

    def counts(self) -> Dict[str, int]:
        return {
            "users": len(self._users),
            "volunteers": len(self._volunteers),
            "emergency_requests": len(self._requests),
        }
