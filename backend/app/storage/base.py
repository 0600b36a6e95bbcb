"""
base.py — Storage collaborator contract.

The matching and notification services only depend on two reads:

    get_available_volunteers()  → volunteers with availability=True and
                                  verification_status=VERIFIED
    get_user_by_id(user_id)     → owning user (phone / display name)

The remaining methods back the emergency-request and volunteer endpoints.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from backend.app.spatial.geo import Coordinates
from backend.app.storage.models import (
    EmergencyRequest,
    EmergencyType,
    RequestStatus,
    Urgency,
    User,
    VerificationStatus,
    Volunteer,
)


class Storage(ABC):
    """Async persistence interface."""

    # ── Users ──

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    # ── Emergency requests ──

    @abstractmethod
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
        ...

    @abstractmethod
    async def get_emergency_request(self, request_id: str) -> Optional[EmergencyRequest]:
        ...

    @abstractmethod
    async def get_active_emergency_requests(self) -> List[EmergencyRequest]:
        """All requests that are not closed."""

    @abstractmethod
    async def get_user_emergency_requests(self, user_id: str) -> List[EmergencyRequest]:
        ...

    @abstractmethod
    async def update_emergency_request_status(
        self,
        request_id: str,
        status: RequestStatus,
        assigned_volunteer_id: Optional[str] = None,
    ) -> Optional[EmergencyRequest]:
        """
        Move a request to ``status``.

        Returns None if the request does not exist; raises ConflictError
        if the transition is not allowed (e.g. the request is closed).
        """

    # ── Volunteers ──

    @abstractmethod
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
        ...

    @abstractmethod
    async def get_volunteer(self, volunteer_id: str) -> Optional[Volunteer]:
        ...

    @abstractmethod
    async def get_volunteer_by_user_id(self, user_id: str) -> Optional[Volunteer]:
        ...

    @abstractmethod
    async def get_available_volunteers(self) -> List[Volunteer]:
        ...

    @abstractmethod
    async def update_volunteer_availability(
        self, user_id: str, availability: bool,
    ) -> Optional[Volunteer]:
        ...

    @abstractmethod
    async def update_volunteer_verification(
        self, volunteer_id: str, status: VerificationStatus,
    ) -> Optional[Volunteer]:
        ...

    # ── Introspection ──

    @abstractmethod
    def counts(self) -> Dict[str, int]:
        """Number of stored users, volunteers and emergency requests."""
