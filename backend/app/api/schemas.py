"""
Pydantic schemas for the relief-coordination API.

Request bodies accept the camelCase keys the dashboards send
(``userId``, ``peopleCount``) as well as snake_case. Responses are built
from the domain dataclasses' ``to_dict()`` and are not modelled here.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.spatial.geo import Coordinates
from backend.app.storage.models import (
    EmergencyType,
    RequestStatus,
    Urgency,
    VerificationStatus,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------

class CoordinatesInput(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0, examples=[25.7617])
    lng: float = Field(..., ge=-180.0, le=180.0, examples=[-80.1918])

    def to_coordinates(self) -> Coordinates:
        return Coordinates(self.lat, self.lng)


def _coords(value: Optional[CoordinatesInput]) -> Optional[Coordinates]:
    return value.to_coordinates() if value is not None else None


# ---------------------------------------------------------------------------
# Emergency requests
# ---------------------------------------------------------------------------

class EmergencyRequestCreate(_CamelModel):
    """Request body for POST /api/emergency-requests."""
    user_id: str = Field(..., alias="userId", examples=["user_1"])
    type: EmergencyType = Field(..., examples=["medical"])
    urgency: Urgency = Field(..., examples=["critical"])
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1, examples=["123 Main St, Miami, FL"])
    coordinates: Optional[CoordinatesInput] = None
    people_count: int = Field(1, alias="peopleCount", ge=1)

    @field_validator("title", "description", "location")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def coordinates_or_none(self) -> Optional[Coordinates]:
        return _coords(self.coordinates)


class StatusUpdate(_CamelModel):
    """Request body for PATCH /api/emergency-requests/{id}/status."""
    status: RequestStatus
    assigned_volunteer_id: Optional[str] = Field(None, alias="assignedVolunteerId")


# ---------------------------------------------------------------------------
# Volunteers
# ---------------------------------------------------------------------------

class VolunteerCreate(_CamelModel):
    """Request body for POST /api/volunteers."""
    user_id: str = Field(..., alias="userId", examples=["user_2"])
    skills: List[str] = Field(default_factory=list, examples=[["first_aid", "boat_operation"]])
    availability: bool = True
    location: Optional[str] = None
    coordinates: Optional[CoordinatesInput] = None
    vehicle_type: Optional[str] = Field(None, alias="vehicleType", examples=["boat"])

    def coordinates_or_none(self) -> Optional[Coordinates]:
        return _coords(self.coordinates)


class AvailabilityUpdate(BaseModel):
    availability: bool


class VerificationUpdate(BaseModel):
    status: VerificationStatus
