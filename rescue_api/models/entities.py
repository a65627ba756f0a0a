# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the rescue coordination platform.
"""

import re
from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from .base import BaseEntity, utcnow
from .enums import (
    RequestStatus,
    RequestCategory,
    RequestPriority,
    LocationType,
    TeamStatus,
    TeamSpecialization,
    UserRole
)
from ..domain.errors import StateError
from ..domain.transitions import ensure_transition, append_note


DEFAULT_APPROVAL_NOTE = "Approved by coordinator"


class RescueRequest(BaseEntity):
    """A citizen's request for help, moved through triage by coordinators."""

    category: RequestCategory = Field(..., description="Kind of help requested")
    province_city: str = Field(..., min_length=1, max_length=100, description="Province or city")
    phone_number: str = Field(..., min_length=1, max_length=20, description="Contact phone number")
    description: str = Field(..., min_length=10, max_length=5000, description="Situation description")
    num_people: int = Field(default=1, ge=1, description="Number of people affected")
    priority: Optional[RequestPriority] = Field(None, description="Triage priority")
    status: RequestStatus = Field(default=RequestStatus.NEW, description="Lifecycle status")
    location_type: LocationType = Field(..., description="GPS or manually entered location")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="GPS latitude")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="GPS longitude")
    address: Optional[str] = Field(None, description="Manually entered address")
    media_urls: List[str] = Field(default_factory=list, description="Attached image/video URLs")
    user_id: Optional[str] = Field(None, description="Creator user ID, null when anonymous")
    verified_by: Optional[str] = Field(None, description="User ID who approved or rejected")
    verified_at: Optional[datetime] = Field(None, description="Approval/rejection timestamp")
    assigned_by: Optional[str] = Field(None, description="User ID who assigned the team")
    assigned_team_id: Optional[str] = Field(None, description="Assigned rescue team ID")
    assigned_at: Optional[datetime] = Field(None, description="Assignment timestamp")
    completed_at: Optional[datetime] = Field(None, description="Mission completion timestamp")
    notes: Optional[str] = Field(None, description="Triage audit trail")

    @field_validator('province_city', 'phone_number', 'description', mode='before')
    @classmethod
    def strip_text(cls, v):
        """Trim surrounding whitespace before length checks."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError('Field cannot be empty')
        return v

    @model_validator(mode='after')
    def validate_location(self):
        """Exactly one of coordinates or address, as selected by location_type."""
        if self.location_type == LocationType.GPS.value:
            if self.latitude is None or self.longitude is None:
                raise ValueError('GPS coordinates are required for GPS location type')
        elif self.location_type == LocationType.MANUAL.value:
            if not self.address or not self.address.strip():
                raise ValueError('Address is required for manual location type')
        return self

    def _touch(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        self.updated_at = utcnow()
        changes['updated_at'] = self.updated_at
        return changes

    def approve(self, actor_id: str, notes: Optional[str] = None) -> Dict[str, Any]:
        """Move to pending_verification. Returns the changed fields."""
        ensure_transition(self.status, RequestStatus.PENDING_VERIFICATION)

        self.status = RequestStatus.PENDING_VERIFICATION
        self.verified_by = actor_id
        self.verified_at = utcnow()
        self.notes = notes if notes and notes.strip() else DEFAULT_APPROVAL_NOTE
        return self._touch({
            'status': self.status,
            'verified_by': self.verified_by,
            'verified_at': self.verified_at,
            'notes': self.notes
        })

    def reject(self, actor_id: str, reason: str) -> Dict[str, Any]:
        """Move to rejected. Returns the changed fields."""
        ensure_transition(self.status, RequestStatus.REJECTED)

        self.status = RequestStatus.REJECTED
        self.verified_by = actor_id
        self.verified_at = utcnow()
        self.notes = f"Rejected: {reason.strip()}"
        return self._touch({
            'status': self.status,
            'verified_by': self.verified_by,
            'verified_at': self.verified_at,
            'notes': self.notes
        })

    def assign_team(self, team_id: str, actor_id: str) -> Dict[str, Any]:
        """Move to on_mission with the given team. Returns the changed fields."""
        ensure_transition(self.status, RequestStatus.ON_MISSION)

        self.status = RequestStatus.ON_MISSION
        self.assigned_team_id = team_id
        self.assigned_at = utcnow()
        self.assigned_by = actor_id
        return self._touch({
            'status': self.status,
            'assigned_team_id': self.assigned_team_id,
            'assigned_at': self.assigned_at,
            'assigned_by': self.assigned_by
        })

    def complete(self, completion_notes: Optional[str] = None) -> Dict[str, Any]:
        """Move to completed, appending completion notes. Returns the changed fields."""
        ensure_transition(self.status, RequestStatus.COMPLETED)
        if not self.assigned_team_id:
            raise StateError("Rescue request has no assigned team")

        self.status = RequestStatus.COMPLETED
        self.completed_at = utcnow()
        if completion_notes and completion_notes.strip():
            self.notes = append_note(self.notes, f"Completed: {completion_notes.strip()}")
        return self._touch({
            'status': self.status,
            'completed_at': self.completed_at,
            'notes': self.notes
        })


class RescueTeam(BaseEntity):
    """A rescue team that can be dispatched to one request at a time."""

    name: str = Field(..., min_length=1, max_length=100, description="Unique team name")
    leader_name: str = Field(..., min_length=1, max_length=100, description="Team leader")
    phone_number: str = Field(..., min_length=1, max_length=20, description="Contact phone number")
    specialization: TeamSpecialization = Field(default=TeamSpecialization.GENERAL, description="Team specialization")
    capacity: int = Field(default=5, ge=1, description="Maximum team size")
    current_members: int = Field(default=0, ge=0, description="Current member count")
    status: TeamStatus = Field(default=TeamStatus.AVAILABLE, description="Availability status")
    province_city: str = Field(..., min_length=1, max_length=100, description="Home province or city")
    equipment: List[str] = Field(default_factory=list, description="Equipment list")
    notes: Optional[str] = Field(None, description="Free-form notes")

    @field_validator('name', 'leader_name', 'phone_number', 'province_city', mode='before')
    @classmethod
    def strip_text(cls, v):
        """Trim surrounding whitespace before length checks."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError('Field cannot be empty')
        return v

    def is_available(self) -> bool:
        """Check if team can take a new mission."""
        return self.status == TeamStatus.AVAILABLE.value and not self.is_deleted()

    def is_on_mission(self) -> bool:
        """Check if team is currently dispatched."""
        return self.status == TeamStatus.ON_MISSION.value


class User(BaseEntity):
    """Platform user as stored by the identity directory."""

    email: str = Field(..., description="User email address")
    name: Optional[str] = Field(None, max_length=200, description="Display name")
    role: UserRole = Field(default=UserRole.CITIZEN, description="Platform role")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()


class Identity(BaseModel):
    """Resolved caller identity."""

    id: str = Field(..., description="User ID")
    email: Optional[str] = Field(None, description="User email")
    role: UserRole = Field(..., description="Platform role")
    name: Optional[str] = Field(None, description="Display name")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_role(self, *roles) -> bool:
        """Check if identity holds any of the given roles."""
        return self.role in [getattr(role, 'value', role) for role in roles]

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        """Project a stored user onto an identity."""
        return cls(id=user.id, email=user.email, role=user.role, name=user.name)
