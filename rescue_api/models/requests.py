# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.

These describe request bodies and query strings. Lifecycle rules (location
consistency, transitions, roles) are enforced by the domain services.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import (
    RequestStatus, RequestCategory, RequestPriority, LocationType,
    TeamStatus, TeamSpecialization
)


class RequestBody(BaseModel):
    """Base for JSON bodies: unknown keys are ignored, enums kept as values."""

    model_config = ConfigDict(
        use_enum_values=True,
        extra='ignore'
    )


class CreateRescueRequestRequest(RequestBody):
    """Request model for submitting a rescue request."""

    category: RequestCategory = Field(..., description="Kind of help requested")
    province_city: str = Field(..., min_length=1, max_length=100, description="Province or city")
    phone_number: str = Field(..., min_length=1, max_length=20, description="Contact phone number")
    description: str = Field(..., min_length=10, max_length=5000, description="Situation description")
    location_type: LocationType = Field(..., description="GPS or manual location")
    num_people: Optional[int] = Field(None, ge=1, description="Number of people affected")
    priority: Optional[RequestPriority] = Field(None, description="Triage priority")
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="GPS latitude")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="GPS longitude")
    address: Optional[str] = Field(None, description="Manually entered address")
    media_urls: Optional[List[str]] = Field(None, description="Attached media URLs")


class UpdateRescueRequestRequest(RequestBody):
    """Request model for administrative correction of a rescue request."""

    status: Optional[RequestStatus] = Field(None, description="Lifecycle status")
    priority: Optional[RequestPriority] = Field(None, description="Triage priority")
    notes: Optional[str] = Field(None, description="Notes")
    verified_by: Optional[str] = Field(None, description="Verifier user ID")
    verified_at: Optional[datetime] = Field(None, description="Verification timestamp")


class ApproveRescueRequestRequest(RequestBody):
    """Request model for approving a rescue request."""

    notes: Optional[str] = Field(None, max_length=5000, description="Approval notes")


class RejectRescueRequestRequest(RequestBody):
    """Request model for rejecting a rescue request."""

    reason: Optional[str] = Field(None, max_length=2000, description="Reason for rejection")


class AssignTeamRequest(RequestBody):
    """Request model for assigning a rescue team."""

    team_id: Optional[str] = Field(None, description="Rescue team ID")


class CompleteMissionRequest(RequestBody):
    """Request model for completing a mission."""

    completion_notes: Optional[str] = Field(None, max_length=5000, description="Mission outcome")


class CreateRescueTeamRequest(RequestBody):
    """Request model for creating a rescue team."""

    name: str = Field(..., min_length=1, max_length=100, description="Unique team name")
    leader_name: str = Field(..., min_length=1, max_length=100, description="Team leader")
    phone_number: str = Field(..., min_length=1, max_length=20, description="Contact phone number")
    province_city: str = Field(..., min_length=1, max_length=100, description="Home province or city")
    specialization: Optional[TeamSpecialization] = Field(None, description="Specialization")
    capacity: Optional[int] = Field(None, ge=1, description="Maximum team size")
    current_members: Optional[int] = Field(None, ge=0, description="Current member count")
    equipment: Optional[List[str]] = Field(None, description="Equipment list")
    notes: Optional[str] = Field(None, description="Free-form notes")


class UpdateRescueTeamRequest(RequestBody):
    """Request model for updating a rescue team."""

    name: Optional[str] = Field(None, min_length=1, max_length=100, description="Unique team name")
    leader_name: Optional[str] = Field(None, min_length=1, max_length=100, description="Team leader")
    phone_number: Optional[str] = Field(None, min_length=1, max_length=20, description="Contact phone number")
    specialization: Optional[TeamSpecialization] = Field(None, description="Specialization")
    capacity: Optional[int] = Field(None, ge=1, description="Maximum team size")
    current_members: Optional[int] = Field(None, ge=0, description="Current member count")
    status: Optional[TeamStatus] = Field(None, description="Availability status")
    province_city: Optional[str] = Field(None, min_length=1, max_length=100, description="Home province or city")
    equipment: Optional[List[str]] = Field(None, description="Equipment list")
    notes: Optional[str] = Field(None, description="Free-form notes")


class RescueRequestFilters(BaseModel):
    """Filters for rescue request queries."""

    status: Optional[str] = Field(None, description="Filter by status")
    category: Optional[str] = Field(None, description="Filter by category")
    province_city: Optional[str] = Field(None, description="Filter by province or city")
    priority: Optional[str] = Field(None, description="Filter by priority")
    user_id: Optional[str] = Field(None, description="Filter by creator")


class RescueTeamFilters(BaseModel):
    """Filters for rescue team queries."""

    status: Optional[str] = Field(None, description="Filter by status")
    specialization: Optional[str] = Field(None, description="Filter by specialization")
    province_city: Optional[str] = Field(None, description="Filter by province or city")


class RescueRequestPath(BaseModel):
    """Path parameters for a single rescue request."""

    request_id: str = Field(..., description="Rescue request ID")


class RescueTeamPath(BaseModel):
    """Path parameters for a single rescue team."""

    team_id: str = Field(..., description="Rescue team ID")
