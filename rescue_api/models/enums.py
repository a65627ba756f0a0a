# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the rescue coordination platform.

Values are persisted verbatim and are part of the public API contract.
"""

from enum import Enum


class RequestStatus(str, Enum):
    """Rescue request lifecycle status."""
    NEW = "new"
    PENDING_VERIFICATION = "pending_verification"
    REJECTED = "rejected"
    ON_MISSION = "on_mission"
    COMPLETED = "completed"
    # Legacy values kept for stored data; never entered by any operation
    VERIFIED = "verified"
    IN_PROGRESS = "in_progress"


class RequestCategory(str, Enum):
    """What kind of help is being requested."""
    RESCUE = "rescue"
    SUPPLIES = "supplies"
    VEHICLE_RESCUE = "vehicle_rescue"
    OTHER = "other"


class RequestPriority(str, Enum):
    """Triage priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class LocationType(str, Enum):
    """How the requester's location was provided."""
    GPS = "gps"
    MANUAL = "manual"


class TeamStatus(str, Enum):
    """Rescue team availability status."""
    AVAILABLE = "available"
    ON_MISSION = "on_mission"
    UNAVAILABLE = "unavailable"


class TeamSpecialization(str, Enum):
    """Rescue team specialization."""
    GENERAL = "general"
    MEDICAL = "medical"
    VEHICLE = "vehicle"
    SUPPLIES = "supplies"


class UserRole(str, Enum):
    """Caller roles resolved by the identity gateway."""
    CITIZEN = "citizen"
    COORDINATOR = "coordinator"
    ADMIN = "admin"
