# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the rescue coordination platform.

Entities and request bodies are imported from their modules directly
(``models.entities``, ``models.requests``); entities depend on the domain
transition rules, which in turn import the enumerations exported here.
"""

# Base models
from .base import BaseEntity, generate_object_id, utcnow

# Enumerations
from .enums import (
    RequestStatus,
    RequestCategory,
    RequestPriority,
    LocationType,
    TeamStatus,
    TeamSpecialization,
    UserRole
)

__all__ = [
    # Base models
    "BaseEntity",
    "generate_object_id",
    "utcnow",

    # Enumerations
    "RequestStatus",
    "RequestCategory",
    "RequestPriority",
    "LocationType",
    "TeamStatus",
    "TeamSpecialization",
    "UserRole"
]
