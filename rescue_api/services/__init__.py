# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - persistence, identity and presentation integrations.
"""

from .mongodb import MongoDBService, PaginationResult, RESCUE_REQUESTS, RESCUE_TEAMS, USERS
from .unit_of_work import UnitOfWork

__all__ = [
    "MongoDBService",
    "PaginationResult",
    "UnitOfWork",
    "RESCUE_REQUESTS",
    "RESCUE_TEAMS",
    "USERS"
]
