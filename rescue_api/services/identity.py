# SPDX-License-Identifier: Apache-2.0

"""
Identity gateway backed by the ``users`` collection.

Triage operations resolve the acting user here on every call, so a role
change or deletion takes effect without waiting for tokens to expire.
"""

import logging
from typing import Optional

from .mongodb import MongoDBService, USERS
from ..models.entities import User, Identity
from ..models.enums import UserRole

logger = logging.getLogger(__name__)


class UserDirectory:
    """Resolves user ids to identities."""

    def __init__(self, mongodb_service: MongoDBService):
        self.db = mongodb_service

    def get_identity(self, user_id: Optional[str]) -> Optional[Identity]:
        """Return the identity for ``user_id``, or None if absent or deleted."""
        if not user_id:
            return None

        document = self.db.find_one(USERS, user_id)
        if document is None:
            logger.debug(f"User {user_id} not found")
            return None

        return Identity.from_user(User.from_document(document))

    def find_by_email(self, email: str) -> Optional[User]:
        """Look up a live user by email."""
        document = self.db.find_one_by(USERS, {"email": email.lower()})
        return User.from_document(document) if document else None

    def create_user(self, email: str, role: UserRole = UserRole.CITIZEN, name: Optional[str] = None) -> User:
        """Register a user with a role."""
        user = User(email=email, role=role, name=name)
        document = self.db.create(USERS, {"id": user.id, **user.to_document()})

        logger.info("User created", extra={"user_id": user.id, "role": user.role})
        return User.from_document(document)
