# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for role-based access control.

Triage operations are gated on the caller's role. The check lives here once
and every operation applies it at entry.
"""

from typing import Iterable, Optional
from dataclasses import dataclass

from ..models.entities import Identity
from ..models.enums import UserRole
from .errors import ForbiddenError, NotFoundError


TRIAGE_ROLES = (UserRole.COORDINATOR.value, UserRole.ADMIN.value)
ADMIN_ROLES = (UserRole.ADMIN.value,)


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None


def _role_value(role) -> str:
    return getattr(role, 'value', role)


def check_role(actor: Optional[Identity], allowed_roles: Iterable[str]) -> AuthorizationResult:
    """
    Check whether an actor holds one of the allowed roles.

    Args:
        actor: Resolved caller identity, or None when it could not be resolved
        allowed_roles: Roles permitted to perform the operation

    Returns:
        AuthorizationResult indicating if the role is accepted
    """
    allowed = [_role_value(role) for role in allowed_roles]

    if actor is None:
        return AuthorizationResult(allowed=False, reason="User not found")

    if _role_value(actor.role) in allowed:
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason=f"Only {' or '.join(allowed)} users can perform this action"
    )


def require_role(actor: Optional[Identity], allowed_roles: Iterable[str]) -> Identity:
    """
    Enforce that an actor exists and holds one of the allowed roles.

    Raises:
        NotFoundError: actor could not be resolved
        ForbiddenError: actor holds a different role

    Returns:
        The actor, for chaining
    """
    result = check_role(actor, allowed_roles)
    if result.allowed:
        return actor
    if actor is None:
        raise NotFoundError(result.reason)
    raise ForbiddenError(result.reason)
