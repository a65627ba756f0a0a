# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy for rescue coordination operations.

Every error is terminal for the call that raised it. Each class carries the
HTTP status and problem type the error handler renders it with.
"""

from typing import Any, Dict, List, Optional


class RescueApiError(Exception):
    """Base class for domain errors."""

    status_code = 500
    error_type = "application-error"
    title = "Application Error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(RescueApiError):
    """Malformed or missing input; the caller must fix the input."""

    status_code = 400
    error_type = "validation-error"
    title = "Validation Error"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(RescueApiError):
    """Entity absent or soft-deleted."""

    status_code = 404
    error_type = "resource-not-found"
    title = "Resource Not Found"


class ForbiddenError(RescueApiError):
    """Caller is authenticated but holds the wrong role."""

    status_code = 403
    error_type = "insufficient-permissions"
    title = "Insufficient Permissions"


class ConflictError(RescueApiError):
    """Stale-state race such as a team that is no longer available."""

    status_code = 400
    error_type = "resource-conflict"
    title = "Resource Conflict"


class DuplicateError(ConflictError):
    """Uniqueness violation."""

    status_code = 409


class StateError(RescueApiError):
    """Operation not valid for the entity's current lifecycle state."""

    status_code = 400
    error_type = "invalid-state"
    title = "Invalid State Transition"


def from_pydantic(error, message: str) -> ValidationError:
    """Convert a pydantic ValidationError into a domain ValidationError."""
    errors = []
    for item in error.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in item["loc"]) or "body",
            "message": item["msg"],
            "input": item.get("input") if not isinstance(item.get("input"), dict) else None
        })
    return ValidationError(message, errors)
