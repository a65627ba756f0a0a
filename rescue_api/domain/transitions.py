# SPDX-License-Identifier: Apache-2.0

"""
Lifecycle transition rules and payload validation for rescue requests and teams.

This module contains pure functions only: no storage access, no clock reads
beyond what callers pass in.
"""

from typing import List, Dict, Any, Optional, Iterable, Tuple
from dataclasses import dataclass, field

from ..models.enums import (
    RequestStatus, RequestCategory, RequestPriority, LocationType,
    TeamStatus, TeamSpecialization
)
from .errors import StateError, ValidationError


# new -> pending_verification -> on_mission -> completed, new -> rejected
REQUEST_TRANSITIONS: Dict[str, List[str]] = {
    RequestStatus.NEW.value: [
        RequestStatus.PENDING_VERIFICATION.value,
        RequestStatus.REJECTED.value
    ],
    RequestStatus.PENDING_VERIFICATION.value: [RequestStatus.ON_MISSION.value],
    RequestStatus.ON_MISSION.value: [RequestStatus.COMPLETED.value],
    RequestStatus.REJECTED.value: [],  # Terminal state
    RequestStatus.COMPLETED.value: []  # Terminal state
}

# Statuses that imply an assigned team
TEAM_BOUND_STATUSES = (RequestStatus.ON_MISSION.value, RequestStatus.COMPLETED.value)

REQUEST_REQUIRED_FIELDS = ('category', 'province_city', 'phone_number', 'description', 'location_type')
TEAM_REQUIRED_FIELDS = ('name', 'leader_name', 'phone_number', 'province_city')

REQUEST_UPDATABLE_FIELDS = ('status', 'priority', 'notes', 'verified_by', 'verified_at')
TEAM_UPDATABLE_FIELDS = (
    'name', 'leader_name', 'phone_number', 'specialization', 'capacity',
    'current_members', 'status', 'province_city', 'equipment', 'notes'
)

DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 5000

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass
class ValidationResult:
    """Result of a payload or transition validation."""
    is_valid: bool
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def raise_for_errors(self, message: str) -> None:
        """Raise a domain ValidationError carrying the collected field errors."""
        if not self.is_valid:
            raise ValidationError(message, self.errors)


def _field_error(field_name: str, message: str, value: Any = None) -> Dict[str, Any]:
    return {"field": field_name, "message": message, "input": value}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


def _to_enum_value(value: Any) -> Any:
    # Enum members carry their wire value; plain strings pass through
    return getattr(value, 'value', value)


def validate_status_transition(current_status: str, new_status: str) -> ValidationResult:
    """
    Validate a rescue request status transition against the lifecycle table.

    Args:
        current_status: Current request status
        new_status: Desired new status

    Returns:
        ValidationResult with validation status and errors
    """
    current_status = _to_enum_value(current_status)
    new_status = _to_enum_value(new_status)

    if new_status in REQUEST_TRANSITIONS.get(current_status, []):
        return ValidationResult(is_valid=True)

    return ValidationResult(
        is_valid=False,
        errors=[_field_error(
            "status",
            f"Invalid status transition from {current_status} to {new_status}",
            new_status
        )]
    )


def ensure_transition(current_status: str, new_status: str) -> None:
    """Raise StateError unless ``current_status -> new_status`` is a lifecycle edge."""
    result = validate_status_transition(current_status, new_status)
    if not result.is_valid:
        raise StateError(
            f"Cannot move rescue request from '{_to_enum_value(current_status)}' "
            f"to '{_to_enum_value(new_status)}'"
        )


def is_terminal(status: str) -> bool:
    """Check whether a request status has no outgoing transitions."""
    return not REQUEST_TRANSITIONS.get(_to_enum_value(status), [])


def _check_enum(errors: List[Dict[str, Any]], payload: Dict[str, Any], field_name: str, enum_cls) -> None:
    value = payload.get(field_name)
    if value is None:
        return
    if _to_enum_value(value) not in _enum_values(enum_cls):
        errors.append(_field_error(
            field_name,
            f"Must be one of: {', '.join(_enum_values(enum_cls))}",
            value
        ))


def _check_coordinate(errors: List[Dict[str, Any]], payload: Dict[str, Any],
                      field_name: str, bound: float) -> None:
    value = payload.get(field_name)
    if value is None:
        errors.append(_field_error(field_name, "GPS coordinates are required for GPS location type"))
        return
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors.append(_field_error(field_name, "Must be a number", value))
        return
    if isinstance(value, bool) or number < -bound or number > bound:
        errors.append(_field_error(field_name, f"Must be between -{bound:g} and {bound:g}", value))


def _check_int(errors: List[Dict[str, Any]], payload: Dict[str, Any], field_name: str, minimum: int) -> None:
    value = payload.get(field_name)
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        try:
            value = int(str(value))
        except ValueError:
            errors.append(_field_error(field_name, "Must be an integer", payload.get(field_name)))
            return
    if value < minimum:
        errors.append(_field_error(field_name, f"Must be at least {minimum}", value))


def validate_rescue_request_payload(payload: Dict[str, Any]) -> ValidationResult:
    """
    Validate a rescue request submission.

    Required fields are checked first; location rules follow ``location_type``.
    Latitude/longitude of zero are valid coordinates.

    Args:
        payload: Raw submission data

    Returns:
        ValidationResult with validation status and errors
    """
    errors: List[Dict[str, Any]] = []

    for field_name in REQUEST_REQUIRED_FIELDS:
        if _is_blank(payload.get(field_name)):
            errors.append(_field_error(field_name, "Missing required field"))

    _check_enum(errors, payload, 'category', RequestCategory)
    _check_enum(errors, payload, 'priority', RequestPriority)
    _check_enum(errors, payload, 'location_type', LocationType)

    description = payload.get('description')
    if isinstance(description, str) and description.strip():
        length = len(description.strip())
        if length < DESCRIPTION_MIN_LENGTH or length > DESCRIPTION_MAX_LENGTH:
            errors.append(_field_error(
                'description',
                f"Description must be between {DESCRIPTION_MIN_LENGTH} and {DESCRIPTION_MAX_LENGTH} characters"
            ))

    _check_int(errors, payload, 'num_people', 1)

    location_type = _to_enum_value(payload.get('location_type'))
    if location_type == LocationType.GPS.value:
        _check_coordinate(errors, payload, 'latitude', 90)
        _check_coordinate(errors, payload, 'longitude', 180)
    elif location_type == LocationType.MANUAL.value:
        if _is_blank(payload.get('address')):
            errors.append(_field_error('address', "Address is required for manual location type"))

    media_urls = payload.get('media_urls')
    if media_urls is not None and (
        not isinstance(media_urls, list) or not all(isinstance(url, str) for url in media_urls)
    ):
        errors.append(_field_error('media_urls', "Must be a list of strings", media_urls))

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_team_payload(payload: Dict[str, Any], partial: bool = False) -> ValidationResult:
    """
    Validate rescue team data for creation or (with ``partial``) update.

    Args:
        payload: Team data
        partial: When True only the fields present are checked

    Returns:
        ValidationResult with validation status and errors
    """
    errors: List[Dict[str, Any]] = []

    for field_name in TEAM_REQUIRED_FIELDS:
        if partial and field_name not in payload:
            continue
        if _is_blank(payload.get(field_name)):
            errors.append(_field_error(field_name, "Missing required field"))

    _check_enum(errors, payload, 'specialization', TeamSpecialization)
    _check_enum(errors, payload, 'status', TeamStatus)
    _check_int(errors, payload, 'capacity', 1)
    _check_int(errors, payload, 'current_members', 0)

    equipment = payload.get('equipment')
    if equipment is not None and (
        not isinstance(equipment, list) or not all(isinstance(item, str) for item in equipment)
    ):
        errors.append(_field_error('equipment', "Must be a list of strings", equipment))

    return ValidationResult(is_valid=not errors, errors=errors)


def validate_request_update(patch: Dict[str, Any], current_status: Optional[str] = None) -> ValidationResult:
    """
    Validate an administrative rescue request patch (already whitelisted).

    ``status`` may only name a lifecycle status, and may neither enter nor
    leave ``on_mission``/``completed``: those carry a team and change only
    through dispatch and completion.
    """
    errors: List[Dict[str, Any]] = []
    _check_enum(errors, patch, 'priority', RequestPriority)

    status = _to_enum_value(patch.get('status'))
    current_status = _to_enum_value(current_status)
    if status is None or status == current_status:
        return ValidationResult(is_valid=not errors, errors=errors)

    if not isinstance(status, str) or status not in REQUEST_TRANSITIONS:
        errors.append(_field_error(
            'status', f"Must be one of: {', '.join(REQUEST_TRANSITIONS)}", status
        ))
    elif status in TEAM_BOUND_STATUSES:
        errors.append(_field_error(
            'status', "Use the assign-team and complete actions to enter this status", status
        ))
    elif current_status in TEAM_BOUND_STATUSES:
        errors.append(_field_error(
            'status', f"Cannot change status of a rescue request that is {current_status}", status
        ))

    return ValidationResult(is_valid=not errors, errors=errors)


def filter_whitelisted(patch: Dict[str, Any], allowed_fields: Iterable[str]) -> Dict[str, Any]:
    """Keep only whitelisted keys; unknown keys are dropped silently."""
    allowed = set(allowed_fields)
    return {key: value for key, value in (patch or {}).items() if key in allowed}


def append_note(existing: Optional[str], entry: str) -> str:
    """Append an audit entry to the notes trail without discarding earlier entries."""
    if not existing:
        return entry
    return f"{existing}\n{entry}"


def normalize_pagination(page: Any = DEFAULT_PAGE, limit: Any = DEFAULT_LIMIT) -> Tuple[int, int, int]:
    """
    Coerce pagination input to integers.

    Non-numeric values fall back to the defaults, ``page`` is clamped to at
    least 1 and ``limit`` to ``[1, MAX_LIMIT]``.

    Returns:
        Tuple of (page, limit, offset)
    """
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = DEFAULT_PAGE
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = DEFAULT_LIMIT

    page = max(1, page)
    limit = max(1, min(limit, MAX_LIMIT))
    return page, limit, (page - 1) * limit


@dataclass
class Page:
    """One page of a listing plus its pagination metadata."""
    items: List[Any]
    pagination: Dict[str, int]


def clean_filters(filters: Optional[Dict[str, Any]], allowed_fields: Iterable[str]) -> Dict[str, Any]:
    """Whitelist filters and drop empty values."""
    return {
        key: _to_enum_value(value)
        for key, value in filter_whitelisted(filters or {}, allowed_fields).items()
        if not _is_blank(value)
    }


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    """Pagination metadata for list responses."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit,
        "offset": (page - 1) * limit
    }
