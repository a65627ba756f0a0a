# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for lifecycle transition rules, payload validation and role checks.
"""

import pytest

from rescue_api.domain.authorization import TRIAGE_ROLES, check_role, require_role
from rescue_api.domain.errors import ForbiddenError, NotFoundError, StateError, ValidationError
from rescue_api.domain.transitions import (
    append_note, build_pagination, clean_filters, ensure_transition, filter_whitelisted,
    is_terminal, normalize_pagination, validate_request_update, validate_rescue_request_payload,
    validate_status_transition, validate_team_payload
)
from rescue_api.models.entities import Identity
from rescue_api.models.enums import RequestStatus


class TestStatusTransitions:
    """Test the rescue request lifecycle table."""

    @pytest.mark.parametrize("current,target", [
        ("new", "pending_verification"),
        ("new", "rejected"),
        ("pending_verification", "on_mission"),
        ("on_mission", "completed"),
    ])
    def test_allowed_transitions(self, current, target):
        """Lifecycle edges are accepted."""
        assert validate_status_transition(current, target).is_valid

    @pytest.mark.parametrize("current,target", [
        ("new", "on_mission"),
        ("pending_verification", "rejected"),
        ("on_mission", "pending_verification"),
        ("completed", "new"),
        ("rejected", "pending_verification"),
        ("verified", "on_mission"),
    ])
    def test_forbidden_transitions(self, current, target):
        """Anything off the lifecycle is rejected."""
        result = validate_status_transition(current, target)

        assert not result.is_valid
        assert result.errors[0]["field"] == "status"

    def test_enum_members_accepted(self):
        """Enum members compare by value."""
        assert validate_status_transition(RequestStatus.NEW, RequestStatus.REJECTED).is_valid

    def test_ensure_transition_raises_state_error(self):
        """Invalid transitions raise StateError."""
        with pytest.raises(StateError):
            ensure_transition("completed", "on_mission")

    def test_terminal_states(self):
        """Rejected and completed have no way out."""
        assert is_terminal("rejected")
        assert is_terminal("completed")
        assert not is_terminal("new")


class TestRescueRequestPayload:
    """Test rescue request submission validation."""

    def test_valid_gps_payload(self, sample_request_data):
        """A complete GPS submission is valid."""
        assert validate_rescue_request_payload(sample_request_data).is_valid

    def test_missing_required_fields(self):
        """Every missing required field is reported."""
        result = validate_rescue_request_payload({"category": "rescue"})

        missing = {error["field"] for error in result.errors}
        assert {"province_city", "phone_number", "description", "location_type"} <= missing

    def test_gps_without_coordinates(self, sample_request_data):
        """GPS submissions need both coordinates."""
        del sample_request_data["longitude"]

        result = validate_rescue_request_payload(sample_request_data)

        assert not result.is_valid
        assert result.errors[0]["field"] == "longitude"

    def test_zero_coordinates(self, sample_request_data):
        """Zero is a valid latitude and longitude."""
        sample_request_data.update(latitude=0, longitude=0)

        assert validate_rescue_request_payload(sample_request_data).is_valid

    def test_manual_without_address(self, sample_manual_request_data):
        """Manual submissions need an address."""
        sample_manual_request_data["address"] = ""

        result = validate_rescue_request_payload(sample_manual_request_data)

        assert [error["field"] for error in result.errors] == ["address"]

    def test_num_people_minimum(self, sample_request_data):
        """At least one person must be affected."""
        sample_request_data["num_people"] = 0

        assert not validate_rescue_request_payload(sample_request_data).is_valid

    def test_raise_for_errors(self):
        """Invalid results raise a ValidationError carrying field errors."""
        with pytest.raises(ValidationError) as exc_info:
            validate_rescue_request_payload({}).raise_for_errors("Invalid rescue request")

        assert exc_info.value.message == "Invalid rescue request"
        assert len(exc_info.value.errors) == 5


class TestTeamPayload:
    """Test rescue team validation."""

    def test_valid_team(self, sample_team_data):
        """Complete team data is valid."""
        assert validate_team_payload(sample_team_data).is_valid

    def test_partial_skips_absent_required(self):
        """Partial validation only checks the fields present."""
        assert validate_team_payload({"capacity": 3}, partial=True).is_valid
        assert not validate_team_payload({"name": "  "}, partial=True).is_valid

    def test_invalid_specialization(self, sample_team_data):
        """Unknown specializations are rejected."""
        sample_team_data["specialization"] = "aerial"

        assert not validate_team_payload(sample_team_data).is_valid

    def test_request_update_enums(self):
        """Administrative patches validate priority values."""
        assert validate_request_update({"status": "rejected", "priority": "urgent"}, "new").is_valid
        assert not validate_request_update({"priority": "critical"}).is_valid

    @pytest.mark.parametrize("status", ["verified", "in_progress", "lost", ["new"]])
    def test_request_update_outside_lifecycle(self, status):
        """Only lifecycle statuses can be patched in."""
        result = validate_request_update({"status": status}, "new")

        assert not result.is_valid
        assert result.errors[0]["field"] == "status"

    @pytest.mark.parametrize("current,status", [
        ("pending_verification", "on_mission"),
        ("new", "completed"),
        ("on_mission", "pending_verification"),
        ("completed", "new"),
    ])
    def test_request_update_team_bound_statuses(self, current, status):
        """Statuses that carry a team are neither entered nor left by a patch."""
        assert not validate_request_update({"status": status}, current).is_valid

    def test_request_update_same_status(self):
        """Restating the current status is accepted."""
        assert validate_request_update({"status": "on_mission", "notes": "x"}, "on_mission").is_valid


class TestHelpers:
    """Test pagination and patch helpers."""

    @pytest.mark.parametrize("page,limit,expected", [
        (1, 20, (1, 20, 0)),
        (3, 10, (3, 10, 20)),
        ("2", "5", (2, 5, 5)),
        ("abc", "xyz", (1, 20, 0)),
        (0, 500, (1, 100, 0)),
        (-4, 0, (1, 1, 0)),
        (None, None, (1, 20, 0)),
    ])
    def test_normalize_pagination(self, page, limit, expected):
        """Pagination input is coerced and clamped."""
        assert normalize_pagination(page, limit) == expected

    def test_build_pagination(self):
        """Metadata includes total pages and offset."""
        assert build_pagination(2, 20, 45) == {
            "page": 2, "limit": 20, "total": 45, "total_pages": 3, "offset": 20
        }

    def test_filter_whitelisted(self):
        """Unknown keys are dropped silently."""
        assert filter_whitelisted({"priority": "high", "user_id": "x"}, ["priority"]) == {"priority": "high"}
        assert filter_whitelisted(None, ["priority"]) == {}

    def test_clean_filters_drops_blank(self):
        """Blank filter values are ignored."""
        assert clean_filters({"status": "new", "category": " ", "other": "x"}, ["status", "category"]) == {
            "status": "new"
        }

    def test_append_note(self):
        """Notes accumulate newline separated."""
        assert append_note(None, "Completed: done") == "Completed: done"
        assert append_note("Approved", "Completed: done") == "Approved\nCompleted: done"


class TestAuthorization:
    """Test role checks."""

    def test_triage_roles_allowed(self):
        """Coordinators and admins pass the triage check."""
        for role in ("coordinator", "admin"):
            actor = Identity(id="u1", role=role)
            assert require_role(actor, TRIAGE_ROLES) is actor

    def test_citizen_forbidden(self):
        """Citizens cannot triage."""
        with pytest.raises(ForbiddenError) as exc_info:
            require_role(Identity(id="u1", role="citizen"), TRIAGE_ROLES)

        assert exc_info.value.message == "Only coordinator or admin users can perform this action"

    def test_missing_actor(self):
        """Unresolvable actors are reported as not found."""
        with pytest.raises(NotFoundError):
            require_role(None, TRIAGE_ROLES)

    def test_check_role_result(self):
        """check_role reports without raising."""
        result = check_role(None, TRIAGE_ROLES)

        assert result.allowed is False
        assert result.reason == "User not found"
