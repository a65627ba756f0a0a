# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for Pydantic models and entity lifecycle methods.
"""

import pytest
from pydantic import ValidationError

from rescue_api.domain.errors import StateError
from rescue_api.models.entities import (
    RescueRequest, RescueTeam, User, Identity, DEFAULT_APPROVAL_NOTE
)
from rescue_api.models.enums import RequestStatus, TeamStatus, UserRole
from rescue_api.models.requests import CreateRescueRequestRequest, UpdateRescueTeamRequest


def make_request(**overrides):
    data = {
        "category": "rescue",
        "province_city": "Hue",
        "phone_number": "0905123456",
        "description": "Water is rising inside the house",
        "location_type": "gps",
        "latitude": 16.46,
        "longitude": 107.59
    }
    data.update(overrides)
    return RescueRequest(**data)


class TestRescueRequestModel:
    """Test RescueRequest entity validation."""

    def test_defaults(self):
        """New requests start as new with one person and no team."""
        request = make_request()

        assert request.status == RequestStatus.NEW.value
        assert request.num_people == 1
        assert request.media_urls == []
        assert request.assigned_team_id is None
        assert request.deleted_at is None

    def test_gps_requires_coordinates(self):
        """GPS location without coordinates is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            make_request(latitude=None)

        assert "GPS coordinates are required" in str(exc_info.value)

    def test_zero_coordinates_are_valid(self):
        """Latitude and longitude of zero are real coordinates."""
        request = make_request(latitude=0, longitude=0)

        assert request.latitude == 0
        assert request.longitude == 0

    def test_manual_requires_address(self):
        """Manual location without an address is rejected."""
        with pytest.raises(ValidationError):
            make_request(location_type="manual", latitude=None, longitude=None, address="   ")

    def test_coordinate_range(self):
        """Out of range coordinates are rejected."""
        with pytest.raises(ValidationError):
            make_request(latitude=91)
        with pytest.raises(ValidationError):
            make_request(longitude=-180.5)

    def test_description_length(self):
        """Description must hold at least ten characters after trimming."""
        with pytest.raises(ValidationError):
            make_request(description="  too short  ")

    def test_unknown_enum_value(self):
        """Category values outside the enum are rejected."""
        with pytest.raises(ValidationError):
            make_request(category="evacuation")

    def test_document_round_trip_drops_id(self):
        """Storage documents do not carry the id field."""
        request = make_request()
        document = request.to_document()

        assert "id" not in document
        assert RescueRequest.from_document({"id": request.id, **document}).id == request.id


class TestRescueRequestLifecycle:
    """Test entity transition methods."""

    def test_approve_uses_default_note(self):
        """Approval without notes records the default note."""
        request = make_request()

        changes = request.approve("coordinator-1")

        assert request.status == RequestStatus.PENDING_VERIFICATION.value
        assert request.verified_by == "coordinator-1"
        assert request.verified_at is not None
        assert request.notes == DEFAULT_APPROVAL_NOTE
        assert set(changes) == {"status", "verified_by", "verified_at", "notes", "updated_at"}

    def test_approve_with_notes(self):
        """Given notes replace the default note."""
        request = make_request()
        request.approve("coordinator-1", "Confirmed by phone")

        assert request.notes == "Confirmed by phone"

    def test_reject_prefixes_reason(self):
        """Rejection records the reason."""
        request = make_request()
        request.reject("coordinator-1", "Duplicate report")

        assert request.status == RequestStatus.REJECTED.value
        assert request.notes == "Rejected: Duplicate report"

    def test_assign_requires_pending_verification(self):
        """A new request cannot go straight to a mission."""
        request = make_request()

        with pytest.raises(StateError):
            request.assign_team("team-1", "coordinator-1")

    def test_complete_appends_notes(self):
        """Completion notes are appended to the existing trail."""
        request = make_request()
        request.approve("coordinator-1")
        request.assign_team("team-1", "coordinator-1")

        request.complete("All four evacuated")

        assert request.status == RequestStatus.COMPLETED.value
        assert request.completed_at is not None
        assert request.notes == f"{DEFAULT_APPROVAL_NOTE}\nCompleted: All four evacuated"

    def test_complete_without_team(self):
        """A mission with no team cannot be completed."""
        request = make_request(status="on_mission")

        with pytest.raises(StateError):
            request.complete()

    def test_terminal_states(self):
        """Rejected and completed requests cannot move again."""
        request = make_request()
        request.reject("coordinator-1", "Not an emergency")

        with pytest.raises(StateError):
            request.approve("coordinator-1")


class TestRescueTeamModel:
    """Test RescueTeam entity."""

    def test_defaults(self):
        """Teams default to available general teams of five."""
        team = RescueTeam(name="Team A", leader_name="Leader", phone_number="0900", province_city="Hue")

        assert team.status == TeamStatus.AVAILABLE.value
        assert team.specialization == "general"
        assert team.capacity == 5
        assert team.is_available() is True
        assert team.is_on_mission() is False

    def test_blank_name_rejected(self):
        """Whitespace-only names are rejected."""
        with pytest.raises(ValidationError):
            RescueTeam(name="   ", leader_name="Leader", phone_number="0900", province_city="Hue")

    def test_capacity_minimum(self):
        """Capacity must be positive."""
        with pytest.raises(ValidationError):
            RescueTeam(name="Team A", leader_name="Leader", phone_number="0900", province_city="Hue", capacity=0)


class TestUserAndIdentity:
    """Test user and identity models."""

    def test_email_lowercased(self):
        """Emails are normalized to lower case."""
        user = User(email="Coordinator@Example.COM", role=UserRole.COORDINATOR)

        assert user.email == "coordinator@example.com"

    def test_invalid_email(self):
        """Malformed emails are rejected."""
        with pytest.raises(ValidationError):
            User(email="not-an-email")

    def test_identity_has_role(self):
        """Role checks accept enum members or plain values."""
        identity = Identity.from_user(User(email="a@example.com", role=UserRole.ADMIN))

        assert identity.has_role(UserRole.ADMIN)
        assert identity.has_role("coordinator", "admin")
        assert not identity.has_role(UserRole.CITIZEN)


class TestRequestBodies:
    """Test API request body models."""

    def test_unknown_keys_ignored(self):
        """Extra body keys are dropped."""
        body = CreateRescueRequestRequest.model_validate({
            "category": "rescue",
            "province_city": "Hue",
            "phone_number": "0905",
            "description": "Trapped by flood water",
            "location_type": "manual",
            "address": "Somewhere",
            "status": "completed"
        })

        assert "status" not in body.model_dump()
        assert body.category == "rescue"

    def test_partial_update_tracks_set_fields(self):
        """Only fields present in the body are considered set."""
        body = UpdateRescueTeamRequest.model_validate({"capacity": 10})

        assert body.model_dump(exclude_unset=True) == {"capacity": 10}
