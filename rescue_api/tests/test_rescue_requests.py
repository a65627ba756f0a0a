# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the rescue request lifecycle engine.
"""

import pytest
from bson import ObjectId

from rescue_api.domain.errors import (
    ConflictError, ForbiddenError, NotFoundError, StateError, ValidationError
)
from rescue_api.models.entities import DEFAULT_APPROVAL_NOTE
from rescue_api.services.mongodb import RESCUE_REQUESTS, RESCUE_TEAMS


@pytest.fixture
def new_request(request_service, sample_request_data):
    return request_service.create_request(sample_request_data)


@pytest.fixture
def approved_request(request_service, new_request, coordinator_user):
    return request_service.approve(new_request.id, coordinator_user.id)


@pytest.fixture
def team(team_service, sample_team_data):
    return team_service.create_team(sample_team_data)


class TestCreateRequest:
    """Test rescue request submission."""

    def test_create_gps_request(self, request_service, sample_request_data):
        """GPS submissions are stored as new and anonymous."""
        created = request_service.create_request(sample_request_data)

        assert created.status == "new"
        assert created.user_id is None
        assert created.num_people == 4
        assert created.latitude == pytest.approx(16.4637)
        assert request_service.get_by_id(created.id).description == sample_request_data["description"]

    def test_create_manual_request_with_caller(self, request_service, sample_manual_request_data, citizen_user):
        """Authenticated submissions record the caller."""
        created = request_service.create_request(sample_manual_request_data, caller_id=citizen_user.id)

        assert created.user_id == citizen_user.id
        assert created.address == "12 Tran Phu, Hai Chau"
        assert created.num_people == 1

    def test_create_invalid_request(self, request_service, sample_request_data):
        """Invalid submissions are not stored."""
        sample_request_data["category"] = "evacuation"

        with pytest.raises(ValidationError) as exc_info:
            request_service.create_request(sample_request_data)

        assert exc_info.value.errors[0]["field"] == "category"
        assert request_service.list().pagination["total"] == 0

    def test_get_unknown_request(self, request_service):
        """Unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            request_service.get_by_id(str(ObjectId()))

        assert exc_info.value.message == "Rescue request not found"


class TestTriage:
    """Test approval and rejection."""

    def test_approve(self, request_service, new_request, coordinator_user):
        """Approval moves a new request to pending verification."""
        approved = request_service.approve(new_request.id, coordinator_user.id, "Confirmed by phone")

        assert approved.status == "pending_verification"
        assert approved.verified_by == coordinator_user.id
        assert approved.verified_at is not None
        assert approved.notes == "Confirmed by phone"

    def test_approve_default_note(self, approved_request):
        """Approval without notes records the default note."""
        assert approved_request.notes == DEFAULT_APPROVAL_NOTE

    def test_approve_twice(self, request_service, approved_request, coordinator_user):
        """Only new requests can be approved."""
        with pytest.raises(StateError):
            request_service.approve(approved_request.id, coordinator_user.id)

    def test_citizen_cannot_approve(self, request_service, new_request, citizen_user):
        """Citizens are forbidden and the request is left untouched."""
        with pytest.raises(ForbiddenError):
            request_service.approve(new_request.id, citizen_user.id)

        assert request_service.get_by_id(new_request.id).status == "new"

    def test_unknown_actor(self, request_service, new_request):
        """Actors that cannot be resolved are not found."""
        with pytest.raises(NotFoundError):
            request_service.approve(new_request.id, str(ObjectId()))

    def test_state_checked_before_role(self, request_service, approved_request, citizen_user):
        """A wrong status is reported ahead of a wrong role."""
        with pytest.raises(StateError):
            request_service.approve(approved_request.id, citizen_user.id)

    def test_reject(self, request_service, new_request, admin_user):
        """Rejection records the reason and is terminal."""
        rejected = request_service.reject(new_request.id, admin_user.id, "Duplicate of an earlier report")

        assert rejected.status == "rejected"
        assert rejected.notes == "Rejected: Duplicate of an earlier report"

        with pytest.raises(StateError):
            request_service.approve(new_request.id, admin_user.id)

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reject_requires_reason(self, request_service, new_request, coordinator_user, reason):
        """A blank reason is rejected before anything else."""
        with pytest.raises(ValidationError):
            request_service.reject(new_request.id, coordinator_user.id, reason)

    def test_reject_blank_reason_on_unknown_request(self, request_service, coordinator_user):
        """Reason validation comes before the lookup."""
        with pytest.raises(ValidationError):
            request_service.reject(str(ObjectId()), coordinator_user.id, " ")

    def test_reject_approved_request(self, request_service, approved_request, coordinator_user):
        """Requests in triage can no longer be rejected."""
        with pytest.raises(StateError):
            request_service.reject(approved_request.id, coordinator_user.id, "Too late")


class TestDispatch:
    """Test team assignment and mission completion."""

    def test_full_lifecycle(self, request_service, team_service, approved_request, team, coordinator_user):
        """A request goes out with a team and the team comes back available."""
        on_mission = request_service.assign_team(approved_request.id, team.id, coordinator_user.id)

        assert on_mission.status == "on_mission"
        assert on_mission.assigned_team_id == team.id
        assert on_mission.assigned_by == coordinator_user.id
        assert on_mission.assigned_at is not None
        assert team_service.get_team(team.id).status == "on_mission"

        completed = request_service.complete_mission(approved_request.id, coordinator_user.id, "All four evacuated")

        assert completed.status == "completed"
        assert completed.completed_at is not None
        assert completed.notes == f"{DEFAULT_APPROVAL_NOTE}\nCompleted: All four evacuated"
        assert team_service.get_team(team.id).status == "available"

    def test_complete_without_notes_keeps_trail(self, request_service, approved_request, team, coordinator_user):
        """Completion without notes leaves earlier notes alone."""
        request_service.assign_team(approved_request.id, team.id, coordinator_user.id)

        completed = request_service.complete_mission(approved_request.id, coordinator_user.id)

        assert completed.notes == DEFAULT_APPROVAL_NOTE

    @pytest.mark.parametrize("team_id", [None, "", "  "])
    def test_assign_requires_team_id(self, request_service, approved_request, coordinator_user, team_id):
        """A blank team id is a validation error."""
        with pytest.raises(ValidationError):
            request_service.assign_team(approved_request.id, team_id, coordinator_user.id)

    def test_assign_new_request(self, request_service, new_request, team, team_service, coordinator_user):
        """Unapproved requests cannot be dispatched."""
        with pytest.raises(StateError):
            request_service.assign_team(new_request.id, team.id, coordinator_user.id)

        assert team_service.get_team(team.id).status == "available"

    def test_assign_unknown_team(self, request_service, approved_request, coordinator_user):
        """Dispatching a missing team is not found."""
        with pytest.raises(NotFoundError):
            request_service.assign_team(approved_request.id, str(ObjectId()), coordinator_user.id)

    def test_citizen_cannot_assign(self, request_service, approved_request, team, citizen_user):
        """Citizens cannot dispatch teams."""
        with pytest.raises(ForbiddenError):
            request_service.assign_team(approved_request.id, team.id, citizen_user.id)

    def test_busy_team_rejected(self, request_service, sample_request_data, team, coordinator_user):
        """A team already on a mission cannot take a second request."""
        first = request_service.create_request(sample_request_data)
        second = request_service.create_request(sample_request_data)
        for item in (first, second):
            request_service.approve(item.id, coordinator_user.id)

        request_service.assign_team(first.id, team.id, coordinator_user.id)

        with pytest.raises(ConflictError) as exc_info:
            request_service.assign_team(second.id, team.id, coordinator_user.id)

        assert "Current status: on_mission" in exc_info.value.message
        assert request_service.get_by_id(second.id).status == "pending_verification"

    def test_race_for_team_has_one_winner(self, request_service, team_service, sample_request_data,
                                          team, coordinator_user):
        """When the availability read is stale the claim itself decides."""
        first = request_service.create_request(sample_request_data)
        second = request_service.create_request(sample_request_data)
        for item in (first, second):
            request_service.approve(item.id, coordinator_user.id)

        stale_team = team_service.get_team(team.id)
        request_service.assign_team(first.id, team.id, coordinator_user.id)
        request_service.teams.get_team = lambda team_id: stale_team

        with pytest.raises(ConflictError):
            request_service.assign_team(second.id, team.id, coordinator_user.id)

        assert request_service.get_by_id(first.id).assigned_team_id == team.id
        assert request_service.get_by_id(second.id).status == "pending_verification"
        assert request_service.get_by_id(second.id).assigned_team_id is None

    def test_request_changed_during_dispatch_releases_team(self, request_service, team_service, mongodb_service,
                                                           approved_request, team, coordinator_user):
        """If the request moved meanwhile the team claim is undone."""
        stale_request = request_service.get_by_id(approved_request.id)
        mongodb_service.update(RESCUE_REQUESTS, approved_request.id, {"status": "rejected"})
        request_service.get_by_id = lambda request_id: stale_request.model_copy()

        with pytest.raises(StateError):
            request_service.assign_team(approved_request.id, team.id, coordinator_user.id)

        assert team_service.get_team(team.id).status == "available"

    def test_complete_requires_on_mission(self, request_service, approved_request, coordinator_user):
        """Only requests on a mission can be completed."""
        with pytest.raises(StateError):
            request_service.complete_mission(approved_request.id, coordinator_user.id)

    def test_citizen_cannot_complete(self, request_service, approved_request, team, coordinator_user,
                                     citizen_user, team_service):
        """Citizens cannot close missions and the team stays out."""
        request_service.assign_team(approved_request.id, team.id, coordinator_user.id)

        with pytest.raises(ForbiddenError):
            request_service.complete_mission(approved_request.id, citizen_user.id)

        assert team_service.get_team(team.id).status == "on_mission"

    def test_complete_without_team(self, request_service, mongodb_service, new_request, coordinator_user):
        """A mission with no team recorded cannot be closed."""
        mongodb_service.update(RESCUE_REQUESTS, new_request.id, {"status": "on_mission"})

        with pytest.raises(StateError):
            request_service.complete_mission(new_request.id, coordinator_user.id)


class TestAdministration:
    """Test listing, patching, deletion and statistics."""

    def test_list_filters_and_order(self, request_service, sample_request_data, sample_manual_request_data,
                                    coordinator_user):
        """Listing filters by whitelisted fields, newest first."""
        first = request_service.create_request(sample_request_data)
        second = request_service.create_request(sample_request_data)
        request_service.create_request(sample_manual_request_data)
        request_service.approve(first.id, coordinator_user.id)

        page = request_service.list({"category": "rescue", "unknown": "x"})

        assert [item.id for item in page.items] == [second.id, first.id]
        assert page.pagination["total"] == 2

        pending = request_service.list({"status": "pending_verification"})
        assert [item.id for item in pending.items] == [first.id]

    def test_list_pagination_clamped(self, request_service, sample_request_data):
        """Out of range paging input falls back to sane values."""
        for _ in range(3):
            request_service.create_request(sample_request_data)

        page = request_service.list(page="abc", limit=2)

        assert len(page.items) == 2
        assert page.pagination == {"page": 1, "limit": 2, "total": 3, "total_pages": 2, "offset": 0}

    def test_update_whitelisted(self, request_service, new_request):
        """Administrative patches apply whitelisted fields only."""
        updated = request_service.update(new_request.id, {
            "priority": "urgent",
            "notes": "Elderly resident",
            "description": "changed",
            "user_id": "someone"
        })

        assert updated.priority == "urgent"
        assert updated.notes == "Elderly resident"
        assert updated.description == new_request.description
        assert updated.user_id is None

    def test_update_status_within_triage(self, request_service, new_request):
        """Status corrections among the team-free statuses are applied."""
        updated = request_service.update(new_request.id, {"status": "pending_verification"})

        assert updated.status == "pending_verification"

    @pytest.mark.parametrize("status", ["verified", "in_progress", "on_mission", "completed"])
    def test_update_status_outside_patchable_set(self, request_service, new_request, status):
        """Legacy statuses and statuses that carry a team cannot be patched in."""
        with pytest.raises(ValidationError):
            request_service.update(new_request.id, {"status": status})

        stored = request_service.get_by_id(new_request.id)
        assert stored.status == "new"
        assert stored.assigned_team_id is None

    def test_update_cannot_move_request_off_mission(self, request_service, team_service, approved_request,
                                                    team, coordinator_user):
        """A request on a mission keeps its status and its team."""
        request_service.assign_team(approved_request.id, team.id, coordinator_user.id)

        with pytest.raises(ValidationError):
            request_service.update(approved_request.id, {"status": "pending_verification"})

        assert request_service.get_by_id(approved_request.id).status == "on_mission"
        assert team_service.get_team(team.id).status == "on_mission"

    def test_update_status_rechecked_in_write(self, request_service, mongodb_service, new_request):
        """A status change landing between the read and the patch wins."""
        stale = request_service.get_by_id(new_request.id)
        mongodb_service.update(RESCUE_REQUESTS, new_request.id, {"status": "rejected"})
        request_service.get_by_id = lambda request_id: stale.model_copy()

        with pytest.raises(StateError):
            request_service.update(new_request.id, {"status": "pending_verification"})

        assert mongodb_service.find_one(RESCUE_REQUESTS, new_request.id)["status"] == "rejected"

    def test_update_invalid_enum(self, request_service, new_request):
        """Unknown enum values are rejected."""
        with pytest.raises(ValidationError):
            request_service.update(new_request.id, {"priority": "critical"})

    def test_update_unknown_request(self, request_service):
        """Patching a missing request is not found."""
        with pytest.raises(NotFoundError):
            request_service.update(str(ObjectId()), {"priority": "low"})

    def test_delete(self, request_service, new_request):
        """Deleted requests disappear from reads."""
        request_service.delete(new_request.id)

        with pytest.raises(NotFoundError):
            request_service.get_by_id(new_request.id)
        with pytest.raises(NotFoundError):
            request_service.delete(new_request.id)

    def test_delete_on_mission_releases_team(self, request_service, team_service, approved_request, team,
                                             coordinator_user):
        """Deleting a request on a mission returns its team to the pool."""
        request_service.assign_team(approved_request.id, team.id, coordinator_user.id)

        request_service.delete(approved_request.id)

        with pytest.raises(NotFoundError):
            request_service.get_by_id(approved_request.id)
        assert team_service.get_team(team.id).status == "available"
        assert team_service.get_team_detail(team.id)["active_requests"] == []
        team_service.delete_team(team.id)

    def test_delete_completed_leaves_team(self, request_service, team_service, sample_request_data,
                                          approved_request, team, coordinator_user):
        """Only an active mission releases a team."""
        request_service.assign_team(approved_request.id, team.id, coordinator_user.id)
        request_service.complete_mission(approved_request.id, coordinator_user.id)
        second = request_service.approve(request_service.create_request(sample_request_data).id, coordinator_user.id)
        request_service.assign_team(second.id, team.id, coordinator_user.id)

        request_service.delete(approved_request.id)

        assert team_service.get_team(team.id).status == "on_mission"

    def test_delete_undone_when_team_cannot_be_released(self, request_service, mongodb_service, approved_request,
                                                        team, coordinator_user):
        """If the team write fails the request stays live."""
        request_service.assign_team(approved_request.id, team.id, coordinator_user.id)
        mongodb_service.soft_delete(RESCUE_TEAMS, team.id)

        with pytest.raises(NotFoundError):
            request_service.delete(approved_request.id)

        assert request_service.get_by_id(approved_request.id).status == "on_mission"

    def test_statistics(self, request_service, sample_request_data, sample_manual_request_data,
                        coordinator_user):
        """Statistics count live requests by status and category."""
        first = request_service.create_request(sample_request_data)
        request_service.create_request(sample_request_data)
        request_service.create_request(sample_manual_request_data)
        deleted = request_service.create_request(sample_manual_request_data)
        request_service.approve(first.id, coordinator_user.id)
        request_service.delete(deleted.id)

        stats = request_service.statistics()

        assert stats["total"] == 3
        assert stats["by_status"] == [
            {"status": "new", "count": 2},
            {"status": "pending_verification", "count": 1}
        ]
        assert stats["by_category"] == [
            {"category": "rescue", "count": 2},
            {"category": "supplies", "count": 1}
        ]

    def test_statistics_empty(self, request_service):
        """An empty store reports zero."""
        assert request_service.statistics() == {"total": 0, "by_status": [], "by_category": []}
