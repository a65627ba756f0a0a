# SPDX-License-Identifier: Apache-2.0

"""
Team availability management.

Owns rescue team records and their status flips. ``set_on_mission`` is the
only way a team leaves ``available`` for a mission; it is a compare-and-set
so two dispatchers can never both claim the same team.
"""

import logging
from typing import Any, Dict, List, Optional

from opentelemetry import trace
from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING

from ..models.entities import RescueTeam, RescueRequest
from ..models.enums import TeamStatus, TeamSpecialization, RequestStatus
from ..services.mongodb import MongoDBService, RESCUE_TEAMS, RESCUE_REQUESTS
from ..services.unit_of_work import UnitOfWork
from .errors import ConflictError, DuplicateError, NotFoundError, from_pydantic
from .transitions import (
    TEAM_UPDATABLE_FIELDS, Page, build_pagination, clean_filters,
    filter_whitelisted, normalize_pagination, validate_team_payload
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TEAM_FILTER_FIELDS = ('status', 'specialization', 'province_city')


class RescueTeamService:
    """Team Availability Manager."""

    def __init__(self, mongodb_service: MongoDBService):
        self.db = mongodb_service

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        existing = self.db.find_one_by(RESCUE_TEAMS, {"name": name})
        return existing is not None and existing["id"] != exclude_id

    def _run(self, work, uow: Optional[UnitOfWork]):
        if uow is not None:
            return work(uow)
        return self.db.with_transaction(work)

    def create_team(self, data: Dict[str, Any]) -> RescueTeam:
        """
        Create a rescue team.

        Raises:
            ValidationError: required fields missing or values out of range
            DuplicateError: a live team already uses the name
        """
        with tracer.start_as_current_span("domain.team.create") as span:
            validate_team_payload(data).raise_for_errors("Missing required fields")

            name = data['name'].strip()
            span.set_attribute("team.name", name)
            if self._name_taken(name):
                raise DuplicateError("Team with this name already exists")

            try:
                team = RescueTeam(
                    name=name,
                    leader_name=data['leader_name'],
                    phone_number=data['phone_number'],
                    province_city=data['province_city'],
                    specialization=data.get('specialization') or TeamSpecialization.GENERAL,
                    capacity=data.get('capacity') or 5,
                    current_members=data.get('current_members') or 0,
                    status=TeamStatus.AVAILABLE,
                    equipment=data.get('equipment') or [],
                    notes=data.get('notes')
                )
            except PydanticValidationError as e:
                raise from_pydantic(e, "Invalid rescue team data")

            created = self.db.with_transaction(
                lambda uow: uow.insert(RESCUE_TEAMS, {"id": team.id, **team.to_document()})
            )

            span.set_attribute("team.id", team.id)
            logger.info(f"Team created: {team.name} ({team.id})")
            return RescueTeam.from_document(created)

    def list_teams(self, filters: Optional[Dict[str, Any]] = None, page: Any = 1, limit: Any = 20) -> Page:
        """List teams, newest first."""
        page, limit, _ = normalize_pagination(page, limit)
        query = clean_filters(filters, TEAM_FILTER_FIELDS)

        result = self.db.paginate(RESCUE_TEAMS, page=page, page_size=limit, filters=query)
        return Page(
            items=[RescueTeam.from_document(doc) for doc in result.items],
            pagination=build_pagination(page, limit, result.total)
        )

    def list_available_teams(self, province_city: Optional[str] = None,
                             specialization: Optional[str] = None) -> List[RescueTeam]:
        """Available teams, longest-waiting first."""
        query = clean_filters(
            {"province_city": province_city, "specialization": specialization},
            TEAM_FILTER_FIELDS
        )
        query["status"] = TeamStatus.AVAILABLE.value

        teams = [
            RescueTeam.from_document(doc)
            for doc in self.db.find(RESCUE_TEAMS, query, sort_order=ASCENDING)
        ]

        logger.info(
            f"Found {len(teams)} available teams",
            extra={"province_city": province_city, "specialization": specialization}
        )
        return teams

    def get_team(self, team_id: str) -> RescueTeam:
        """
        Load a live team.

        Raises:
            NotFoundError: absent, soft-deleted or malformed id
        """
        document = self.db.find_one(RESCUE_TEAMS, team_id)
        if document is None:
            raise NotFoundError("Team not found")
        return RescueTeam.from_document(document)

    def get_team_detail(self, team_id: str) -> Dict[str, Any]:
        """Team plus the requests it is currently on."""
        team = self.get_team(team_id)
        active = self.db.find(
            RESCUE_REQUESTS,
            {"assigned_team_id": team.id, "status": RequestStatus.ON_MISSION.value}
        )
        return {
            **team.model_dump(mode="json"),
            "active_requests": [RescueRequest.from_document(doc).model_dump(mode="json") for doc in active]
        }

    def update_team(self, team_id: str, patch: Dict[str, Any]) -> RescueTeam:
        """
        Apply a whitelisted patch. Unknown fields are dropped.

        ``status`` may move between ``available`` and ``unavailable`` only;
        a team enters and leaves ``on_mission`` through dispatch and
        completion.

        Raises:
            NotFoundError, ValidationError, DuplicateError
            ConflictError: status patch on or into a mission, or status changed meanwhile
        """
        team = self.get_team(team_id)
        updates = filter_whitelisted(patch, TEAM_UPDATABLE_FIELDS)
        if not updates:
            return team

        validate_team_payload(updates, partial=True).raise_for_errors("Invalid rescue team data")

        new_status = updates.get('status', team.status)
        if new_status != team.status and TeamStatus.ON_MISSION.value in (new_status, team.status):
            raise ConflictError("Team mission status changes only through dispatch and completion")

        if 'name' in updates:
            updates['name'] = updates['name'].strip()
            if updates['name'] != team.name and self._name_taken(updates['name'], exclude_id=team.id):
                raise DuplicateError("Team with this name already exists")

        try:
            candidate = RescueTeam.model_validate({**team.model_dump(), **updates})
        except PydanticValidationError as e:
            raise from_pydantic(e, "Invalid rescue team data")

        changes = {key: getattr(candidate, key) for key in updates}
        expected = {"status": team.status} if 'status' in changes else None
        if not self.db.update(RESCUE_TEAMS, team.id, changes, expected=expected):
            self.get_team(team.id)
            raise ConflictError("Team was modified concurrently, reload and retry")

        logger.info(f"Team updated: {candidate.name}", extra={"team_id": team.id, "fields": sorted(changes)})
        return self.get_team(team.id)

    def delete_team(self, team_id: str) -> None:
        """
        Soft delete a team.

        Raises:
            NotFoundError: team absent
            ConflictError: team is on a mission
        """
        team = self.get_team(team_id)
        if team.is_on_mission():
            raise ConflictError("Cannot delete team that is currently on mission")

        # Re-check status in the write itself so a concurrent dispatch wins
        deleted = self.db.soft_delete(
            RESCUE_TEAMS, team.id,
            expected={"status": {"$ne": TeamStatus.ON_MISSION.value}}
        )
        if not deleted:
            raise ConflictError("Cannot delete team that is currently on mission")

        logger.info(f"Team deleted: {team.name}", extra={"team_id": team.id})

    def set_on_mission(self, team_id: str, uow: Optional[UnitOfWork] = None) -> Optional[RescueTeam]:
        """
        Claim an available team for a mission.

        When ``uow`` is given the write joins it and nothing is returned;
        otherwise the flip runs on its own and the updated team is returned.

        Raises:
            NotFoundError: team absent
            ConflictError: team is not available
        """
        def work(unit: UnitOfWork):
            claimed = unit.compare_and_set(
                RESCUE_TEAMS, team_id,
                expected={"status": TeamStatus.AVAILABLE.value},
                updates={"status": TeamStatus.ON_MISSION.value}
            )
            if not claimed:
                current = unit.find_one(RESCUE_TEAMS, team_id)
                if current is None:
                    raise NotFoundError("Team not found")
                raise ConflictError(f"Team is not available. Current status: {current['status']}")

        self._run(work, uow)
        logger.info(f"Team {team_id} is now ON MISSION")
        return self.get_team(team_id) if uow is None else None

    def set_available(self, team_id: str, uow: Optional[UnitOfWork] = None) -> Optional[RescueTeam]:
        """
        Return a team to the available pool.

        Raises:
            NotFoundError: team absent
        """
        def work(unit: UnitOfWork):
            if not unit.compare_and_set(RESCUE_TEAMS, team_id, {}, {"status": TeamStatus.AVAILABLE.value}):
                raise NotFoundError("Team not found")

        self._run(work, uow)
        logger.info(f"Team {team_id} is now AVAILABLE")
        return self.get_team(team_id) if uow is None else None
