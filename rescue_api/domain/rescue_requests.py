# SPDX-License-Identifier: Apache-2.0

"""
Rescue request lifecycle engine.

Requests move one way through triage::

    new -> pending_verification -> on_mission -> completed
      \\-> rejected

Every status flip is written as a compare-and-set on the prior status, and
the paired request/team writes of dispatch and completion run in a single
unit of work.
"""

import logging
from typing import Any, Dict, Optional

from opentelemetry import trace
from pydantic import ValidationError as PydanticValidationError

from ..models.entities import RescueRequest
from ..models.enums import RequestStatus, TeamStatus
from ..services.mongodb import MongoDBService, RESCUE_REQUESTS
from ..services.unit_of_work import UnitOfWork
from .authorization import TRIAGE_ROLES, require_role
from .errors import ConflictError, NotFoundError, StateError, ValidationError, from_pydantic
from .rescue_teams import RescueTeamService
from .transitions import (
    REQUEST_UPDATABLE_FIELDS, Page, build_pagination, clean_filters, filter_whitelisted,
    normalize_pagination, validate_request_update, validate_rescue_request_payload
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

REQUEST_FILTER_FIELDS = ('status', 'category', 'province_city', 'priority', 'user_id')


class RescueRequestService:
    """Rescue Request Lifecycle Engine."""

    def __init__(self, mongodb_service: MongoDBService, identity_gateway, team_service: RescueTeamService):
        """
        Args:
            mongodb_service: Persistence gateway
            identity_gateway: Anything with ``get_identity(user_id)``
            team_service: Team availability manager used for dispatch
        """
        self.db = mongodb_service
        self.identities = identity_gateway
        self.teams = team_service

    def _authorize(self, actor_id: Optional[str]):
        return require_role(self.identities.get_identity(actor_id), TRIAGE_ROLES)

    def _advance(self, unit: UnitOfWork, request: RescueRequest, prior_status: str,
                 changes: Dict[str, Any]) -> None:
        if not unit.compare_and_set(RESCUE_REQUESTS, request.id, {"status": prior_status}, changes):
            raise StateError("Rescue request was modified concurrently, reload and retry")

    def get_by_id(self, request_id: str) -> RescueRequest:
        """
        Load a live rescue request.

        Raises:
            NotFoundError: absent, soft-deleted or malformed id
        """
        document = self.db.find_one(RESCUE_REQUESTS, request_id)
        if document is None:
            raise NotFoundError("Rescue request not found")
        return RescueRequest.from_document(document)

    def create_request(self, data: Dict[str, Any], caller_id: Optional[str] = None) -> RescueRequest:
        """
        Submit a new rescue request. Anonymous submissions are allowed.

        Raises:
            ValidationError: missing fields, bad enum values or location data
        """
        with tracer.start_as_current_span("domain.rescue_request.create") as span:
            validate_rescue_request_payload(data).raise_for_errors("Invalid rescue request")

            try:
                request = RescueRequest(
                    category=data['category'],
                    province_city=data['province_city'],
                    phone_number=data['phone_number'],
                    description=data['description'],
                    num_people=data.get('num_people') or 1,
                    priority=data.get('priority'),
                    location_type=data['location_type'],
                    latitude=data.get('latitude'),
                    longitude=data.get('longitude'),
                    address=data.get('address'),
                    media_urls=data.get('media_urls') or [],
                    user_id=caller_id,
                    status=RequestStatus.NEW
                )
            except PydanticValidationError as e:
                raise from_pydantic(e, "Invalid rescue request")

            created = self.db.with_transaction(
                lambda uow: uow.insert(RESCUE_REQUESTS, {"id": request.id, **request.to_document()})
            )

            span.set_attributes({
                "rescue_request.id": request.id,
                "rescue_request.category": request.category,
                "rescue_request.anonymous": caller_id is None
            })
            logger.info(
                f"Rescue request created: {request.id}",
                extra={"category": request.category, "province_city": request.province_city}
            )
            return RescueRequest.from_document(created)

    def approve(self, request_id: str, actor_id: str, notes: Optional[str] = None) -> RescueRequest:
        """
        Accept a new request into triage (``new -> pending_verification``).

        Raises:
            NotFoundError: request or actor absent
            StateError: request is not new
            ForbiddenError: actor is not a coordinator or admin
        """
        with tracer.start_as_current_span("domain.rescue_request.approve") as span:
            span.set_attribute("rescue_request.id", request_id)
            request = self.get_by_id(request_id)
            prior_status = request.status
            changes = request.approve(actor_id, notes)
            self._authorize(actor_id)

            self.db.with_transaction(lambda uow: self._advance(uow, request, prior_status, changes))

            logger.info(f"Rescue request {request.id} approved", extra={"actor_id": actor_id})
            return self.get_by_id(request.id)

    def reject(self, request_id: str, actor_id: str, reason: Optional[str]) -> RescueRequest:
        """
        Reject a new request (``new -> rejected``). Terminal.

        Raises:
            ValidationError: reason is blank
            NotFoundError, StateError, ForbiddenError: as for ``approve``
        """
        with tracer.start_as_current_span("domain.rescue_request.reject") as span:
            span.set_attribute("rescue_request.id", request_id)
            if not reason or not str(reason).strip():
                raise ValidationError(
                    "Rejection reason is required",
                    [{"field": "reason", "message": "Missing required field", "input": reason}]
                )

            request = self.get_by_id(request_id)
            prior_status = request.status
            changes = request.reject(actor_id, str(reason))
            self._authorize(actor_id)

            self.db.with_transaction(lambda uow: self._advance(uow, request, prior_status, changes))

            logger.info(f"Rescue request {request.id} rejected", extra={"actor_id": actor_id})
            return self.get_by_id(request.id)

    def assign_team(self, request_id: str, team_id: Optional[str], actor_id: str) -> RescueRequest:
        """
        Dispatch an available team (``pending_verification -> on_mission``).

        The team flip and the request flip commit together. When two
        dispatchers race for one team, exactly one wins.

        Raises:
            ValidationError: team id is blank
            NotFoundError: request, actor or team absent
            StateError: request is not pending verification, or changed meanwhile
            ForbiddenError: actor is not a coordinator or admin
            ConflictError: team is not available
        """
        with tracer.start_as_current_span("domain.rescue_request.assign_team") as span:
            if not team_id or not str(team_id).strip():
                raise ValidationError(
                    "Team ID is required",
                    [{"field": "team_id", "message": "Missing required field", "input": team_id}]
                )
            span.set_attributes({"rescue_request.id": request_id, "rescue_team.id": team_id})

            request = self.get_by_id(request_id)
            prior_status = request.status
            changes = request.assign_team(team_id, actor_id)
            self._authorize(actor_id)

            team = self.teams.get_team(team_id)
            if not team.is_available():
                raise ConflictError(f"Team is not available. Current status: {team.status}")

            def dispatch(uow: UnitOfWork):
                self.teams.set_on_mission(team.id, uow)
                self._advance(uow, request, prior_status, changes)

            self.db.with_transaction(dispatch)

            logger.info(
                f"Team {team.name} assigned to rescue request {request.id}",
                extra={"actor_id": actor_id, "team_id": team.id}
            )
            return self.get_by_id(request.id)

    def complete_mission(self, request_id: str, actor_id: str,
                         completion_notes: Optional[str] = None) -> RescueRequest:
        """
        Close a mission (``on_mission -> completed``) and free the team.

        Raises:
            NotFoundError: request or actor absent
            StateError: request is not on a mission or has no team
            ForbiddenError: actor is not a coordinator or admin
        """
        with tracer.start_as_current_span("domain.rescue_request.complete") as span:
            span.set_attribute("rescue_request.id", request_id)
            request = self.get_by_id(request_id)
            prior_status = request.status
            if prior_status != RequestStatus.ON_MISSION.value:
                raise StateError(
                    f"Cannot complete rescue request in '{prior_status}' status"
                )
            self._authorize(actor_id)

            changes = request.complete(completion_notes)
            team_id = request.assigned_team_id

            def close(uow: UnitOfWork):
                self._advance(uow, request, prior_status, changes)
                self.teams.set_available(team_id, uow)

            self.db.with_transaction(close)

            logger.info(
                f"Rescue request {request.id} completed",
                extra={"actor_id": actor_id, "team_id": team_id, "team_status": TeamStatus.AVAILABLE.value}
            )
            return self.get_by_id(request.id)

    def list(self, filters: Optional[Dict[str, Any]] = None, page: Any = 1, limit: Any = 20) -> Page:
        """List rescue requests, newest first."""
        page, limit, _ = normalize_pagination(page, limit)
        query = clean_filters(filters, REQUEST_FILTER_FIELDS)

        result = self.db.paginate(RESCUE_REQUESTS, page=page, page_size=limit, filters=query)
        return Page(
            items=[RescueRequest.from_document(doc) for doc in result.items],
            pagination=build_pagination(page, limit, result.total)
        )

    def update(self, request_id: str, patch: Dict[str, Any]) -> RescueRequest:
        """
        Administrative correction of triage fields.

        Only ``status``, ``priority``, ``notes``, ``verified_by`` and
        ``verified_at`` are applied; everything else is dropped. A status
        patch stays within the lifecycle statuses and never enters or leaves
        ``on_mission``/``completed``, which change only with their team.

        Raises:
            NotFoundError, ValidationError
            StateError: status changed while the patch was applied
        """
        request = self.get_by_id(request_id)
        updates = filter_whitelisted(patch, REQUEST_UPDATABLE_FIELDS)
        if not updates:
            return request

        validate_request_update(updates, request.status).raise_for_errors("Invalid rescue request update")

        try:
            candidate = RescueRequest.model_validate({**request.model_dump(), **updates})
        except PydanticValidationError as e:
            raise from_pydantic(e, "Invalid rescue request update")

        changes = {key: getattr(candidate, key) for key in updates}
        expected = {"status": request.status} if "status" in changes else None
        if not self.db.update(RESCUE_REQUESTS, request.id, changes, expected=expected):
            self.get_by_id(request.id)
            raise StateError("Rescue request was modified concurrently, reload and retry")

        logger.info(f"Rescue request {request.id} updated", extra={"fields": sorted(changes)})
        return self.get_by_id(request.id)

    def delete(self, request_id: str) -> None:
        """
        Soft delete a rescue request.

        Deleting a request that is on a mission releases its team in the
        same unit of work.

        Raises:
            NotFoundError: request absent
            StateError: status changed while deleting
        """
        request = self.get_by_id(request_id)
        team_id = request.assigned_team_id if request.status == RequestStatus.ON_MISSION.value else None

        def withdraw(uow: UnitOfWork):
            if not uow.soft_delete(RESCUE_REQUESTS, request.id, expected={"status": request.status}):
                self.get_by_id(request.id)
                raise StateError("Rescue request was modified concurrently, reload and retry")
            if team_id:
                self.teams.set_available(team_id, uow)

        self.db.with_transaction(withdraw)
        logger.info(f"Rescue request {request.id} deleted", extra={"released_team_id": team_id})

    def statistics(self) -> Dict[str, Any]:
        """Totals over live requests, grouped by status and by category."""
        with tracer.start_as_current_span("domain.rescue_request.statistics"):
            return {
                "total": self.db.count(RESCUE_REQUESTS),
                "by_status": self.db.count_by_group(RESCUE_REQUESTS, "status"),
                "by_category": self.db.count_by_group(RESCUE_REQUESTS, "category")
            }
