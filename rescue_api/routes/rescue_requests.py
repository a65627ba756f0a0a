# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Rescue request endpoints: public submission and listing, coordinator triage.
"""

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..models.entities import Identity
from ..models.requests import (
    CreateRescueRequestRequest,
    UpdateRescueRequestRequest,
    ApproveRescueRequestRequest,
    RejectRescueRequestRequest,
    AssignTeamRequest,
    CompleteMissionRequest,
    RescueRequestFilters,
    RescueRequestPath
)
from ..domain.authorization import TRIAGE_ROLES, ADMIN_ROLES
from ..middleware.auth import require_auth, require_roles, optional_auth
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

rescue_requests_tag = Tag(name="Rescue Requests", description="Citizen rescue requests and triage")
rescue_requests_bp = APIBlueprint(
    'rescue_requests',
    __name__,
    url_prefix='/api/rescue-requests',
    abp_tags=[rescue_requests_tag]
)


def _service():
    return current_app.rescue_request_service


def _hal():
    return current_app.hal_formatter


@rescue_requests_bp.post('')
@optional_auth
def create_rescue_request(identity):
    """
    Submit a rescue request.

    Anonymous submissions are accepted; a valid token links the request to
    its creator.
    """
    body = RequestParser.parse_model(CreateRescueRequestRequest)
    rescue_request = _service().create_request(
        body.model_dump(exclude_none=True),
        caller_id=identity.id if identity else None
    )
    return _hal().format_rescue_request(rescue_request, identity), 201


@rescue_requests_bp.get('')
@optional_auth
def list_rescue_requests(identity):
    """List rescue requests, newest first."""
    pagination = RequestParser.get_pagination_params()
    filters = RescueRequestFilters(
        **RequestParser.get_filter_params(RescueRequestFilters.model_fields)
    ).model_dump(exclude_none=True)

    with tracer.start_as_current_span("rescue_requests.list") as span:
        span.set_attributes({"pagination.page": pagination['page'], "pagination.limit": pagination['limit']})
        page = _service().list(filters, pagination['page'], pagination['limit'])

    return _hal().format_rescue_request_collection(page, identity, filters), 200


@rescue_requests_bp.get('/stats/summary')
@require_auth
def rescue_request_statistics(identity: Identity):
    """Counts of live rescue requests by status and category."""
    return _hal().format_statistics(_service().statistics()), 200


@rescue_requests_bp.get('/<string:request_id>')
@require_auth
def get_rescue_request(identity: Identity, path: RescueRequestPath):
    """Get a rescue request by ID."""
    return _hal().format_rescue_request(_service().get_by_id(path.request_id), identity), 200


@rescue_requests_bp.put('/<string:request_id>')
@require_roles(*TRIAGE_ROLES)
def update_rescue_request(identity: Identity, path: RescueRequestPath):
    """Administrative correction of status, priority, notes or verification fields."""
    body = RequestParser.parse_model(UpdateRescueRequestRequest)
    rescue_request = _service().update(path.request_id, body.model_dump(exclude_unset=True))

    logger.info(
        "Rescue request updated via API",
        extra={"request_id": path.request_id, "user_id": identity.id}
    )
    return _hal().format_rescue_request(rescue_request, identity), 200


@rescue_requests_bp.delete('/<string:request_id>')
@require_roles(*ADMIN_ROLES)
def delete_rescue_request(identity: Identity, path: RescueRequestPath):
    """Soft delete a rescue request."""
    _service().delete(path.request_id)
    return {"message": "Rescue request deleted successfully"}, 200


@rescue_requests_bp.post('/<string:request_id>/approve')
@require_auth
def approve_rescue_request(identity: Identity, path: RescueRequestPath):
    """Approve a new rescue request into verification."""
    body = RequestParser.parse_model(ApproveRescueRequestRequest)
    rescue_request = _service().approve(path.request_id, identity.id, body.notes)
    return _hal().format_rescue_request(rescue_request, identity), 200


@rescue_requests_bp.post('/<string:request_id>/reject')
@require_auth
def reject_rescue_request(identity: Identity, path: RescueRequestPath):
    """Reject a new rescue request with a reason."""
    body = RequestParser.parse_model(RejectRescueRequestRequest)
    rescue_request = _service().reject(path.request_id, identity.id, body.reason)
    return _hal().format_rescue_request(rescue_request, identity), 200


@rescue_requests_bp.post('/<string:request_id>/assign-team')
@require_auth
def assign_rescue_team(identity: Identity, path: RescueRequestPath):
    """Dispatch an available team to a verified rescue request."""
    body = RequestParser.parse_model(AssignTeamRequest)
    rescue_request = _service().assign_team(path.request_id, body.team_id, identity.id)
    return _hal().format_rescue_request(rescue_request, identity), 200


@rescue_requests_bp.post('/<string:request_id>/complete')
@require_auth
def complete_rescue_mission(identity: Identity, path: RescueRequestPath):
    """Complete the mission and return the team to the available pool."""
    body = RequestParser.parse_model(CompleteMissionRequest)
    rescue_request = _service().complete_mission(path.request_id, identity.id, body.completion_notes)
    return _hal().format_rescue_request(rescue_request, identity), 200
