# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Rescue team endpoints for coordinators and administrators.
"""

from flask import current_app, request
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..models.entities import Identity
from ..models.requests import (
    CreateRescueTeamRequest, UpdateRescueTeamRequest, RescueTeamFilters, RescueTeamPath
)
from ..domain.authorization import TRIAGE_ROLES, ADMIN_ROLES
from ..middleware.auth import require_roles
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)

rescue_teams_tag = Tag(name="Rescue Teams", description="Rescue team availability management")
rescue_teams_bp = APIBlueprint(
    'rescue_teams',
    __name__,
    url_prefix='/api/rescue-teams',
    abp_tags=[rescue_teams_tag]
)


def _service():
    return current_app.rescue_team_service


def _hal():
    return current_app.hal_formatter


@rescue_teams_bp.get('/available')
@require_roles(*TRIAGE_ROLES)
def list_available_teams(identity: Identity):
    """Available teams, longest-waiting first, optionally narrowed by area and specialization."""
    teams = _service().list_available_teams(
        province_city=request.args.get('province_city') or None,
        specialization=request.args.get('specialization') or None
    )
    return _hal().format_available_teams(teams, identity), 200


@rescue_teams_bp.get('')
@require_roles(*TRIAGE_ROLES)
def list_rescue_teams(identity: Identity):
    """List rescue teams, newest first."""
    pagination = RequestParser.get_pagination_params()
    filters = RescueTeamFilters(
        **RequestParser.get_filter_params(RescueTeamFilters.model_fields)
    ).model_dump(exclude_none=True)

    page = _service().list_teams(filters, pagination['page'], pagination['limit'])
    return _hal().format_rescue_team_collection(page, identity, filters), 200


@rescue_teams_bp.get('/<string:team_id>')
@require_roles(*TRIAGE_ROLES)
def get_rescue_team(identity: Identity, path: RescueTeamPath):
    """Get a team with the rescue requests it is currently on."""
    return _hal().format_rescue_team(_service().get_team_detail(path.team_id), identity), 200


@rescue_teams_bp.post('')
@require_roles(*ADMIN_ROLES)
def create_rescue_team(identity: Identity):
    """Create a rescue team."""
    body = RequestParser.parse_model(CreateRescueTeamRequest)
    team = _service().create_team(body.model_dump(exclude_none=True))

    logger.info("Rescue team created via API", extra={"team_id": team.id, "user_id": identity.id})
    return _hal().format_rescue_team(team, identity), 201


@rescue_teams_bp.put('/<string:team_id>')
@require_roles(*TRIAGE_ROLES)
def update_rescue_team(identity: Identity, path: RescueTeamPath):
    """Update team details."""
    body = RequestParser.parse_model(UpdateRescueTeamRequest)
    team = _service().update_team(path.team_id, body.model_dump(exclude_unset=True))
    return _hal().format_rescue_team(team, identity), 200


@rescue_teams_bp.delete('/<string:team_id>')
@require_roles(*ADMIN_ROLES)
def delete_rescue_team(identity: Identity, path: RescueTeamPath):
    """Soft delete a team that is not on a mission."""
    _service().delete_team(path.team_id)
    return {"message": "Rescue team deleted successfully"}, 200
