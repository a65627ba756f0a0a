"""
Rescue Coordination API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support, wires the
persistence gateway, identity gateway and domain services into it, and
registers middleware and routes.
"""

from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from .config import load_config
from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .middleware.cors import configure_cors
from .middleware.error_handler import ErrorHandlerMiddleware
from .middleware.auth import AuthMiddleware
from .services.hal import create_hal_formatter
from .services.mongodb import MongoDBService
from .services.auth import AuthService
from .services.identity import UserDirectory
from .services.health import HealthCheckService
from .domain.rescue_teams import RescueTeamService
from .domain.rescue_requests import RescueRequestService
from .routes.rescue_requests import rescue_requests_bp, rescue_requests_tag
from .routes.rescue_teams import rescue_teams_bp, rescue_teams_tag

# OpenAPI info
info = Info(
    title="Rescue Coordination API",
    version="1.0.0",
    description="Disaster rescue request triage and team dispatch API with HAL responses"
)

# API tags
health_tag = Tag(name="Health", description="System health and status")
tags = [rescue_requests_tag, rescue_teams_tag, health_tag]


def create_app(config: Optional[Dict[str, Any]] = None,
               mongodb_service: Optional[MongoDBService] = None,
               identity_gateway=None) -> OpenAPI:
    """
    Build the Flask application.

    Args:
        config: Config overrides applied on top of the environment
        mongodb_service: Pre-built persistence gateway (tests inject one
            backed by an in-memory client)
        identity_gateway: Object with ``get_identity(user_id)``; defaults to
            the ``users`` collection directory

    Returns:
        Configured application
    """
    settings = load_config(config)
    otel_enabled = setup_observability(settings['ENVIRONMENT'], settings['OTEL_ENABLED'])

    app = OpenAPI(__name__, info=info)
    app.config.update(settings)

    add_observability_middleware(app, instrument=otel_enabled)

    # Initialize services
    if mongodb_service is None:
        mongodb_service = MongoDBService(
            settings['MONGODB_URI'],
            settings['MONGODB_DATABASE'],
            transactions_enabled=settings['MONGODB_TRANSACTIONS']
        )
    auth_service = AuthService(settings['JWT_SECRET'], settings['JWT_EXPIRES_MINUTES'])
    identity_gateway = identity_gateway or UserDirectory(mongodb_service)
    team_service = RescueTeamService(mongodb_service)
    request_service = RescueRequestService(mongodb_service, identity_gateway, team_service)
    health_service = HealthCheckService(mongodb_service, settings['ENVIRONMENT'], settings['SERVICE_VERSION'])

    # Initialize middleware
    hal_formatter = create_hal_formatter(settings['BASE_URL'])
    ErrorHandlerMiddleware(app, hal_formatter)
    configure_cors(app, allowed_origins=settings['CORS_ORIGINS'], environment=settings['ENVIRONMENT'])

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.auth_service = auth_service
    app.auth_middleware = AuthMiddleware(auth_service)
    app.identity_gateway = identity_gateway
    app.rescue_team_service = team_service
    app.rescue_request_service = request_service
    app.hal_formatter = hal_formatter

    app.register_api(rescue_requests_bp)
    app.register_api(rescue_teams_bp)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Health check with MongoDB status; 503 when unhealthy."""
        health_data = health_service.get_health()
        status_code = 503 if health_data["status"] == "unhealthy" else 200

        links = {'self': hal_formatter.builder.link_builder.build_self_link('/api/healthz')}
        return jsonify(hal_formatter.builder.build_resource_response(health_data, links)), status_code

    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=application.config['PORT'],
        debug=application.config['DEBUG']
    )
