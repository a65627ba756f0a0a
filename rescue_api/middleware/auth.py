# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and caller identity extraction.

The decorators look the middleware up on ``current_app`` at request time, so
blueprints can be declared before the application is built.
"""

from functools import wraps
from flask import request, current_app, g
from typing import Optional, Callable
from opentelemetry import trace
import logging

from ..models.entities import Identity
from ..services.auth import AuthService, TokenValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction and validation, and builds the caller identity
    for protected endpoints.
    """

    def __init__(self, auth_service: AuthService):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
        """
        self.auth_service = auth_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header:
            return None

        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None

        return None

    def authenticate(self) -> Identity:
        """
        Resolve the caller identity from the current request.

        Raises:
            TokenValidationError: token missing or invalid
        """
        token = self.extract_token_from_request()
        if not token:
            raise TokenValidationError("Missing authorization token")

        identity = self.auth_service.identity_from_token(token)
        g.identity = identity
        return identity


def _unauthorized(detail: str):
    body = current_app.hal_formatter.format_authentication_error(detail, request.path)
    return body, 401, {"Content-Type": "application/problem+json"}


def _forbidden(detail: str):
    body = current_app.hal_formatter.format_authorization_error(detail, request.path)
    return body, 403, {"Content-Type": "application/problem+json"}


def require_auth(f: Callable) -> Callable:
    """
    Require a valid bearer token. The caller ``Identity`` is passed as the
    first positional argument to the view.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            span.set_attribute("auth.operation", "validate_request")

            try:
                identity = current_app.auth_middleware.authenticate()
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}", extra={"path": request.path})
                return _unauthorized(str(e))

            span.set_attributes({
                "auth.result": "success",
                "user.id": identity.id,
                "user.role": identity.role
            })

        return f(identity, *args, **kwargs)

    return decorated_function


def require_roles(*roles: str) -> Callable:
    """
    Require a valid bearer token whose role is one of ``roles``.

    Returns 401 without a usable token and 403 on a role mismatch.
    """
    allowed = [getattr(role, 'value', role) for role in roles]

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        @require_auth
        def decorated_function(identity: Identity, *args, **kwargs):
            if not identity.has_role(*allowed):
                logger.warning(
                    "Authorization failed: role not permitted",
                    extra={"user_id": identity.id, "role": identity.role, "required_roles": allowed}
                )
                return _forbidden(f"Only {' or '.join(allowed)} users can perform this action")

            return f(identity, *args, **kwargs)

        return decorated_function
    return decorator


def optional_auth(f: Callable) -> Callable:
    """
    Pass the caller ``Identity`` when a valid token is present, else None.

    Invalid tokens are treated as anonymous access.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity = None
        if current_app.auth_middleware.extract_token_from_request():
            try:
                identity = current_app.auth_middleware.authenticate()
            except TokenValidationError as e:
                logger.info(f"Ignoring invalid token on optional auth endpoint: {str(e)}")

        return f(identity, *args, **kwargs)

    return decorated_function
