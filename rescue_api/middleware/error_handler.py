# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from ..domain.errors import RescueApiError, ValidationError
from ..services.hal import HalFormatter

logger = logging.getLogger(__name__)

PROBLEM_CONTENT_TYPE = "application/problem+json"

HTTP_ERROR_TYPES = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    415: ("unsupported-media-type", "Unsupported Media Type"),
    422: ("validation-error", "Validation Error"),
}


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, hal_formatter: HalFormatter):
        self.app = app
        self.hal_formatter = hal_formatter
        self.register_error_handlers()

    def _respond(self, body, status_code: int):
        response = jsonify(body)
        response.status_code = status_code
        response.content_type = PROBLEM_CONTENT_TYPE
        return response

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(RescueApiError)
        def handle_domain_error(error):
            return self.handle_domain_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error):
            if error.code is not None and error.code >= 500:
                return self.handle_server_error(error)
            return self.handle_client_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def handle_domain_error(self, error: RescueApiError):
        """Render a domain error as a problem document."""
        span = trace.get_current_span()
        span.set_attributes({
            "error.type": error.error_type,
            "error.status": error.status_code
        })
        span.add_event("domain_error", {"error.message": error.message})

        logger.warning(
            f"Domain error: {error.title}",
            extra={
                "error_type": error.error_type,
                "status_code": error.status_code,
                "detail": error.message,
                "path": request.path,
                "method": request.method
            }
        )

        validation_errors = error.errors if isinstance(error, ValidationError) else None
        body = self.hal_formatter.format_error(
            error.error_type,
            error.title,
            error.status_code,
            error.message,
            request.path,
            validation_errors
        )
        return self._respond(body, error.status_code)

    def handle_client_error(self, error: HTTPException):
        """
        Handle client errors (4xx status codes).

        Args:
            error: HTTP exception

        Returns:
            Problem response
        """
        error_type, title = HTTP_ERROR_TYPES.get(error.code, ("client-error", error.name))
        detail = str(error.description) if error.description else title

        logger.warning(
            f"Client error: {title}",
            extra={
                "error_type": error_type,
                "status_code": error.code,
                "detail": detail,
                "path": request.path,
                "method": request.method,
                "ip_address": request.remote_addr
            }
        )

        body = self.hal_formatter.format_error(error_type, title, error.code, detail, request.path)
        return self._respond(body, error.code)

    def handle_server_error(self, error: HTTPException):
        """Handle HTTP exceptions with a 5xx status code."""
        logger.error(
            f"Server error: {error.name}",
            extra={"status_code": error.code, "path": request.path, "method": request.method},
            exc_info=True
        )

        detail = str(error.description) if error.description else error.name
        if self.app.config.get('ENVIRONMENT') == 'production':
            detail = "An internal server error occurred"

        body = self.hal_formatter.format_error(
            "service-unavailable" if error.code == 503 else "internal-server-error",
            error.name,
            error.code,
            detail,
            request.path
        )
        return self._respond(body, error.code)

    def handle_unexpected_error(self, error: Exception):
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Problem response with status 500
        """
        span = trace.get_current_span()
        span.record_exception(error)
        span.set_status(Status(StatusCode.ERROR, str(error)))

        logger.error(
            f"Unexpected error: {error.__class__.__name__}",
            extra={
                "error_class": error.__class__.__name__,
                "error_message": str(error),
                "path": request.path,
                "method": request.method
            },
            exc_info=True
        )

        # Don't expose internal error details in production
        detail = "An unexpected error occurred"
        if self.app.config.get('ENVIRONMENT') != 'production':
            detail = f"{error.__class__.__name__}: {str(error)}"

        body = self.hal_formatter.format_server_error(detail, request.path)
        return self._respond(body, 500)
