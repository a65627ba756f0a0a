# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT bearer tokens.

Tokens carry the caller's id (``sub``), email and role. HS256 with a shared
secret is the default; when an RSA key pair is configured tokens are signed
with RS256 instead.
"""

import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

from ..models.entities import Identity

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_SECRET = "dev-secret-key"


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT authentication service.

    Issues and validates access tokens that identify a platform user and
    their role.
    """

    def __init__(self, secret: Optional[str] = None, expires_minutes: int = None,
                 private_key: Optional[str] = None, public_key: Optional[str] = None):
        """
        Initialize the authentication service.

        Args:
            secret: Shared HS256 secret (defaults to ``JWT_SECRET``)
            expires_minutes: Access token lifetime (defaults to ``JWT_EXPIRES_MINUTES``)
            private_key: RS256 private key (PEM); enables RS256 with ``public_key``
            public_key: RS256 public key (PEM)
        """
        private_key = private_key or os.getenv("JWT_PRIVATE_KEY")
        public_key = public_key or os.getenv("JWT_PUBLIC_KEY")

        if private_key and public_key:
            self.algorithm = "RS256"
            self.signing_key = private_key
            self.verifying_key = public_key
        else:
            secret = secret or os.getenv("JWT_SECRET", DEFAULT_SECRET)
            self.algorithm = "HS256"
            self.signing_key = secret
            self.verifying_key = secret

        if expires_minutes is None:
            expires_minutes = int(os.getenv("JWT_EXPIRES_MINUTES", str(7 * 24 * 60)))
        self.access_token_expire_minutes = expires_minutes

    def issue_token(self, identity: Identity) -> str:
        """
        Issue an access token for an identity.

        Args:
            identity: Caller identity to encode

        Returns:
            Encoded JWT
        """
        with tracer.start_as_current_span("auth.issue_token") as span:
            span.set_attributes({
                "auth.operation": "issue_token",
                "user.id": identity.id,
                "user.role": identity.role
            })

            now = datetime.now(timezone.utc)
            payload = {
                "sub": identity.id,
                "email": identity.email,
                "role": identity.role,
                "name": identity.name,
                "iat": now,
                "exp": now + timedelta(minutes=self.access_token_expire_minutes),
                "type": "access"
            }

            token = jwt.encode(payload, self.signing_key, algorithm=self.algorithm)
            logger.info("Access token issued", extra={"user_id": identity.id, "role": identity.role})
            return token

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.verifying_key,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["sub", "exp"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type") != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": payload.get("sub")
            })
            return payload

    def identity_from_token(self, token: str) -> Identity:
        """
        Resolve a bearer token to the caller identity it carries.

        Raises:
            TokenValidationError: If the token is invalid or lacks a usable role
        """
        payload = self.validate_token(token)
        try:
            return Identity(
                id=payload["sub"],
                email=payload.get("email"),
                role=payload.get("role"),
                name=payload.get("name")
            )
        except ValueError as e:
            raise TokenValidationError(f"Invalid token claims: {str(e)}")
