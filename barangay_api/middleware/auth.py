# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and user context extraction.

This module provides Flask middleware for validating JWT tokens, checking
blocklists, and building user context for request processing.
"""

from functools import wraps
from flask import request, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from ..models.entities import UserContext
from ..models.enums import UserRole
from ..services.auth import TokenValidationError
from ..utils.request import RequestParser
from .error_handler import AuthenticationException, AuthorizationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation, blocklist checking, and user context
    building for protected endpoints.
    """

    def __init__(self, auth_service, redis_service):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
            redis_service: Redis service for token blocklist
        """
        self.auth_service = auth_service
        self.redis_service = redis_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None
        return None

    def build_user_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build user context from validated token payload and request information.

        Args:
            token_payload: Decoded JWT payload
            request_info: Request metadata (IP, user agent, etc.)

        Returns:
            UserContext object for request processing
        """
        return UserContext(
            user_id=token_payload["sub"],
            name=token_payload.get("name") or token_payload["sub"],
            role=token_payload["role"],
            email=token_payload.get("email"),
            token_payload=token_payload,
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent"),
            session_id=token_payload.get("jti")
        )

    def authenticate(self) -> UserContext:
        """
        Authenticate the current request.

        Raises:
            AuthenticationException: Token missing, revoked or invalid
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            token = self.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token", extra={"path": request.path})
                raise AuthenticationException("Missing authorization token")

            try:
                token_payload = self.auth_service.validate_token(token, "access")
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}", extra={"path": request.path})
                raise AuthenticationException(str(e))

            jti = token_payload.get("jti")
            if jti and self.redis_service is not None and self.redis_service.is_token_blocked(jti):
                span.set_attribute("auth.result", "token_blocked")
                logger.warning("Authentication failed: token is blocked", extra={"path": request.path})
                raise AuthenticationException("Token has been revoked")

            user_context = self.build_user_context(token_payload, RequestParser.get_request_metadata())
            span.set_attributes({
                "auth.result": "success",
                "user.id": user_context.user_id,
                "user.role": UserRole(user_context.role).value
            })
            return user_context


def current_user() -> UserContext:
    """User context of the authenticated request."""
    return g.user_context


def require_auth(f: Callable) -> Callable:
    """Decorator to require JWT authentication for Flask routes."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user_context = current_app.auth_middleware.authenticate()
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: UserRole) -> Callable:
    """
    Decorator to require one of ``roles`` for Flask routes.

    Args:
        roles: Accepted roles

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context = current_app.auth_middleware.authenticate()
            g.user_context = user_context

            with tracer.start_as_current_span("auth.middleware.check_role") as span:
                span.set_attributes({
                    "auth.required_roles": ",".join(UserRole(r).value for r in roles),
                    "user.id": user_context.user_id
                })

                if not user_context.has_role(*roles):
                    span.set_attribute("auth.role_result", "denied")
                    logger.warning(
                        "Authorization failed: role not permitted",
                        extra={
                            "user_id": user_context.user_id,
                            "role": UserRole(user_context.role).value,
                            "required_roles": [UserRole(r).value for r in roles]
                        }
                    )
                    raise AuthorizationException("Your role is not permitted to perform this action")

                span.set_attribute("auth.role_result", "granted")

            return f(*args, **kwargs)

        return decorated_function
    return decorator
