# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with JSON envelope responses.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, List, Optional, Tuple
from opentelemetry import trace
import logging

from ..utils.request import ResponseBuilder

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware:
    """Centralized error handling middleware rendering the API envelope."""

    HTTP_ERROR_CODES = {
        400: "bad_request",
        401: "authentication_error",
        403: "authorization_error",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        415: "unsupported_media_type",
        422: "validation_error",
        429: "rate_limit_exceeded",
        500: "internal_error",
        502: "bad_gateway",
        503: "service_unavailable",
        504: "gateway_timeout",
    }

    def __init__(self, app: Flask):
        self.app = app
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(CustomException)
        def handle_custom_exception(error):
            return self.handle_custom_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error):
            if error.code is not None and error.code >= 500:
                return self.handle_server_error(error)
            return self.handle_client_error(error)

        # Handle generic exceptions
        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def _is_production(self) -> bool:
        return self.app.config.get('ENVIRONMENT') == 'production'

    def handle_custom_error(self, error: "CustomException"):
        """Render an application exception raised by a service or route."""
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            log = logger.error if error.status_code >= 500 else logger.warning
            log(
                f"Request failed: {error.error_type}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "detail": error.message,
                    "path": request.path,
                    "method": request.method
                },
                exc_info=error.status_code >= 500
            )

            message = error.message
            if error.status_code >= 500 and self._is_production():
                message = "An internal server error occurred"

            body, status, _ = ResponseBuilder.error(
                message,
                status_code=error.status_code,
                error_type=error.error_type,
                errors=error.errors,
                details=error.details
            )
            return jsonify(body), status

    def handle_client_error(self, error: HTTPException) -> Tuple[Any, int]:
        """
        Handle client errors (4xx status codes) raised by Flask itself.

        Args:
            error: HTTP exception

        Returns:
            Tuple of (error response, status code)
        """
        error_type = self.HTTP_ERROR_CODES.get(error.code, "client_error")
        with tracer.start_as_current_span("error_handler.client_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else error.name

            logger.warning(
                f"Client error: {error.name}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method,
                    "user_agent": request.headers.get('User-Agent'),
                    "ip_address": request.remote_addr
                }
            )

            body, status, _ = ResponseBuilder.error(detail, status_code=error.code, error_type=error_type)
            return jsonify(body), status

    def handle_server_error(self, error: HTTPException) -> Tuple[Any, int]:
        """Handle server errors (5xx status codes)."""
        error_type = self.HTTP_ERROR_CODES.get(error.code, "internal_error")
        with tracer.start_as_current_span("error_handler.server_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else error.name

            logger.error(
                f"Server error: {error.name}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            # Don't expose internal error details in production
            if self._is_production():
                detail = "An internal server error occurred"

            body, status, _ = ResponseBuilder.error(detail, status_code=error.code, error_type=error_type)
            return jsonify(body), status

    def handle_unexpected_error(self, error: Exception) -> Tuple[Any, int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (error response, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "internal_error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "internal_error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method,
                    "user_agent": request.headers.get('User-Agent'),
                    "ip_address": request.remote_addr
                },
                exc_info=error
            )

            # Don't expose internal error details
            detail = "An unexpected error occurred"
            if not self._is_production() and self.app.config.get('DEBUG'):
                detail = f"{error.__class__.__name__}: {str(error)}"

            body, status, _ = ResponseBuilder.error(detail, status_code=500, error_type="internal_error")
            return jsonify(body), status


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application_error",
                 errors: Optional[List[Dict[str, str]]] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.errors = errors or []
        self.details = details or {}


class ValidationException(CustomException):
    """Exception for malformed input, with field-level detail."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 422, "validation_error", errors=validation_errors)
        self.validation_errors = self.errors


class AuthenticationException(CustomException):
    """Exception for authentication errors."""

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication_error")


class AuthorizationException(CustomException):
    """Exception for authorization errors."""

    def __init__(self, message: str, error_type: str = "authorization_error"):
        super().__init__(message, 403, error_type)


class MissingSignatureException(AuthorizationException):
    """Approval attempted while no authority signature is on file."""

    def __init__(self, message: str):
        super().__init__(message, "missing_signature")


class NotFoundException(CustomException):
    """Exception for resource not found errors."""

    def __init__(self, message: str):
        super().__init__(message, 404, "not_found")


class InvalidTransitionException(CustomException):
    """Exception for status changes the state machine does not allow."""

    def __init__(self, message: str, kind: str = None, from_status: str = None, to_status: str = None):
        super().__init__(
            message, 400, "invalid_transition",
            details={"kind": kind, "from_status": from_status, "to_status": to_status}
        )
        self.kind = kind
        self.from_status = from_status
        self.to_status = to_status


class ConflictException(CustomException):
    """Exception raised when a singleton role already has an active holder."""

    def __init__(self, message: str, role_key: str = None, holder_ids: list = None):
        super().__init__(
            message, 422, "already_held",
            details={"role_key": role_key, "holder_ids": holder_ids or []}
        )
        self.role_key = role_key


class PersistenceException(CustomException):
    """Exception for storage failures; detail is hidden from callers."""

    def __init__(self, message: str = "The operation could not be saved"):
        super().__init__(message, 500, "persistence_error")
