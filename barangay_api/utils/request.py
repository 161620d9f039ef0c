# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting request data and building response envelopes.
"""

from flask import jsonify, request
from typing import Dict, Any, Optional, List
import logging

logger = logging.getLogger(__name__)


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def get_request_metadata() -> Dict[str, Any]:
        """
        Extract request metadata for logging and auditing.

        Returns:
            Dictionary with request metadata
        """
        return {
            'method': request.method,
            'path': request.path,
            'ip_address': request.remote_addr,
            'user_agent': request.headers.get('User-Agent', ''),
            'content_type': request.content_type,
            'request_id': request.headers.get('X-Request-ID'),
        }

    @staticmethod
    def get_json_body() -> Dict[str, Any]:
        """
        Return the JSON body as a dict; an absent or non-JSON body reads as empty.

        Field validation is left to the request model, so a missing body
        surfaces as missing fields rather than a transport error.
        """
        data = request.get_json(silent=True)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise TypeError("JSON body must be an object")
        return data


class ResponseBuilder:
    """Utility for building the ``{success, data, message, errors}`` envelope."""

    @staticmethod
    def success(
        data: Any = None,
        message: str = "Success",
        status_code: int = 200,
        headers: Optional[Dict[str, str]] = None,
        **extra: Any
    ) -> tuple:
        """
        Build success response.

        Args:
            data: Response data
            message: Success message
            status_code: HTTP status code
            headers: Additional headers
            **extra: Additional top-level envelope members (e.g. statistics)

        Returns:
            Tuple of (response_data, status_code, headers)
        """
        response = {
            'success': True,
            'data': data,
            'message': message,
            'errors': []
        }
        response.update(extra)

        return response, status_code, headers or {}

    @staticmethod
    def error(
        message: str,
        status_code: int = 400,
        error_type: str = "error",
        errors: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> tuple:
        """
        Build error response.

        Args:
            message: Error message
            status_code: HTTP status code
            error_type: Machine-readable error code
            errors: Field-level errors
            details: Additional error details
            headers: Additional headers

        Returns:
            Tuple of (response_data, status_code, headers)
        """
        response = {
            'success': False,
            'data': None,
            'message': message,
            'errors': errors or [],
            'code': error_type
        }

        if details:
            response['details'] = details

        return response, status_code, headers or {}


def json_response(envelope: tuple):
    """Turn a ``ResponseBuilder`` tuple into a Flask response tuple."""
    body, status_code, headers = envelope
    return jsonify(body), status_code, headers
