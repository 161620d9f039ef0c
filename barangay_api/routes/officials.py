# SPDX-License-Identifier: Apache-2.0

"""
Officials roster endpoints.
"""

import logging

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace

from ..middleware.auth import current_user, require_auth
from ..middleware.validation import validate_body, validate_query
from ..models.requests import CreateOfficialRequest, OfficialsQuery, RecordPath, UpdateOfficialRequest
from ..utils.request import ResponseBuilder, json_response

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

officials_tag = Tag(name="Officials", description="Barangay officials and singleton positions")
officials_bp = APIBlueprint('officials', __name__, url_prefix='/api', abp_tags=[officials_tag])


@officials_bp.get('/officials')
@require_auth
def list_officials():
    user_context = current_user()
    query = validate_query(OfficialsQuery)

    with tracer.start_as_current_span("officials.list"):
        officials = current_app.official_service.list_officials(user_context, query.active)

    return json_response(ResponseBuilder.success(
        data=[official.model_dump(mode="json") for official in officials],
        message="Officials retrieved",
        total=len(officials)
    ))


@officials_bp.post('/officials')
@require_auth
def create_official():
    """Register an official; a second active holder of a singleton position is refused."""
    user_context = current_user()
    request_data = validate_body(CreateOfficialRequest)

    official = current_app.official_service.create(request_data, user_context)
    return json_response(ResponseBuilder.success(
        data=official.model_dump(mode="json"),
        message="Official created",
        status_code=201
    ))


@officials_bp.put('/officials/<record_id>')
@require_auth
def update_official(path: RecordPath):
    user_context = current_user()
    request_data = validate_body(UpdateOfficialRequest)

    official = current_app.official_service.update(path.record_id, request_data, user_context)
    return json_response(ResponseBuilder.success(
        data=official.model_dump(mode="json"),
        message="Official updated"
    ))


@officials_bp.post('/officials/<record_id>/toggle-active')
@require_auth
def toggle_official_active(path: RecordPath):
    user_context = current_user()

    official = current_app.official_service.toggle_active(path.record_id, user_context)
    state = "activated" if official.active else "deactivated"
    return json_response(ResponseBuilder.success(
        data=official.model_dump(mode="json"),
        message=f"Official {state}"
    ))
