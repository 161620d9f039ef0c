# SPDX-License-Identifier: Apache-2.0

"""
Blotter case endpoints.
"""

import logging

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace

from ..middleware.auth import current_user, require_auth
from ..middleware.validation import validate_body
from ..models.enums import RecordKind
from ..models.requests import (
    AssignOfficialRequest,
    CreateBlotterRequest,
    RecordPath,
    UpdateBlotterStatusRequest,
)
from ..utils.request import ResponseBuilder, json_response

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

blotters_tag = Tag(name="Blotters", description="Blotter case log")
blotters_bp = APIBlueprint('blotters', __name__, url_prefix='/api', abp_tags=[blotters_tag])


@blotters_bp.post('/blotters')
@require_auth
def create_blotter_case():
    """Record a blotter case; the case number is generated."""
    user_context = current_user()
    request_data = validate_body(CreateBlotterRequest)

    with tracer.start_as_current_span("blotters.create", attributes={"user.id": user_context.user_id}):
        record = current_app.record_service.create_blotter_case(request_data, user_context)

    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message=f"Blotter case {record.case_number} recorded",
        status_code=201
    ))


@blotters_bp.get('/blotters/<record_id>')
@require_auth
def get_blotter_case(path: RecordPath):
    with tracer.start_as_current_span("blotters.get", attributes={"record.id": path.record_id}):
        record = current_app.record_service.get(RecordKind.BLOTTER, path.record_id)
    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message="Blotter case retrieved"
    ))


@blotters_bp.post('/blotters/<record_id>')
@require_auth
def update_blotter_status(path: RecordPath):
    """Move a blotter case forward: Open, Ongoing, Resolved."""
    user_context = current_user()
    request_data = validate_body(UpdateBlotterStatusRequest)

    with tracer.start_as_current_span(
        "blotters.update_status",
        attributes={"record.id": path.record_id, "blotter.status": request_data.status.value}
    ):
        record = current_app.workflow_service.update_blotter_status(
            path.record_id, user_context, request_data.status, request_data.remarks
        )

    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message=f"Blotter case status updated to {record.status}"
    ))


@blotters_bp.post('/blotters/<record_id>/assign')
@require_auth
def assign_blotter_official(path: RecordPath):
    user_context = current_user()
    request_data = validate_body(AssignOfficialRequest)

    with tracer.start_as_current_span(
        "blotters.assign",
        attributes={"record.id": path.record_id, "official.id": request_data.official_id}
    ):
        record = current_app.workflow_service.assign_blotter_official(
            path.record_id, request_data.official_id, user_context
        )

    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message="Official assigned to blotter case"
    ))
