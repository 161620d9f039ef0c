# SPDX-License-Identifier: Apache-2.0

"""
Incident report endpoints.
"""

import logging

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace

from ..middleware.auth import current_user, require_auth
from ..middleware.validation import validate_body
from ..models.enums import RecordKind
from ..models.requests import CreateIncidentRequest, RecordPath, UpdateIncidentStatusRequest
from ..utils.request import ResponseBuilder, json_response

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

incidents_tag = Tag(name="Incidents", description="Incident reports")
incidents_bp = APIBlueprint('incidents', __name__, url_prefix='/api', abp_tags=[incidents_tag])


@incidents_bp.post('/incidents')
@require_auth
def create_incident_report():
    user_context = current_user()
    request_data = validate_body(CreateIncidentRequest)

    with tracer.start_as_current_span("incidents.create", attributes={"user.id": user_context.user_id}):
        record = current_app.record_service.create_incident_report(request_data, user_context)

    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message="Incident report recorded",
        status_code=201
    ))


@incidents_bp.get('/incidents/<record_id>')
@require_auth
def get_incident_report(path: RecordPath):
    with tracer.start_as_current_span("incidents.get", attributes={"record.id": path.record_id}):
        record = current_app.record_service.get(RecordKind.INCIDENT, path.record_id)
    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message="Incident report retrieved"
    ))


@incidents_bp.post('/incidents/<record_id>')
@require_auth
def update_incident_status(path: RecordPath):
    """Move an incident report forward: Recorded, Monitoring, Resolved."""
    user_context = current_user()
    request_data = validate_body(UpdateIncidentStatusRequest)

    with tracer.start_as_current_span(
        "incidents.update_status",
        attributes={"record.id": path.record_id, "incident.status": request_data.status.value}
    ):
        record = current_app.workflow_service.update_incident_status(
            path.record_id, user_context, request_data.status, request_data.remarks
        )

    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message=f"Incident report status updated to {record.status}"
    ))
