# SPDX-License-Identifier: Apache-2.0

"""
Certificate request endpoints: intake, approval, rejection and release.
"""

import logging

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace

from ..middleware.auth import current_user, require_auth
from ..middleware.validation import validate_body
from ..models.enums import RecordKind, WorkflowAction
from ..models.requests import (
    ApproveCertificateRequest,
    CreateCertificateRequest,
    RecordPath,
    RejectCertificateRequest,
    ReleaseCertificateRequest,
)
from ..models.responses import ApiResponse, ErrorResponse
from ..utils.request import ResponseBuilder, json_response

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

certificates_tag = Tag(name="Certificates", description="Certificate request workflow")
certificates_bp = APIBlueprint('certificates', __name__, url_prefix='/api', abp_tags=[certificates_tag])


@certificates_bp.post('/certificates')
@require_auth
def create_certificate_request():
    """File a certificate request on behalf of a resident."""
    user_context = current_user()
    request_data = validate_body(CreateCertificateRequest)

    with tracer.start_as_current_span(
        "certificates.create",
        attributes={"user.id": user_context.user_id,
                    "certificate.type": request_data.certificate_type.value}
    ):
        record = current_app.record_service.create_certificate_request(request_data, user_context)

    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message="Certificate request submitted",
        status_code=201
    ))


@certificates_bp.get('/certificates/statistics')
@require_auth
def certificate_statistics():
    """Certificate request counts by status and by type."""
    with tracer.start_as_current_span("certificates.statistics"):
        statistics = current_app.record_service.certificate_statistics()
    return json_response(ResponseBuilder.success(data=statistics, message="Statistics retrieved"))


@certificates_bp.get('/certificates/<record_id>')
@require_auth
def get_certificate_request(path: RecordPath):
    with tracer.start_as_current_span("certificates.get", attributes={"record.id": path.record_id}):
        record = current_app.record_service.get(RecordKind.CERTIFICATE, path.record_id)
    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message="Certificate request retrieved"
    ))


@certificates_bp.post(
    '/certificates/<record_id>/approve',
    responses={200: ApiResponse, 400: ErrorResponse, 403: ErrorResponse}
)
@require_auth
def approve_certificate_request(path: RecordPath):
    """
    Approve a pending certificate request.

    Fails with 403 ``missing_signature`` while no captain signature is on
    file, and with 400 ``invalid_transition`` unless the request is pending.
    """
    user_context = current_user()
    request_data = validate_body(ApproveCertificateRequest)

    with tracer.start_as_current_span(
        "certificates.approve",
        attributes={"record.id": path.record_id, "user.id": user_context.user_id}
    ):
        record = current_app.workflow_service.approve_certificate(
            path.record_id, user_context, request_data.remarks
        )

    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message="Certificate request approved successfully"
    ))


@certificates_bp.post('/certificates/<record_id>/reject')
@require_auth
def reject_certificate_request(path: RecordPath):
    """Reject a pending certificate request; remarks are required."""
    user_context = current_user()
    current_app.workflow_service.ensure_action_role(user_context, WorkflowAction.REJECT)
    request_data = validate_body(RejectCertificateRequest)

    with tracer.start_as_current_span(
        "certificates.reject",
        attributes={"record.id": path.record_id, "user.id": user_context.user_id}
    ):
        record = current_app.workflow_service.reject_certificate(
            path.record_id, user_context, request_data.remarks
        )

    return json_response(ResponseBuilder.success(
        data=record.model_dump(mode="json"),
        message="Certificate request rejected"
    ))


@certificates_bp.post('/certificates/<record_id>/release')
@require_auth
def release_certificate(path: RecordPath):
    """
    Release an approved certificate and issue it.

    Responds 201 when a certificate was issued and 200 when one already
    existed for the request. Rendering problems are reported in ``warnings``
    without failing the release.
    """
    user_context = current_user()
    request_data = validate_body(ReleaseCertificateRequest)

    with tracer.start_as_current_span(
        "certificates.release",
        attributes={"record.id": path.record_id, "user.id": user_context.user_id}
    ) as span:
        result = current_app.issuance_service.issue(path.record_id, user_context, request_data.remarks)
        span.set_attributes({
            "issuance.created": result.created,
            "issuance.warnings": len(result.warnings)
        })

    message = "Certificate released and issued" if result.created else "Certificate was already issued"
    return json_response(ResponseBuilder.success(
        data={
            "request": result.request.model_dump(mode="json"),
            "issued_certificate": result.certificate.model_dump(mode="json"),
        },
        message=message,
        status_code=201 if result.created else 200,
        warnings=result.warnings
    ))
