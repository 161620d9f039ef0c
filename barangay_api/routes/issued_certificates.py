# SPDX-License-Identifier: Apache-2.0

"""
Issued certificate endpoints: lookup, invalidation and public verification.
"""

import logging

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace

from ..middleware.auth import current_user, require_auth
from ..middleware.validation import validate_body, validate_query
from ..models.requests import InvalidateCertificateRequest, RecordPath, VerifyCertificateQuery
from ..utils.request import ResponseBuilder, json_response

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

issued_tag = Tag(name="Issued Certificates", description="Issued certificates and verification")
issued_certificates_bp = APIBlueprint('issued_certificates', __name__, url_prefix='/api', abp_tags=[issued_tag])


@issued_certificates_bp.get('/issued-certificates/verify')
def verify_certificate():
    """
    Verify a certificate from its QR code or number.

    Public endpoint; the response carries no resident details.
    """
    query = validate_query(VerifyCertificateQuery)

    with tracer.start_as_current_span(
        "issued_certificates.verify",
        attributes={"verify.by_code": bool(query.code)}
    ):
        result = current_app.issuance_service.verify(query.code, query.certificate_number)

    result["valid_from"] = result["valid_from"].isoformat()
    result["valid_until"] = result["valid_until"].isoformat()
    result["issued_at"] = result["issued_at"].isoformat()
    return json_response(ResponseBuilder.success(
        data=result,
        message=f"Certificate is {result['status']}"
    ))


@issued_certificates_bp.get('/issued-certificates/<record_id>')
@require_auth
def get_issued_certificate(path: RecordPath):
    with tracer.start_as_current_span("issued_certificates.get", attributes={"certificate.id": path.record_id}):
        certificate = current_app.issuance_service.get(path.record_id)
    return json_response(ResponseBuilder.success(
        data=certificate.model_dump(mode="json"),
        message="Issued certificate retrieved"
    ))


@issued_certificates_bp.post('/issued-certificates/<record_id>/invalidate')
@require_auth
def invalidate_certificate(path: RecordPath):
    """Revoke an issued certificate. Its number is never reused."""
    user_context = current_user()
    request_data = validate_body(InvalidateCertificateRequest)

    with tracer.start_as_current_span(
        "issued_certificates.invalidate",
        attributes={"certificate.id": path.record_id, "user.id": user_context.user_id}
    ):
        certificate = current_app.issuance_service.invalidate(
            path.record_id, user_context, request_data.reason
        )

    return json_response(ResponseBuilder.success(
        data=certificate.model_dump(mode="json"),
        message=f"Certificate {certificate.certificate_number} invalidated"
    ))
