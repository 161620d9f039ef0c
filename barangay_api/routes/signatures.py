# SPDX-License-Identifier: Apache-2.0

"""
Signature endpoints.

The signature image itself is uploaded to file storage by the client; these
endpoints record the resulting asset reference.
"""

import logging

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace

from ..middleware.auth import current_user, require_role
from ..middleware.validation import validate_body
from ..models.enums import UserRole
from ..models.requests import SignatureRequest
from ..utils.request import ResponseBuilder, json_response

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

signatures_tag = Tag(name="Signatures", description="Authority signatures")
signatures_bp = APIBlueprint('signatures', __name__, url_prefix='/api', abp_tags=[signatures_tag])


@signatures_bp.put('/signatures/me')
@require_role(UserRole.CAPTAIN)
def set_own_signature():
    """Record the captain's own signature."""
    user_context = current_user()
    request_data = validate_body(SignatureRequest)

    with tracer.start_as_current_span("signatures.set_own", attributes={"user.id": user_context.user_id}):
        current_app.signature_lookup.record_user_signature(
            user_context.user_id, user_context.name, user_context.role, request_data.signature_ref
        )

    return json_response(ResponseBuilder.success(
        data={"user_id": user_context.user_id, "signature_ref": request_data.signature_ref},
        message="Signature saved"
    ))


@signatures_bp.put('/signatures/barangay')
@require_role(UserRole.ADMIN, UserRole.CAPTAIN)
def set_barangay_signature():
    """Record the barangay-level signature used when the captain has none."""
    user_context = current_user()
    request_data = validate_body(SignatureRequest)

    with tracer.start_as_current_span("signatures.set_barangay", attributes={"user.id": user_context.user_id}):
        current_app.signature_lookup.record_barangay_signature(
            request_data.signature_ref, user_context.user_id
        )

    return json_response(ResponseBuilder.success(
        data={"signature_ref": request_data.signature_ref},
        message="Barangay signature saved"
    ))
