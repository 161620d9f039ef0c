# SPDX-License-Identifier: Apache-2.0

"""
Approval queue endpoints.

A single queue of pending certificate requests, blotter cases and incident
reports for the barangay captain or admin.
"""

import logging

from flask import current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace

from ..middleware.auth import current_user, require_auth
from ..middleware.validation import validate_query
from ..models.requests import QueueFilterQuery
from ..models.responses import ErrorResponse, QueueResponse
from ..utils.request import ResponseBuilder, json_response

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

approvals_tag = Tag(name="Approvals", description="Unified approval queue")
approvals_bp = APIBlueprint('approvals', __name__, url_prefix='/api', abp_tags=[approvals_tag])


@approvals_bp.get('/approvals', responses={200: QueueResponse, 403: ErrorResponse})
@require_auth
def list_approvals():
    """
    List pending records of every kind, oldest first.

    ``statistics`` always counts the whole queue, whatever ``type`` filter
    is applied to ``data``.
    """
    user_context = current_user()
    query = validate_query(QueueFilterQuery)

    with tracer.start_as_current_span(
        "approvals.list",
        attributes={"user.id": user_context.user_id, "queue.filter": query.type}
    ):
        listing = current_app.approval_queue_service.list_queue(user_context, query.type)

    message = "Approval queue retrieved"
    if listing.degraded_sources:
        message = f"Approval queue is partial; unavailable: {', '.join(listing.degraded_sources)}"

    return json_response(ResponseBuilder.success(
        data=[entry.model_dump(mode="json") for entry in listing.entries],
        message=message,
        statistics=listing.statistics.model_dump(),
        degraded_sources=listing.degraded_sources
    ))


@approvals_bp.get('/approvals/count')
@require_auth
def count_approvals():
    """Pending counts for the approvals badge."""
    user_context = current_user()

    with tracer.start_as_current_span("approvals.count", attributes={"user.id": user_context.user_id}):
        statistics = current_app.approval_queue_service.pending_counts(user_context)

    return json_response(ResponseBuilder.success(
        data=statistics.model_dump(),
        message="Pending counts retrieved"
    ))
