# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit service for action logging with OpenTelemetry correlation.
"""

import logging
from typing import Dict, List, Optional, Any
from opentelemetry import trace

from ..models.entities import AuditLog, UserContext

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AuditService:
    """Service for audit logging with MongoDB persistence."""

    def __init__(self, mongo_service):
        """Initialize audit service with MongoDB dependency."""
        self.mongo_service = mongo_service
        self.collection_name = "audit_logs"

    def log_action(
        self,
        user_id: str,
        entity: str,
        entity_id: str,
        action: str,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
        user_context: Optional[UserContext] = None,
        session=None
    ) -> str:
        """
        Log an audit trail entry with trace correlation and structured logging.

        Args:
            user_id: ID of user performing the action
            entity: Type of entity being acted upon
            entity_id: ID of the specific entity
            action: Action being performed
            before: State before the action (optional)
            after: State after the action (optional)
            user_context: Full user context with request details (optional)
            session: Transaction session, so the entry commits with the change

        Returns:
            str: ID of the created audit log entry
        """
        with tracer.start_as_current_span("audit.log_action") as span:
            span_context = span.get_span_context()

            audit_entry = AuditLog(
                user_id=user_id,
                entity=entity,
                entity_id=entity_id,
                action=action,
                before=before,
                after=after,
                trace_id=format(span_context.trace_id, "032x") if span_context.is_valid else None
            )
            if user_context:
                audit_entry.ip_address = user_context.ip_address
                audit_entry.user_agent = user_context.user_agent
                audit_entry.session_id = user_context.session_id

            span.set_attributes({
                "audit.entity": entity,
                "audit.action": action,
                "audit.user_id": user_id,
                "audit.entity_id": entity_id
            })

            document = audit_entry.model_dump()
            document["_id"] = document.pop("id")
            try:
                audit_id = self.mongo_service.create(self.collection_name, document, session=session)
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to create audit trail entry",
                    extra={
                        "entity": entity,
                        "entity_id": entity_id,
                        "action": action,
                        "user_id": user_id,
                        "error": str(e)
                    },
                    exc_info=True
                )
                raise

            changes = self._calculate_changes(before, after) if before and after else []
            logger.info(
                "Audit trail entry created",
                extra={
                    "audit_id": audit_id,
                    "entity": entity,
                    "entity_id": entity_id,
                    "action": action,
                    "user_id": user_id,
                    "trace_id": audit_entry.trace_id,
                    "changes_count": len(changes),
                    "audit_category": "business_action"
                }
            )

            return audit_id

    def entries_for(self, entity: str, entity_id: str) -> List[Dict[str, Any]]:
        """Audit entries for one entity, oldest first."""
        return self.mongo_service.find(
            self.collection_name,
            {"entity": entity, "entity_id": entity_id},
            sort=[("timestamp", 1)]
        )

    def _calculate_changes(self, before: Dict[str, Any], after: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Calculate field-level changes for detailed audit trail.

        Args:
            before: State before the change
            after: State after the change

        Returns:
            List[Dict]: List of field changes
        """
        changes = []

        for key in set(before.keys()) | set(after.keys()):
            if key in ("updated_at", "updated_by", "_id", "id"):
                continue

            old_value = before.get(key)
            new_value = after.get(key)
            if old_value != new_value:
                changes.append({
                    "field": key,
                    "old_value": old_value,
                    "new_value": new_value
                })

        return changes
