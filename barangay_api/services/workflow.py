# SPDX-License-Identifier: Apache-2.0

"""
Status transition executor shared by every record kind.

A transition is checked in a fixed order before anything is written: the
acting user's role, the record's current status against the kind's state
machine, then the signature precondition where the transition requires it.
The status write is a compare-and-set on the status that was checked and
commits together with its audit entry; the domain event is emitted only
after the commit.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain import events
from ..domain.authority import MISSING_SIGNATURE, can_approve, check_action_role
from ..domain.state_machine import transition_updates
from ..middleware.error_handler import (
    AuthorizationException,
    InvalidTransitionException,
    MissingSignatureException,
    NotFoundException,
    ValidationException,
)
from ..models.base import utc_now
from ..models.entities import BlotterCase, UserContext
from ..models.enums import BlotterStatus, RecordKind, WorkflowAction

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

OFFICIALS_COLLECTION = "officials"


class WorkflowService:
    """
    Applies state machine transitions to queued records.

    Args:
        mongodb_service: Storage with transactions
        sources: Record source per kind
        signature_lookup: Signer identity collaborator for the authority gate
        audit_service: Audit trail writer
        notification_sink: Receives events after commit
        redis_service: Pending-count cache to invalidate (optional)
    """

    def __init__(self, mongodb_service, sources, signature_lookup, audit_service,
                 notification_sink, redis_service=None):
        self.mongodb_service = mongodb_service
        self.sources = sources
        self.signature_lookup = signature_lookup
        self.audit_service = audit_service
        self.notification_sink = notification_sink
        self.redis_service = redis_service

    # Certificate requests

    def approve_certificate(self, record_id: str, user_context: UserContext,
                            remarks: Optional[str] = None):
        return self.transition(RecordKind.CERTIFICATE, record_id, user_context,
                               WorkflowAction.APPROVE, remarks=remarks)

    def ensure_action_role(self, user_context: UserContext, action: WorkflowAction) -> None:
        """Raise AuthorizationException unless the user's role may perform ``action``."""
        role_check = check_action_role(user_context, action)
        if not role_check.allowed:
            raise AuthorizationException(role_check.reason, error_type=role_check.error_code)

    def reject_certificate(self, record_id: str, user_context: UserContext, remarks: str):
        self.ensure_action_role(user_context, WorkflowAction.REJECT)
        if not remarks or not remarks.strip():
            raise ValidationException(
                "Remarks are required when rejecting a request",
                [{"field": "remarks", "message": "Remarks are required when rejecting a request",
                  "type": "value_error"}]
            )
        return self.transition(RecordKind.CERTIFICATE, record_id, user_context,
                               WorkflowAction.REJECT, remarks=remarks.strip())

    # Blotter cases and incident reports

    def update_blotter_status(self, record_id: str, user_context: UserContext, status: str,
                              remarks: Optional[str] = None):
        return self.transition(RecordKind.BLOTTER, record_id, user_context,
                               WorkflowAction.UPDATE_STATUS, target=status, remarks=remarks)

    def update_incident_status(self, record_id: str, user_context: UserContext, status: str,
                               remarks: Optional[str] = None):
        return self.transition(RecordKind.INCIDENT, record_id, user_context,
                               WorkflowAction.UPDATE_STATUS, target=status, remarks=remarks)

    def transition(self, kind: RecordKind, record_id: str, user_context: UserContext,
                   action: WorkflowAction, target: Optional[str] = None,
                   remarks: Optional[str] = None):
        """
        Apply one state machine transition.

        Args:
            kind: Record kind
            record_id: Record to transition
            user_context: Acting user
            action: Workflow action being confirmed
            target: Requested status; derived from ``action`` when omitted
            remarks: Authority remarks stored on the record and sent with the event

        Returns:
            The record as stored after the transition

        Raises:
            AuthorizationException: Role not permitted for ``action``
            NotFoundException: No such record
            InvalidTransitionException: Transition not in the kind's table, or
                the record changed status concurrently
            MissingSignatureException: Approval without a signature on file
        """
        source = self.sources[kind]
        machine = source.machine

        with tracer.start_as_current_span(f"workflow.{kind.value}.{action.value}") as span:
            span.set_attributes({
                "record.kind": kind.value,
                "record.id": record_id,
                "user.id": user_context.user_id,
                "workflow.action": action.value
            })

            role_check = check_action_role(user_context, action)
            if not role_check.allowed:
                span.set_status(Status(StatusCode.ERROR, "role not permitted"))
                raise AuthorizationException(role_check.reason, error_type=role_check.error_code)

            record = source.get(record_id)
            target = target if target is not None else machine.target_for(action)

            with tracer.start_as_current_span("domain.state_machine.check") as check_span:
                result = machine.check(record.status, target)
                check_span.set_attributes({
                    "transition.from": result.from_status,
                    "transition.to": result.to_status or "",
                    "transition.allowed": result.allowed
                })

            if not result.allowed or result.transition.action != action:
                span.set_status(Status(StatusCode.ERROR, "invalid transition"))
                raise InvalidTransitionException(
                    result.reason or f"Action '{action.value}' cannot move "
                                     f"{kind.value} to '{result.to_status}'",
                    kind=kind.value,
                    from_status=result.from_status,
                    to_status=result.to_status
                )

            # Re-evaluated on every call; never cached from an earlier read
            with tracer.start_as_current_span("domain.authority.can_approve"):
                gate = can_approve(
                    user_context,
                    action,
                    self.signature_lookup,
                    requires_signature=result.transition.requires_signature
                )
            if not gate.allowed:
                span.set_status(Status(StatusCode.ERROR, gate.error_code))
                logger.warning(
                    "Transition blocked by authority gate",
                    extra={
                        "kind": kind.value,
                        "record_id": record_id,
                        "user_id": user_context.user_id,
                        "error_code": gate.error_code
                    }
                )
                if gate.error_code == MISSING_SIGNATURE:
                    raise MissingSignatureException(gate.reason)
                raise AuthorizationException(gate.reason, error_type=gate.error_code)

            updates = transition_updates(result.transition, user_context.user_id, utc_now(), remarks)

            def write(session):
                if not source.compare_and_set(record_id, result.from_status, updates,
                                              user_context.user_id, session=session):
                    raise self._stale_transition(kind, record_id, result.from_status, result.to_status)
                self.audit_service.log_action(
                    user_id=user_context.user_id,
                    entity=kind.value,
                    entity_id=record_id,
                    action=action.value,
                    before={"status": result.from_status},
                    after={"status": result.to_status, "remarks": remarks},
                    user_context=user_context,
                    session=session
                )

            self.mongodb_service.run_in_transaction(write)

        logger.info(
            "Record status changed",
            extra={
                "kind": kind.value,
                "record_id": record_id,
                "from_status": result.from_status,
                "to_status": result.to_status,
                "user_id": user_context.user_id
            }
        )

        if self.redis_service is not None:
            self.redis_service.invalidate_pending_counts()
        self.notification_sink.emit(events.status_changed_event(
            kind.value,
            record_id,
            source.title_for(record),
            result.from_status,
            result.to_status,
            user_context.user_id,
            remarks
        ))

        return source.get(record_id)

    def _stale_transition(self, kind: RecordKind, record_id: str, from_status: str,
                          to_status: str) -> InvalidTransitionException:
        logger.warning(
            "Record changed status concurrently",
            extra={"kind": kind.value, "record_id": record_id, "from_status": from_status}
        )
        return InvalidTransitionException(
            f"{kind.value.capitalize()} {record_id} is no longer '{from_status}'",
            kind=kind.value,
            from_status=from_status,
            to_status=to_status
        )

    def assign_blotter_official(self, record_id: str, official_id: str,
                                user_context: UserContext) -> BlotterCase:
        """
        Assign an active official to a blotter case that is not yet resolved.

        Raises:
            AuthorizationException: Role not permitted to assign
            NotFoundException: No such case or official
            ValidationException: Official is inactive
            InvalidTransitionException: Case is already resolved
        """
        source = self.sources[RecordKind.BLOTTER]

        with tracer.start_as_current_span("workflow.blotter.assign") as span:
            span.set_attributes({"record.id": record_id, "official.id": official_id})

            role_check = check_action_role(user_context, WorkflowAction.ASSIGN)
            if not role_check.allowed:
                raise AuthorizationException(role_check.reason, error_type=role_check.error_code)

            case = source.get(record_id)
            if case.status == BlotterStatus.RESOLVED.value:
                raise InvalidTransitionException(
                    "Cannot assign an official to a resolved blotter case",
                    kind=RecordKind.BLOTTER.value,
                    from_status=case.status
                )

            official = self.mongodb_service.find_one(OFFICIALS_COLLECTION, official_id)
            if official is None:
                raise NotFoundException(f"Official {official_id} not found")
            if not official.get("active", False):
                raise ValidationException(
                    "Official is not active",
                    [{"field": "official_id", "message": "Official is not active", "type": "value_error"}]
                )

            def write(session):
                if not source.compare_and_set(record_id, case.status,
                                              {"official_assigned_ref": official_id},
                                              user_context.user_id, session=session):
                    raise self._stale_transition(RecordKind.BLOTTER, record_id, case.status, case.status)
                self.audit_service.log_action(
                    user_id=user_context.user_id,
                    entity=RecordKind.BLOTTER.value,
                    entity_id=record_id,
                    action=WorkflowAction.ASSIGN.value,
                    before={"official_assigned_ref": case.official_assigned_ref},
                    after={"official_assigned_ref": official_id},
                    user_context=user_context,
                    session=session
                )

            self.mongodb_service.run_in_transaction(write)

        self.notification_sink.emit(events.assigned_event(
            RecordKind.BLOTTER.value, record_id, source.title_for(case), official_id,
            user_context.user_id
        ))
        return source.get(record_id)
