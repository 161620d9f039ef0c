# SPDX-License-Identifier: Apache-2.0

"""
Builders for the domain events handed to the notification sink.
"""

from typing import Any, Dict, Optional

from ..models.entities import DomainEvent
from ..models.enums import DomainEventType


def created_event(entity: str, entity_id: str, title: str, actor_id: str,
                  payload: Optional[Dict[str, Any]] = None) -> DomainEvent:
    return DomainEvent(
        event_type=DomainEventType.CREATED,
        entity=entity,
        entity_id=entity_id,
        title=f"New {entity.replace('_', ' ')}",
        message=f"{title} was filed and awaits review",
        actor_id=actor_id,
        payload=payload or {},
    )


def status_changed_event(
    entity: str,
    entity_id: str,
    title: str,
    from_status: str,
    to_status: str,
    actor_id: str,
    remarks: Optional[str] = None
) -> DomainEvent:
    """One event per committed status transition; rejection reasons travel in ``remarks``."""
    message = f"{title} changed from {from_status} to {to_status}"
    if remarks:
        message = f"{message}. Remarks: {remarks}"
    return DomainEvent(
        event_type=DomainEventType.STATUS_CHANGED,
        entity=entity,
        entity_id=entity_id,
        title=f"{entity.replace('_', ' ').capitalize()} {to_status}",
        message=message,
        actor_id=actor_id,
        payload={
            "from_status": from_status,
            "to_status": to_status,
            "remarks": remarks,
        },
    )


def assigned_event(entity: str, entity_id: str, title: str, official_id: str,
                   actor_id: str) -> DomainEvent:
    return DomainEvent(
        event_type=DomainEventType.ASSIGNED,
        entity=entity,
        entity_id=entity_id,
        title="Official assigned",
        message=f"{title} was assigned to official {official_id}",
        actor_id=actor_id,
        payload={"official_id": official_id},
    )


def issued_event(certificate_id: str, certificate_number: str, source_request_id: str,
                 actor_id: str, warnings=None) -> DomainEvent:
    return DomainEvent(
        event_type=DomainEventType.ISSUED,
        entity="certificate",
        entity_id=source_request_id,
        title="Certificate issued",
        message=f"Certificate {certificate_number} has been issued",
        actor_id=actor_id,
        payload={
            "issued_certificate_id": certificate_id,
            "certificate_number": certificate_number,
            "warnings": list(warnings or []),
        },
    )


def invalidated_event(certificate_id: str, certificate_number: str, reason: str,
                      actor_id: str) -> DomainEvent:
    return DomainEvent(
        event_type=DomainEventType.INVALIDATED,
        entity="issued_certificate",
        entity_id=certificate_id,
        title="Certificate invalidated",
        message=f"Certificate {certificate_number} was invalidated: {reason}",
        actor_id=actor_id,
        payload={"certificate_number": certificate_number, "reason": reason},
    )
