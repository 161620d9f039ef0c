# SPDX-License-Identifier: Apache-2.0

"""
Notification sink for committed domain events.

Events are appended to the ``domain_events`` collection and then published
to the message broker. Delivery to residents and officials happens
downstream of the broker.
"""

import logging
from typing import Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..models.entities import DomainEvent

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EVENTS_COLLECTION = "domain_events"


class NotificationSink:
    """
    Append-only sink shared by every record kind.

    Args:
        mongodb_service: Storage for the event log
        amqp_service: Broker publisher; publishing is skipped when None
    """

    def __init__(self, mongodb_service, amqp_service=None):
        self.mongodb_service = mongodb_service
        self.amqp_service = amqp_service

    def emit(self, event: DomainEvent) -> bool:
        """
        Record and publish an event for a change that has already committed.

        Failures are logged and reported through the return value; the
        committed change they describe is never undone.

        Returns:
            True when the event was recorded and, if a broker is configured,
            published
        """
        with tracer.start_as_current_span("notifications.emit") as span:
            span.set_attributes({
                "event.type": event.event_type,
                "event.entity": event.entity,
                "event.entity_id": event.entity_id
            })

            document = event.model_dump()
            document["_id"] = document.pop("id")

            try:
                self.mongodb_service.create(EVENTS_COLLECTION, document)
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "event log write failed"))
                logger.error(
                    "Failed to record domain event",
                    extra={
                        "event_id": event.id,
                        "event_type": event.event_type,
                        "entity_id": event.entity_id,
                        "error": str(e)
                    },
                    exc_info=True
                )
                return False

            if self.amqp_service is None:
                return True

            result = self.amqp_service.publish(
                event.routing_key,
                event.model_dump(mode="json"),
                correlation_id=event.id
            )
            if not result.success:
                span.set_status(Status(StatusCode.ERROR, "event publish failed"))
                logger.warning(
                    "Domain event recorded but not published",
                    extra={
                        "event_id": event.id,
                        "routing_key": event.routing_key,
                        "error": result.error
                    }
                )
            return result.success

    def events_for(self, entity: str, entity_id: str) -> list:
        """Events recorded for one entity, oldest first."""
        return self.mongodb_service.find(
            EVENTS_COLLECTION,
            {"entity": entity, "entity_id": entity_id},
            sort=[("occurred_at", 1)]
        )
