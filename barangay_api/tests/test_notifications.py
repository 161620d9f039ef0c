# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the notification sink.
"""

from unittest.mock import Mock

from barangay_api.domain import events
from barangay_api.services.amqp import PublishResult
from barangay_api.services.notifications import NotificationSink


def sample_event():
    return events.status_changed_event(
        "certificate", "request-1", "Barangay Clearance request of Juan", "pending", "rejected",
        "captain-1", "Insufficient documents"
    )


class TestNotificationSink:

    def test_event_is_recorded(self, mongo):
        sink = NotificationSink(mongo)
        assert sink.emit(sample_event())

        stored = sink.events_for("certificate", "request-1")
        assert len(stored) == 1
        assert stored[0]["payload"] == {
            "from_status": "pending", "to_status": "rejected", "remarks": "Insufficient documents"
        }

    def test_event_is_published(self, mongo):
        amqp = Mock()
        amqp.publish.return_value = PublishResult(success=True, correlation_id="x", exchange="barangay.events",
                                                routing_key="certificate.status_changed")
        event = sample_event()

        assert NotificationSink(mongo, amqp).emit(event)

        routing_key, message = amqp.publish.call_args.args
        assert routing_key == "certificate.status_changed"
        assert message["entity_id"] == "request-1"
        assert amqp.publish.call_args.kwargs["correlation_id"] == event.id

    def test_publish_failure_is_reported(self, mongo):
        amqp = Mock()
        amqp.publish.return_value = PublishResult(success=False, correlation_id="x", exchange="barangay.events",
                                                routing_key="certificate.status_changed", error="down")
        sink = NotificationSink(mongo, amqp)

        assert not sink.emit(sample_event())
        assert len(sink.events_for("certificate", "request-1")) == 1

    def test_storage_failure_is_reported(self, mongo):
        mongo.fail_writes_to("domain_events")
        amqp = Mock()
        assert not NotificationSink(mongo, amqp).emit(sample_event())
        amqp.publish.assert_not_called()
