# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for status transitions through the workflow service.
"""

import pytest
from pymongo.errors import PyMongoError

from barangay_api.middleware.error_handler import (
    AuthorizationException,
    InvalidTransitionException,
    MissingSignatureException,
    NotFoundException,
    ValidationException,
)
from barangay_api.models.enums import RecordKind, WorkflowAction
from barangay_api.tests.fakes import (
    seed_blotter_case,
    seed_captain,
    seed_certificate_request,
    seed_incident_report,
    seed_official,
)


@pytest.fixture
def workflow(app):
    return app.workflow_service


@pytest.fixture
def signed_captain(mongo):
    return seed_captain(mongo, signature_path="signatures/captain-1.png")


class TestApproveCertificate:

    def test_approve_with_signature(self, app, mongo, workflow, captain, signed_captain):
        request = seed_certificate_request(mongo)

        record = workflow.approve_certificate(request.id, captain, "Complete requirements")

        assert record.status == "approved"
        assert record.approved_by == "captain-1"
        assert record.approved_at is not None
        assert record.remarks == "Complete requirements"

        audit = app.audit_service.entries_for("certificate", request.id)
        assert [entry["action"] for entry in audit] == ["approve"]
        assert audit[0]["before"] == {"status": "pending"}
        assert audit[0]["after"]["status"] == "approved"

        events = app.notification_sink.events_for("certificate", request.id)
        assert len(events) == 1
        assert events[0]["event_type"] == "status_changed"
        assert events[0]["payload"]["to_status"] == "approved"

    def test_missing_signature_changes_nothing(self, app, mongo, workflow, captain):
        seed_captain(mongo)
        request = seed_certificate_request(mongo)

        with pytest.raises(MissingSignatureException) as exc_info:
            workflow.approve_certificate(request.id, captain)

        assert exc_info.value.error_type == "missing_signature"
        assert exc_info.value.status_code == 403
        assert workflow.sources[RecordKind.CERTIFICATE].get(request.id).status == "pending"
        assert app.audit_service.entries_for("certificate", request.id) == []
        assert app.notification_sink.events_for("certificate", request.id) == []

    def test_signature_uploaded_later_is_honoured(self, app, mongo, workflow, captain):
        seed_captain(mongo)
        request = seed_certificate_request(mongo)

        with pytest.raises(MissingSignatureException):
            workflow.approve_certificate(request.id, captain)

        app.signature_lookup.record_user_signature(
            captain.user_id, captain.name, captain.role, "signatures/new.png"
        )
        assert workflow.approve_certificate(request.id, captain).status == "approved"

    def test_admin_uses_barangay_signature(self, app, mongo, workflow, admin):
        app.signature_lookup.record_barangay_signature("signatures/barangay.png", admin.user_id)
        request = seed_certificate_request(mongo)

        assert workflow.approve_certificate(request.id, admin).status == "approved"

    def test_role_is_checked_before_the_record_is_loaded(self, workflow, staff):
        with pytest.raises(AuthorizationException) as exc_info:
            workflow.approve_certificate("does-not-exist", staff)
        assert exc_info.value.error_type == "authorization_error"

    def test_unknown_record(self, workflow, captain, signed_captain):
        with pytest.raises(NotFoundException):
            workflow.approve_certificate("does-not-exist", captain)

    def test_state_is_checked_before_signature(self, mongo, workflow, captain):
        seed_captain(mongo)
        request = seed_certificate_request(mongo, status="rejected", remarks="Incomplete")

        with pytest.raises(InvalidTransitionException) as exc_info:
            workflow.approve_certificate(request.id, captain)

        assert exc_info.value.details == {
            "kind": "certificate", "from_status": "rejected", "to_status": "approved"
        }

    def test_concurrent_change_is_detected(self, mongo, workflow, captain, signed_captain, monkeypatch):
        request = seed_certificate_request(mongo)
        source = workflow.sources[RecordKind.CERTIFICATE]
        stale = source.get(request.id)
        mongo.update("certificate_requests", request.id, {"status": "rejected"}, "admin-1")
        monkeypatch.setattr(source, "get", lambda record_id, session=None: stale)

        with pytest.raises(InvalidTransitionException):
            workflow.approve_certificate(request.id, captain)

        assert mongo.find_one("certificate_requests", request.id)["status"] == "rejected"
        assert mongo.raw("audit_logs") == []

    def test_audit_failure_rolls_back_status(self, app, mongo, workflow, captain, signed_captain):
        request = seed_certificate_request(mongo)
        mongo.fail_writes_to("audit_logs")

        with pytest.raises(PyMongoError):
            workflow.approve_certificate(request.id, captain)

        assert mongo.find_one("certificate_requests", request.id)["status"] == "pending"
        assert mongo.rollback_count == 1
        assert app.notification_sink.events_for("certificate", request.id) == []

    def test_event_failure_keeps_transition(self, mongo, workflow, captain, signed_captain):
        request = seed_certificate_request(mongo)
        mongo.fail_writes_to("domain_events")

        assert workflow.approve_certificate(request.id, captain).status == "approved"

    def test_pending_count_cache_invalidated(self, mongo, redis_service, workflow, captain, signed_captain):
        request = seed_certificate_request(mongo)
        redis_service.cache_pending_counts({"total_pending": 1, "certificates": 1,
                                            "blotters": 0, "incidents": 0})

        workflow.approve_certificate(request.id, captain)

        assert redis_service.get_cached_pending_counts() is None


class TestRejectCertificate:

    @pytest.mark.parametrize("remarks", ["", "   ", None])
    def test_remarks_required(self, mongo, workflow, captain, remarks):
        request = seed_certificate_request(mongo)

        with pytest.raises(ValidationException) as exc_info:
            workflow.reject_certificate(request.id, captain, remarks)

        assert exc_info.value.errors[0]["field"] == "remarks"
        assert mongo.find_one("certificate_requests", request.id)["status"] == "pending"

    def test_role_is_checked_before_remarks(self, mongo, workflow, staff):
        request = seed_certificate_request(mongo)

        with pytest.raises(AuthorizationException):
            workflow.reject_certificate(request.id, staff, "")

    def test_reject_without_signature(self, app, mongo, workflow, captain):
        request = seed_certificate_request(mongo)

        record = workflow.reject_certificate(request.id, captain, "  Insufficient documents ")

        assert record.status == "rejected"
        assert record.rejected_by == "captain-1"
        assert record.remarks == "Insufficient documents"
        event = app.notification_sink.events_for("certificate", request.id)[0]
        assert event["payload"]["remarks"] == "Insufficient documents"
        assert "Insufficient documents" in event["message"]

    def test_cannot_reject_approved_request(self, mongo, workflow, captain):
        request = seed_certificate_request(mongo, status="approved")
        with pytest.raises(InvalidTransitionException):
            workflow.reject_certificate(request.id, captain, "Changed my mind")


class TestBlotterAndIncidentStatus:

    def test_blotter_resolved_cannot_reopen(self, mongo, workflow, captain):
        case = seed_blotter_case(mongo)

        assert workflow.update_blotter_status(case.id, captain, "Resolved").status == "Resolved"
        with pytest.raises(InvalidTransitionException):
            workflow.update_blotter_status(case.id, captain, "Open")

    def test_blotter_update_needs_authority(self, mongo, workflow, secretary):
        case = seed_blotter_case(mongo)
        with pytest.raises(AuthorizationException):
            workflow.update_blotter_status(case.id, secretary, "Ongoing")

    def test_blotter_update_does_not_need_signature(self, mongo, workflow, admin):
        case = seed_blotter_case(mongo)
        assert workflow.update_blotter_status(case.id, admin, "Ongoing", "Hearing set").remarks == "Hearing set"

    def test_incident_goes_through_monitoring(self, app, mongo, workflow, captain):
        report = seed_incident_report(mongo)

        with pytest.raises(InvalidTransitionException):
            workflow.update_incident_status(report.id, captain, "Resolved")

        workflow.update_incident_status(report.id, captain, "Monitoring")
        assert workflow.update_incident_status(report.id, captain, "Resolved").status == "Resolved"
        events = app.notification_sink.events_for("incident", report.id)
        assert [event["payload"]["to_status"] for event in events] == ["Monitoring", "Resolved"]

    def test_action_must_match_transition(self, mongo, workflow, captain, signed_captain):
        request = seed_certificate_request(mongo)
        with pytest.raises(InvalidTransitionException):
            workflow.transition(RecordKind.CERTIFICATE, request.id, captain,
                                WorkflowAction.REJECT, target="approved")


class TestAssignOfficial:

    def test_assign_active_official(self, app, mongo, workflow, captain):
        case = seed_blotter_case(mongo)
        official = seed_official(mongo)

        record = workflow.assign_blotter_official(case.id, official.id, captain)

        assert record.official_assigned_ref == official.id
        assert record.status == "Open"
        events = app.notification_sink.events_for("blotter", case.id)
        assert events[-1]["event_type"] == "assigned"

    def test_inactive_official(self, mongo, workflow, captain):
        case = seed_blotter_case(mongo)
        official = seed_official(mongo, active=False)
        with pytest.raises(ValidationException):
            workflow.assign_blotter_official(case.id, official.id, captain)

    def test_unknown_official(self, mongo, workflow, captain):
        case = seed_blotter_case(mongo)
        with pytest.raises(NotFoundException):
            workflow.assign_blotter_official(case.id, "missing", captain)

    def test_resolved_case(self, mongo, workflow, captain):
        case = seed_blotter_case(mongo, status="Resolved")
        official = seed_official(mongo)
        with pytest.raises(InvalidTransitionException):
            workflow.assign_blotter_official(case.id, official.id, captain)
