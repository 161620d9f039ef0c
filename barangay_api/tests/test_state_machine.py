# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the per-kind status state machines.
"""

from datetime import datetime, timezone

import pytest

from barangay_api.domain.state_machine import (
    BLOTTER_STATE_MACHINE,
    CERTIFICATE_STATE_MACHINE,
    INCIDENT_STATE_MACHINE,
    STATE_MACHINES,
    transition_updates,
)
from barangay_api.models.enums import (
    BlotterStatus,
    CertificateStatus,
    IncidentStatus,
    RecordKind,
    WorkflowAction,
)


class TestCertificateStateMachine:

    @pytest.mark.parametrize("current,target", [
        ("pending", "approved"),
        ("pending", "rejected"),
        ("approved", "released"),
    ])
    def test_legal_transitions(self, current, target):
        result = CERTIFICATE_STATE_MACHINE.check(current, target)
        assert result.allowed
        assert result.from_status == current
        assert result.to_status == target

    @pytest.mark.parametrize("current,target", [
        ("rejected", "approved"),
        ("released", "pending"),
        ("approved", "rejected"),
        ("pending", "released"),
        ("approved", "approved"),
    ])
    def test_illegal_transitions(self, current, target):
        result = CERTIFICATE_STATE_MACHINE.check(current, target)
        assert not result.allowed
        assert result.transition is None
        assert current in result.reason and target in result.reason

    def test_only_approval_requires_signature(self):
        approve = CERTIFICATE_STATE_MACHINE.check("pending", "approved").transition
        reject = CERTIFICATE_STATE_MACHINE.check("pending", "rejected").transition
        release = CERTIFICATE_STATE_MACHINE.check("approved", "released").transition
        assert approve.requires_signature
        assert not reject.requires_signature
        assert not release.requires_signature

    def test_terminal_states(self):
        assert CERTIFICATE_STATE_MACHINE.is_terminal("rejected")
        assert CERTIFICATE_STATE_MACHINE.is_terminal("released")
        assert not CERTIFICATE_STATE_MACHINE.is_terminal("pending")

    def test_action_targets(self):
        assert CERTIFICATE_STATE_MACHINE.target_for(WorkflowAction.APPROVE) == "approved"
        assert CERTIFICATE_STATE_MACHINE.target_for(WorkflowAction.RELEASE) == "released"

        result = CERTIFICATE_STATE_MACHINE.check_action("rejected", WorkflowAction.RELEASE)
        assert not result.allowed
        assert result.to_status == "released"

    def test_accepts_enum_members(self):
        result = CERTIFICATE_STATE_MACHINE.check(CertificateStatus.PENDING, CertificateStatus.APPROVED)
        assert result.allowed
        assert result.from_status == "pending"


class TestBlotterStateMachine:

    def test_open_can_move_forward(self):
        assert BLOTTER_STATE_MACHINE.allowed_targets("Open") == ["Ongoing", "Resolved"]
        assert BLOTTER_STATE_MACHINE.check("Ongoing", "Resolved").allowed

    def test_resolved_is_terminal(self):
        assert BLOTTER_STATE_MACHINE.is_terminal(BlotterStatus.RESOLVED)
        result = BLOTTER_STATE_MACHINE.check("Resolved", "Open")
        assert not result.allowed
        assert "Resolved" in result.reason

    def test_no_target_for_update_action(self):
        # Blotter updates name their target explicitly
        assert BLOTTER_STATE_MACHINE.target_for(WorkflowAction.UPDATE_STATUS) is None
        result = BLOTTER_STATE_MACHINE.check("Open", None)
        assert not result.allowed


class TestIncidentStateMachine:

    def test_recorded_must_pass_through_monitoring(self):
        assert INCIDENT_STATE_MACHINE.check("Recorded", "Monitoring").allowed
        assert INCIDENT_STATE_MACHINE.check("Monitoring", "Resolved").allowed
        assert not INCIDENT_STATE_MACHINE.check("Recorded", "Resolved").allowed

    def test_pending_status(self):
        assert INCIDENT_STATE_MACHINE.pending_status == IncidentStatus.RECORDED.value


def test_every_kind_has_a_machine():
    assert set(STATE_MACHINES) == set(RecordKind)
    for kind, machine in STATE_MACHINES.items():
        assert machine.kind == kind
        assert machine.pending_status in machine.states


class TestTransitionUpdates:

    def test_stamps_actor_and_time(self):
        at = datetime(2026, 3, 1, 8, 30, tzinfo=timezone.utc)
        transition = CERTIFICATE_STATE_MACHINE.check("pending", "approved").transition

        updates = transition_updates(transition, "captain-1", at, "Looks good")

        assert updates == {
            "status": "approved",
            "approved_by": "captain-1",
            "approved_at": at,
            "remarks": "Looks good",
        }

    def test_unstamped_transition_sets_status_only(self):
        transition = BLOTTER_STATE_MACHINE.check("Open", "Ongoing").transition
        updates = transition_updates(transition, "captain-1", datetime.now(timezone.utc))
        assert updates == {"status": "Ongoing"}
