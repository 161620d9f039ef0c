# SPDX-License-Identifier: Apache-2.0

"""
Status state machines for records that move through the approval workflow.

A single ``StatusStateMachine`` is parameterized by a transition table per
record kind. Guard predicates that depend on who is acting (role, signature)
live in ``domain.authority``; this module only answers whether a status move
is legal and which metadata it stamps.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple

from ..models.enums import (
    BlotterStatus,
    CertificateStatus,
    IncidentStatus,
    RecordKind,
    WorkflowAction,
)


@dataclass(frozen=True)
class Transition:
    """One legal edge of a state machine."""
    source: str
    target: str
    action: WorkflowAction
    requires_signature: bool = False
    stamp: Optional[str] = None


@dataclass
class TransitionResult:
    """Result of checking a requested status change."""
    allowed: bool
    from_status: str
    to_status: Optional[str]
    transition: Optional[Transition] = None
    reason: Optional[str] = None


@dataclass
class StatusStateMachine:
    """Transition table for one record kind."""
    kind: RecordKind
    transitions: Tuple[Transition, ...]
    pending_status: str
    _by_edge: Dict[Tuple[str, str], Transition] = field(init=False, repr=False)

    def __post_init__(self):
        self._by_edge = {(t.source, t.target): t for t in self.transitions}

    @property
    def states(self) -> FrozenSet[str]:
        states = set()
        for t in self.transitions:
            states.add(t.source)
            states.add(t.target)
        return frozenset(states)

    def allowed_targets(self, current: str) -> List[str]:
        return [t.target for t in self.transitions if t.source == _value(current)]

    def is_terminal(self, status: str) -> bool:
        return not self.allowed_targets(status)

    def target_for(self, action: WorkflowAction) -> Optional[str]:
        """Target status reached by a named action (certificate actions)."""
        targets = {t.target for t in self.transitions if t.action == action}
        if len(targets) == 1:
            return targets.pop()
        return None

    def check(self, current: str, target: Optional[str]) -> TransitionResult:
        """
        Check whether ``current -> target`` is a legal transition.

        Args:
            current: Status the record is in now
            target: Requested status

        Returns:
            TransitionResult carrying the matched transition when allowed
        """
        current = _value(current)
        target = _value(target) if target is not None else None

        if target is None:
            return TransitionResult(
                allowed=False,
                from_status=current,
                to_status=None,
                reason=f"No {self.kind.value} transition is defined for this action"
            )

        transition = self._by_edge.get((current, target))
        if transition is None:
            return TransitionResult(
                allowed=False,
                from_status=current,
                to_status=target,
                reason=f"Cannot change {self.kind.value} status from '{current}' to '{target}'"
            )

        return TransitionResult(
            allowed=True,
            from_status=current,
            to_status=target,
            transition=transition
        )

    def check_action(self, current: str, action: WorkflowAction) -> TransitionResult:
        """Check the transition a named action would perform from ``current``."""
        return self.check(current, self.target_for(action))


def transition_updates(
    transition: Transition,
    actor_id: str,
    at: datetime,
    remarks: Optional[str] = None
) -> Dict[str, object]:
    """
    Build the field updates a transition writes alongside the new status.

    Args:
        transition: Transition being applied
        actor_id: User performing the transition
        at: Transition timestamp
        remarks: Optional authority remarks

    Returns:
        Dictionary of field updates
    """
    updates: Dict[str, object] = {"status": transition.target}
    if transition.stamp:
        updates[f"{transition.stamp}_by"] = actor_id
        updates[f"{transition.stamp}_at"] = at
    if remarks is not None:
        updates["remarks"] = remarks
    return updates


def _value(status) -> str:
    return getattr(status, "value", status)


CERTIFICATE_STATE_MACHINE = StatusStateMachine(
    kind=RecordKind.CERTIFICATE,
    pending_status=CertificateStatus.PENDING.value,
    transitions=(
        Transition(CertificateStatus.PENDING.value, CertificateStatus.APPROVED.value,
                   WorkflowAction.APPROVE, requires_signature=True, stamp="approved"),
        Transition(CertificateStatus.PENDING.value, CertificateStatus.REJECTED.value,
                   WorkflowAction.REJECT, stamp="rejected"),
        Transition(CertificateStatus.APPROVED.value, CertificateStatus.RELEASED.value,
                   WorkflowAction.RELEASE, stamp="released"),
    ),
)

BLOTTER_STATE_MACHINE = StatusStateMachine(
    kind=RecordKind.BLOTTER,
    pending_status=BlotterStatus.OPEN.value,
    transitions=(
        Transition(BlotterStatus.OPEN.value, BlotterStatus.ONGOING.value, WorkflowAction.UPDATE_STATUS),
        Transition(BlotterStatus.OPEN.value, BlotterStatus.RESOLVED.value, WorkflowAction.UPDATE_STATUS),
        Transition(BlotterStatus.ONGOING.value, BlotterStatus.RESOLVED.value, WorkflowAction.UPDATE_STATUS),
    ),
)

INCIDENT_STATE_MACHINE = StatusStateMachine(
    kind=RecordKind.INCIDENT,
    pending_status=IncidentStatus.RECORDED.value,
    transitions=(
        Transition(IncidentStatus.RECORDED.value, IncidentStatus.MONITORING.value, WorkflowAction.UPDATE_STATUS),
        Transition(IncidentStatus.MONITORING.value, IncidentStatus.RESOLVED.value, WorkflowAction.UPDATE_STATUS),
    ),
)

STATE_MACHINES: Dict[RecordKind, StatusStateMachine] = {
    RecordKind.CERTIFICATE: CERTIFICATE_STATE_MACHINE,
    RecordKind.BLOTTER: BLOTTER_STATE_MACHINE,
    RecordKind.INCIDENT: INCIDENT_STATE_MACHINE,
}
