# SPDX-License-Identifier: Apache-2.0

"""
Authority gate for the approval workflow.

Pure predicates deciding whether an acting user may view the queue or act on
a queued record. The signer-identity lookup is an injected collaborator and
is consulted on every call, never cached, so a signature uploaded after the
approval screen was opened is honoured at confirmation time.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from ..models.entities import UserContext
from ..models.enums import UserRole, WorkflowAction

# Error codes carried by failed results
ROLE_INSUFFICIENT = "authorization_error"
MISSING_SIGNATURE = "missing_signature"

QUEUE_ROLES: FrozenSet[UserRole] = frozenset({UserRole.CAPTAIN, UserRole.ADMIN})

ACTION_ROLES: Dict[WorkflowAction, FrozenSet[UserRole]] = {
    WorkflowAction.APPROVE: QUEUE_ROLES,
    WorkflowAction.REJECT: QUEUE_ROLES,
    WorkflowAction.UPDATE_STATUS: QUEUE_ROLES,
    WorkflowAction.ASSIGN: QUEUE_ROLES,
    WorkflowAction.RELEASE: frozenset({UserRole.CAPTAIN, UserRole.ADMIN, UserRole.SECRETARY}),
}

MISSING_SIGNATURE_MESSAGE = (
    "Barangay Captain signature is not set. "
    "Please upload signature first before approving any requests."
)


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    error_code: Optional[str] = None
    signature_ref: Optional[str] = None


def can_view_queue(user_context: UserContext) -> AuthorizationResult:
    """
    Check if the user may view the approval queue.

    Args:
        user_context: Acting user

    Returns:
        AuthorizationResult, denied unless the user is captain or admin
    """
    if UserRole(user_context.role) in QUEUE_ROLES:
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason="Only Barangay Captain or Admin can access approval queue",
        error_code=ROLE_INSUFFICIENT
    )


def check_action_role(user_context: UserContext, action: WorkflowAction) -> AuthorizationResult:
    """Check the role requirement for a workflow action."""
    allowed_roles = ACTION_ROLES.get(action, QUEUE_ROLES)
    if UserRole(user_context.role) in allowed_roles:
        return AuthorizationResult(allowed=True)

    roles = ", ".join(sorted(r.value for r in allowed_roles))
    return AuthorizationResult(
        allowed=False,
        reason=f"Action '{action.value}' requires one of the roles: {roles}",
        error_code=ROLE_INSUFFICIENT
    )


def resolve_authority_id(user_context: UserContext, signature_lookup) -> Optional[str]:
    """
    Identify whose signature an approval will carry.

    A captain signs for themselves; anyone else approves on behalf of the
    current captain, if one is on record.
    """
    if UserRole(user_context.role) == UserRole.CAPTAIN:
        return user_context.user_id
    return signature_lookup.current_authority_id()


def can_approve(
    user_context: UserContext,
    action: WorkflowAction,
    signature_lookup,
    requires_signature: Optional[bool] = None
) -> AuthorizationResult:
    """
    Check whether the user may perform ``action`` right now.

    Args:
        user_context: Acting user
        action: Workflow action being confirmed
        signature_lookup: Collaborator exposing ``current_authority_id()`` and
            ``has_signature(authority_id) -> (bool, asset_ref)``
        requires_signature: Override for the signature precondition; defaults
            to requiring it for approvals only

    Returns:
        AuthorizationResult; ``error_code`` distinguishes a missing signature
        from an insufficient role
    """
    role_check = check_action_role(user_context, action)
    if not role_check.allowed:
        return role_check

    if requires_signature is None:
        requires_signature = action == WorkflowAction.APPROVE

    if not requires_signature:
        return AuthorizationResult(allowed=True)

    authority_id = resolve_authority_id(user_context, signature_lookup)
    has_signature, asset_ref = signature_lookup.has_signature(authority_id)
    if not has_signature:
        return AuthorizationResult(
            allowed=False,
            reason=MISSING_SIGNATURE_MESSAGE,
            error_code=MISSING_SIGNATURE
        )

    return AuthorizationResult(allowed=True, signature_ref=asset_ref)


def can_manage_officials(user_context: UserContext) -> AuthorizationResult:
    """Officials roster changes are limited to admins and the captain."""
    if UserRole(user_context.role) in QUEUE_ROLES:
        return AuthorizationResult(allowed=True)
    return AuthorizationResult(
        allowed=False,
        reason="Only Barangay Captain or Admin can manage officials",
        error_code=ROLE_INSUFFICIENT
    )
