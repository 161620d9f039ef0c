# SPDX-License-Identifier: Apache-2.0

"""
Singleton role rules: at most one active holder per role key.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

DEFAULT_SINGLETON_ROLES = ("barangay_captain", "sk_chairperson")

_POSITION_ROLE_KEYS = (
    (re.compile(r"^(barangay\s+captain|punong\s+barangay|captain)$", re.IGNORECASE), "barangay_captain"),
    (re.compile(r"^(sk\s+chair(person|man)?|sangguniang\s+kabataan\s+chair(person|man)?)$", re.IGNORECASE), "sk_chairperson"),
)


@dataclass
class GuardResult:
    """Result of a singleton availability check."""
    allowed: bool
    role_key: Optional[str] = None
    conflicting_ids: List[str] = field(default_factory=list)
    reason: Optional[str] = None


def derive_role_key(position: str) -> Optional[str]:
    """
    Map an official's position title to a singleton role key.

    Returns:
        Role key, or None for positions that can be held by many officials
    """
    normalized = " ".join(position.split())
    for pattern, role_key in _POSITION_ROLE_KEYS:
        if pattern.match(normalized):
            return role_key
    return None


def check_singleton_available(
    role_key: Optional[str],
    candidate_id: str,
    active_holder_ids: Iterable[str],
    singleton_roles: Iterable[str] = DEFAULT_SINGLETON_ROLES
) -> GuardResult:
    """
    Check that activating ``candidate_id`` keeps the role key single-held.

    Args:
        role_key: Role key the candidate would hold
        candidate_id: Holder being created or activated
        active_holder_ids: IDs of currently active holders of ``role_key``
        singleton_roles: Role keys limited to one active holder

    Returns:
        GuardResult listing the holders that block activation
    """
    if not role_key or role_key not in set(singleton_roles):
        return GuardResult(allowed=True, role_key=role_key)

    conflicting = [holder for holder in active_holder_ids if holder != candidate_id]
    if conflicting:
        label = role_key.replace("_", " ").title()
        return GuardResult(
            allowed=False,
            role_key=role_key,
            conflicting_ids=conflicting,
            reason=f"There is already an active {label}. Deactivate them first."
        )

    return GuardResult(allowed=True, role_key=role_key)
