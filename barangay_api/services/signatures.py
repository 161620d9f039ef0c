# SPDX-License-Identifier: Apache-2.0

"""
Signer identity lookup.

Signature images are stored elsewhere; this service only knows the asset
references recorded for the captain's user account and for the barangay
itself, and answers whether an approval can carry a signature right now.
"""

import logging
from typing import Dict, Optional, Tuple

from opentelemetry import trace

from ..models.enums import UserRole

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

USERS_COLLECTION = "users"
BARANGAY_INFO_COLLECTION = "barangay_info"
BARANGAY_INFO_ID = "barangay"


class SignatureLookup:
    """Reads signature asset references straight from storage on every call."""

    def __init__(self, mongodb_service):
        self.mongodb_service = mongodb_service

    def current_authority_id(self) -> Optional[str]:
        """User ID of the captain account approvals are signed for."""
        captain = self.captain_user()
        return captain["id"] if captain else None

    def captain_user(self) -> Optional[Dict]:
        captains = self.mongodb_service.find(
            USERS_COLLECTION,
            {"role": UserRole.CAPTAIN.value},
            sort=[("created_at", 1)]
        )
        return captains[0] if captains else None

    def barangay_info(self) -> Optional[Dict]:
        return self.mongodb_service.find_one(BARANGAY_INFO_COLLECTION, BARANGAY_INFO_ID)

    def has_signature(self, authority_id: Optional[str]) -> Tuple[bool, Optional[str]]:
        """
        Report whether a signature is on file for ``authority_id``.

        Falls back to the barangay-level captain signature when the authority
        has none.

        Returns:
            Tuple of (has_signature, signature asset reference)
        """
        with tracer.start_as_current_span("signatures.has_signature") as span:
            if authority_id:
                user = self.mongodb_service.find_one(USERS_COLLECTION, authority_id)
                if user and user.get("signature_path"):
                    span.set_attribute("signature.source", "authority")
                    return True, user["signature_path"]

            info = self.barangay_info()
            if info and info.get("captain_signature_path"):
                span.set_attribute("signature.source", "barangay")
                return True, info["captain_signature_path"]

            span.set_attribute("signature.source", "none")
            return False, None

    def record_user_signature(self, user_id: str, name: str, role: UserRole, signature_ref: str) -> None:
        """Record the asset reference of a user's uploaded signature."""
        self.mongodb_service.upsert(
            USERS_COLLECTION,
            user_id,
            {"name": name, "role": UserRole(role).value, "signature_path": signature_ref},
            user_id
        )
        logger.info("Signature recorded", extra={"user_id": user_id, "signature_ref": signature_ref})

    def record_barangay_signature(self, signature_ref: str, updated_by: str,
                                  captain_name: Optional[str] = None) -> None:
        """Record the barangay-level fallback signature."""
        updates = {"captain_signature_path": signature_ref}
        if captain_name:
            updates["captain_name"] = captain_name
        self.mongodb_service.upsert(BARANGAY_INFO_COLLECTION, BARANGAY_INFO_ID, updates, updated_by)
        logger.info("Barangay signature recorded", extra={"user_id": updated_by, "signature_ref": signature_ref})
