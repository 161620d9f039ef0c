# SPDX-License-Identifier: Apache-2.0

"""
Certificate issuance rules: numbering, validity window, QR payload and signer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional, Tuple

import jwt

from ..models.base import ensure_utc

DEFAULT_NUMBER_FORMAT = "{year}-{prefix}-{seq:04d}"
DEFAULT_VALIDITY_DAYS = 30
QR_ALGORITHM = "HS256"


@dataclass
class NumberingScheme:
    """How certificate numbers are rendered from a per-type, per-year sequence."""
    number_format: str = DEFAULT_NUMBER_FORMAT
    prefixes: Dict[str, str] = field(default_factory=dict)

    def prefix_for(self, certificate_type: str) -> str:
        if certificate_type in self.prefixes:
            return self.prefixes[certificate_type]
        return certificate_type[:3].upper()

    def counter_key(self, certificate_type: str, year: int) -> str:
        """Sequences are scoped by type and calendar year."""
        return f"certificate:{certificate_type}:{year}"

    def format(self, certificate_type: str, year: int, sequence: int) -> str:
        if sequence < 1:
            raise ValueError("Certificate sequence starts at 1")
        return self.number_format.format(
            year=year,
            prefix=self.prefix_for(certificate_type),
            type=certificate_type,
            seq=sequence,
        )


@dataclass
class ValidityPolicy:
    """Validity duration per certificate type, in days."""
    days_by_type: Dict[str, int] = field(default_factory=dict)
    default_days: int = DEFAULT_VALIDITY_DAYS

    def duration_for(self, certificate_type: str) -> timedelta:
        days = self.days_by_type.get(certificate_type, self.default_days)
        if days <= 0:
            raise ValueError(f"Validity for {certificate_type} must be positive, got {days}")
        return timedelta(days=days)

    def window(self, certificate_type: str, issued_at: datetime) -> Tuple[datetime, datetime]:
        """Return ``(valid_from, valid_until)`` starting at issuance time."""
        valid_from = ensure_utc(issued_at)
        return valid_from, valid_from + self.duration_for(certificate_type)


def encode_qr_payload(
    certificate_number: str,
    resident_id: str,
    issued_at: datetime,
    secret: str
) -> str:
    """
    Encode the verification payload printed as a QR code.

    The payload is a compact signed token carrying only references, never
    resident names or other free text.
    """
    claims = {
        "cn": certificate_number,
        "rid": resident_id,
        "iat": int(ensure_utc(issued_at).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=QR_ALGORITHM)


def decode_qr_payload(code: str, secret: str) -> Dict[str, object]:
    """
    Verify and decode a QR payload.

    Raises:
        jwt.InvalidTokenError: If the signature or structure is invalid
    """
    claims = jwt.decode(
        code,
        secret,
        algorithms=[QR_ALGORITHM],
        options={"require": ["cn", "rid", "iat"], "verify_iat": False},
    )
    return {
        "certificate_number": claims["cn"],
        "resident_id": claims["rid"],
        "issued_at": claims["iat"],
    }


def resolve_signer_name(
    barangay_info: Optional[dict],
    captain_user: Optional[dict],
    default_name: str
) -> str:
    """Signer printed on the certificate: configured captain name, captain user, or default."""
    if barangay_info and barangay_info.get("captain_name"):
        return barangay_info["captain_name"]
    if captain_user and captain_user.get("name"):
        return captain_user["name"]
    return default_name
