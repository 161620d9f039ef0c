# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the barangay records API.
"""

from enum import Enum


class CertificateStatus(str, Enum):
    """Certificate request workflow status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RELEASED = "released"


class BlotterStatus(str, Enum):
    """Blotter case status."""
    OPEN = "Open"
    ONGOING = "Ongoing"
    RESOLVED = "Resolved"


class IncidentStatus(str, Enum):
    """Incident report status."""
    RECORDED = "Recorded"
    MONITORING = "Monitoring"
    RESOLVED = "Resolved"


class CertificateType(str, Enum):
    """Certificate types a resident may request."""
    BARANGAY_CLEARANCE = "barangay_clearance"
    INDIGENCY = "indigency"
    RESIDENCY = "residency"
    BUSINESS_PERMIT_ENDORSEMENT = "business_permit_endorsement"

    @property
    def label(self) -> str:
        return CERTIFICATE_TYPE_LABELS[self.value]


CERTIFICATE_TYPE_LABELS = {
    "barangay_clearance": "Barangay Clearance",
    "indigency": "Indigency Certificate",
    "residency": "Residency Certificate",
    "business_permit_endorsement": "Business Permit Endorsement",
}


class RecordKind(str, Enum):
    """Kinds of records that flow through the approval queue."""
    CERTIFICATE = "certificate"
    BLOTTER = "blotter"
    INCIDENT = "incident"


class UserRole(str, Enum):
    """Roles carried in the access token."""
    CAPTAIN = "captain"
    ADMIN = "admin"
    SECRETARY = "secretary"
    STAFF = "staff"


class WorkflowAction(str, Enum):
    """Actions an authority can take on a queued record."""
    APPROVE = "approve"
    REJECT = "reject"
    RELEASE = "release"
    UPDATE_STATUS = "update_status"
    ASSIGN = "assign"


class DomainEventType(str, Enum):
    """Domain events delivered to the notification sink."""
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    ASSIGNED = "assigned"
    ISSUED = "issued"
    INVALIDATED = "invalidated"


class OfficialCategory(str, Enum):
    """Categories of barangay officials."""
    OFFICIAL = "official"
    SK = "sk"
    TANOD = "tanod"
    BHW = "bhw"
    STAFF = "staff"


class CertificateValidity(str, Enum):
    """Validity state reported by the verification endpoint."""
    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"
