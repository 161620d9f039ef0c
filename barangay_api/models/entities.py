# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the barangay records API.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity, generate_object_id, utc_now, ensure_utc
from .enums import (
    CertificateStatus,
    CertificateType,
    BlotterStatus,
    IncidentStatus,
    UserRole,
    DomainEventType,
    OfficialCategory,
    CertificateValidity,
)


class CertificateRequest(BaseEntity):
    """A resident's request for an official barangay document."""

    resident_id: str = Field(..., min_length=1, description="Resident reference")
    resident_name: str = Field(..., min_length=1, max_length=200, description="Resident name at request time")
    certificate_type: CertificateType = Field(..., description="Requested certificate type")
    purpose: str = Field(..., min_length=1, max_length=500, description="Stated purpose")
    status: CertificateStatus = Field(default=CertificateStatus.PENDING, description="Workflow status")
    requested_at: datetime = Field(default_factory=utc_now, description="Request timestamp")
    requested_by: str = Field(..., description="User ID of the requester")
    requested_by_name: str = Field(..., description="Requester display name")
    approved_by: Optional[str] = Field(None, description="User ID who approved")
    approved_at: Optional[datetime] = Field(None, description="Approval timestamp")
    rejected_by: Optional[str] = Field(None, description="User ID who rejected")
    rejected_at: Optional[datetime] = Field(None, description="Rejection timestamp")
    released_by: Optional[str] = Field(None, description="User ID who released")
    released_at: Optional[datetime] = Field(None, description="Release timestamp")
    remarks: Optional[str] = Field(None, max_length=500, description="Latest authority remarks")

    @field_validator('purpose', 'resident_name')
    @classmethod
    def validate_text(cls, v):
        """Reject blank text."""
        if not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()

    @property
    def type_label(self) -> str:
        return CertificateType(self.certificate_type).label

    def is_pending(self) -> bool:
        return self.status == CertificateStatus.PENDING


class BlotterCase(BaseEntity):
    """Official complaint case log entry."""

    case_number: str = Field(..., description="Unique generated case number")
    complainant_ref: Optional[str] = Field(None, description="Complainant resident reference")
    complainant_free_text: Optional[str] = Field(None, max_length=200, description="Non-resident complainant name")
    respondent_ref: Optional[str] = Field(None, description="Respondent resident reference")
    respondent_free_text: Optional[str] = Field(None, max_length=200, description="Non-resident respondent name")
    incident_type: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    narrative: Optional[str] = Field(None, max_length=5000)
    status: BlotterStatus = Field(default=BlotterStatus.OPEN, description="Case status")
    official_assigned_ref: Optional[str] = Field(None, description="Assigned official ID")
    reported_by: str = Field(..., description="User ID who recorded the case")
    reported_by_name: str = Field(..., description="Recorder display name")
    remarks: Optional[str] = Field(None, max_length=500, description="Latest authority remarks")

    @model_validator(mode='after')
    def validate_parties(self):
        """Exactly one of resident reference or free text per party."""
        for party in ("complainant", "respondent"):
            ref = getattr(self, f"{party}_ref")
            free_text = getattr(self, f"{party}_free_text")
            if bool(ref) == bool(free_text and free_text.strip()):
                raise ValueError(
                    f'Exactly one of {party}_ref or {party}_free_text must be set'
                )
        return self

    def party_name(self, party: str) -> str:
        free_text = getattr(self, f"{party}_free_text")
        if free_text:
            return free_text
        return f"Resident {getattr(self, f'{party}_ref')}"


class IncidentReport(BaseEntity):
    """Incident report logged by barangay personnel."""

    title: Optional[str] = Field(None, max_length=255, description="Incident title")
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=255)
    status: IncidentStatus = Field(default=IncidentStatus.RECORDED, description="Incident status")
    reporting_officer_ref: Optional[str] = Field(None, description="Reporting official ID")
    reported_by: str = Field(..., description="User ID who logged the report")
    reported_by_name: str = Field(..., description="Reporter display name")
    remarks: Optional[str] = Field(None, max_length=500, description="Latest authority remarks")


class IssuedCertificate(BaseEntity):
    """Immutable issuance record produced when a certificate is released."""

    source_request_id: str = Field(..., description="Certificate request this was issued for")
    resident_id: str = Field(..., description="Resident reference")
    certificate_type: CertificateType = Field(..., description="Certificate type")
    certificate_number: str = Field(..., min_length=1, description="Globally unique certificate number")
    qr_payload: str = Field(..., description="Signed verification payload")
    valid_from: datetime = Field(..., description="Start of validity")
    valid_until: datetime = Field(..., description="End of validity")
    is_valid: bool = Field(default=True, description="False once invalidated")
    issued_at: datetime = Field(..., description="Issuance timestamp")
    issued_by: str = Field(..., description="User ID who released the certificate")
    signer_name: str = Field(..., description="Name printed as signer")
    signer_position: str = Field(default="Punong Barangay", description="Signer position")
    pdf_asset_ref: Optional[str] = Field(None, description="Rendered document asset reference")
    invalidated_at: Optional[datetime] = Field(None)
    invalidated_by: Optional[str] = Field(None)
    invalidation_reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode='after')
    def validate_window(self):
        """Validity window must be non-empty."""
        if ensure_utc(self.valid_until) <= ensure_utc(self.valid_from):
            raise ValueError('valid_until must be after valid_from')
        return self

    def validity_status(self, now: Optional[datetime] = None) -> CertificateValidity:
        """Current validity of the certificate."""
        if not self.is_valid:
            return CertificateValidity.INVALID
        now = now or utc_now()
        if ensure_utc(self.valid_until) < now:
            return CertificateValidity.EXPIRED
        return CertificateValidity.VALID

    def days_until_expiry(self, now: Optional[datetime] = None) -> int:
        now = now or utc_now()
        return (ensure_utc(self.valid_until) - now).days


class Official(BaseEntity):
    """Barangay official; singleton positions carry a role key."""

    name: str = Field(..., min_length=1, max_length=200, description="Official full name")
    position: str = Field(..., min_length=1, max_length=100, description="Position title")
    category: OfficialCategory = Field(default=OfficialCategory.OFFICIAL)
    role_key: Optional[str] = Field(None, description="Singleton role key derived from position")
    user_id: Optional[str] = Field(None, description="Linked user account")
    active: bool = Field(default=True, description="Whether the official currently holds the position")

    @field_validator('name', 'position')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Value cannot be empty')
        return v.strip()


class DomainEvent(BaseModel):
    """Event delivered to the notification sink after a committed change."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=generate_object_id)
    event_type: DomainEventType = Field(..., description="Event type")
    entity: str = Field(..., description="Entity type (certificate, blotter, incident, ...)")
    entity_id: str = Field(..., description="Entity ID")
    title: str = Field(..., description="Short human-readable title")
    message: str = Field(..., description="Human-readable description")
    actor_id: Optional[str] = Field(None, description="User ID who caused the event")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Event details")
    occurred_at: datetime = Field(default_factory=utc_now)

    @property
    def routing_key(self) -> str:
        return f"{self.entity}.{self.event_type}"


class AuditLog(BaseModel):
    """Audit log entry for tracking record changes."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=generate_object_id)
    timestamp: datetime = Field(default_factory=utc_now)
    user_id: str = Field(..., description="User who performed the action")
    entity: str = Field(..., description="Entity type that was modified")
    entity_id: str = Field(..., description="ID of the modified entity")
    action: str = Field(..., description="Action performed")
    before: Optional[Dict[str, Any]] = Field(None, description="Entity state before change")
    after: Optional[Dict[str, Any]] = Field(None, description="Entity state after change")
    ip_address: Optional[str] = Field(None)
    user_agent: Optional[str] = Field(None)
    session_id: Optional[str] = Field(None)
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")


class UserContext(BaseModel):
    """User context for request processing."""

    user_id: str = Field(..., description="User ID")
    name: str = Field(..., description="User display name")
    role: UserRole = Field(..., description="User role")
    email: Optional[str] = Field(None, description="User email")
    token_payload: Dict[str, Any] = Field(default_factory=dict, description="Decoded token payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")
    session_id: Optional[str] = Field(None, description="Token identifier")

    def has_role(self, *roles) -> bool:
        """Check whether the user holds any of the given roles."""
        wanted = {UserRole(r) for r in roles}
        return UserRole(self.role) in wanted
