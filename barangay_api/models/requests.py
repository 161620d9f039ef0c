# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator, model_validator
from .enums import (
    CertificateType,
    BlotterStatus,
    IncidentStatus,
    OfficialCategory,
)


class RecordPath(BaseModel):
    """Path parameters for a single record."""

    record_id: str = Field(..., description="Record identifier")


class ApproveCertificateRequest(BaseModel):
    """Request model for approving a certificate request."""

    remarks: Optional[str] = Field(None, max_length=500, description="Approval remarks")


class RejectCertificateRequest(BaseModel):
    """Request model for rejecting a certificate request."""

    remarks: str = Field(..., max_length=500, description="Reason for rejection")

    @field_validator('remarks')
    @classmethod
    def validate_remarks(cls, v):
        """Rejection remarks are mandatory."""
        if not v or not v.strip():
            raise ValueError('Remarks are required when rejecting a request')
        return v.strip()


class ReleaseCertificateRequest(BaseModel):
    """Request model for releasing an approved certificate."""

    remarks: Optional[str] = Field(None, max_length=500, description="Release remarks")


class CreateCertificateRequest(BaseModel):
    """Request model for filing a certificate request."""

    resident_id: str = Field(..., min_length=1, description="Resident reference")
    resident_name: str = Field(..., min_length=1, max_length=200, description="Resident full name")
    certificate_type: CertificateType = Field(..., description="Certificate type")
    purpose: str = Field(..., min_length=1, max_length=500, description="Purpose of the request")


class CreateBlotterRequest(BaseModel):
    """Request model for recording a blotter case."""

    complainant_ref: Optional[str] = Field(None, description="Complainant resident ID")
    complainant_free_text: Optional[str] = Field(None, max_length=200, description="Non-resident complainant")
    respondent_ref: Optional[str] = Field(None, description="Respondent resident ID")
    respondent_free_text: Optional[str] = Field(None, max_length=200, description="Non-resident respondent")
    incident_type: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    narrative: Optional[str] = Field(None, max_length=5000)

    @model_validator(mode='after')
    def validate_parties(self):
        """Each party is either a resident or a free-text name, never both."""
        for party in ("complainant", "respondent"):
            ref = getattr(self, f"{party}_ref")
            free_text = getattr(self, f"{party}_free_text")
            if bool(ref) == bool(free_text and free_text.strip()):
                raise ValueError(
                    f'Provide exactly one of {party}_ref or {party}_free_text'
                )
        return self


class UpdateBlotterStatusRequest(BaseModel):
    """Request model for a blotter status update."""

    status: BlotterStatus = Field(..., description="Target status")
    remarks: Optional[str] = Field(None, max_length=500)


class AssignOfficialRequest(BaseModel):
    """Request model for assigning an official to a blotter case."""

    official_id: str = Field(..., min_length=1, description="Official ID")


class CreateIncidentRequest(BaseModel):
    """Request model for logging an incident report."""

    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    location: Optional[str] = Field(None, max_length=255)
    reporting_officer_ref: Optional[str] = Field(None)


class UpdateIncidentStatusRequest(BaseModel):
    """Request model for an incident status update."""

    status: IncidentStatus = Field(..., description="Target status")
    remarks: Optional[str] = Field(None, max_length=500)


class InvalidateCertificateRequest(BaseModel):
    """Request model for invalidating an issued certificate."""

    reason: str = Field(..., min_length=1, max_length=500, description="Invalidation reason")


class VerifyCertificateQuery(BaseModel):
    """Query parameters for certificate verification."""

    code: Optional[str] = Field(None, description="QR payload")
    certificate_number: Optional[str] = Field(None, description="Certificate number")

    @model_validator(mode='after')
    def validate_lookup(self):
        if not self.code and not self.certificate_number:
            raise ValueError('Provide either code or certificate_number')
        return self


class QueueFilterQuery(BaseModel):
    """Query parameters for the approval queue."""

    type: Literal["all", "certificate", "blotter", "incident"] = Field(
        default="all", description="Record kind filter"
    )


class CreateOfficialRequest(BaseModel):
    """Request model for registering an official."""

    name: str = Field(..., min_length=1, max_length=200)
    position: str = Field(..., min_length=1, max_length=100)
    category: OfficialCategory = Field(default=OfficialCategory.OFFICIAL)
    user_id: Optional[str] = Field(None)
    active: bool = Field(default=True)


class UpdateOfficialRequest(BaseModel):
    """Request model for updating an official."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    position: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[OfficialCategory] = Field(None)
    user_id: Optional[str] = Field(None)
    active: Optional[bool] = Field(None)


class SignatureRequest(BaseModel):
    """Request model for recording an uploaded signature asset."""

    signature_ref: str = Field(..., min_length=1, max_length=500, description="Stored signature asset path")


class OfficialsQuery(BaseModel):
    """Query parameters for listing officials."""

    active: Optional[bool] = Field(None, description="Only active or only inactive officials")
