# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the barangay records API.
"""

# Base models
from .base import BaseEntity, generate_object_id, utc_now, ensure_utc

# Enumerations
from .enums import (
    CertificateStatus,
    BlotterStatus,
    IncidentStatus,
    CertificateType,
    RecordKind,
    UserRole,
    WorkflowAction,
    DomainEventType,
    OfficialCategory,
    CertificateValidity,
)

# Core entities
from .entities import (
    CertificateRequest,
    BlotterCase,
    IncidentReport,
    IssuedCertificate,
    Official,
    DomainEvent,
    AuditLog,
    UserContext,
)

# Queue projections
from .queue import (
    QueueEntry,
    CertificateQueueEntry,
    BlotterQueueEntry,
    IncidentQueueEntry,
    QueueStatistics,
    QueueListing,
)

# Request models
from .requests import (
    RecordPath,
    ApproveCertificateRequest,
    RejectCertificateRequest,
    ReleaseCertificateRequest,
    CreateCertificateRequest,
    CreateBlotterRequest,
    UpdateBlotterStatusRequest,
    AssignOfficialRequest,
    CreateIncidentRequest,
    UpdateIncidentStatusRequest,
    InvalidateCertificateRequest,
    VerifyCertificateQuery,
    QueueFilterQuery,
    CreateOfficialRequest,
    UpdateOfficialRequest,
    SignatureRequest,
    OfficialsQuery,
)

# Response models
from .responses import ApiResponse, ErrorResponse, FieldError, QueueResponse

__all__ = [
    # Base
    "BaseEntity",
    "generate_object_id",
    "utc_now",
    "ensure_utc",

    # Enums
    "CertificateStatus",
    "BlotterStatus",
    "IncidentStatus",
    "CertificateType",
    "RecordKind",
    "UserRole",
    "WorkflowAction",
    "DomainEventType",
    "OfficialCategory",
    "CertificateValidity",

    # Entities
    "CertificateRequest",
    "BlotterCase",
    "IncidentReport",
    "IssuedCertificate",
    "Official",
    "DomainEvent",
    "AuditLog",
    "UserContext",

    # Queue
    "QueueEntry",
    "CertificateQueueEntry",
    "BlotterQueueEntry",
    "IncidentQueueEntry",
    "QueueStatistics",
    "QueueListing",

    # Requests
    "RecordPath",
    "ApproveCertificateRequest",
    "RejectCertificateRequest",
    "ReleaseCertificateRequest",
    "CreateCertificateRequest",
    "CreateBlotterRequest",
    "UpdateBlotterStatusRequest",
    "AssignOfficialRequest",
    "CreateIncidentRequest",
    "UpdateIncidentStatusRequest",
    "InvalidateCertificateRequest",
    "VerifyCertificateQuery",
    "QueueFilterQuery",
    "CreateOfficialRequest",
    "UpdateOfficialRequest",
    "SignatureRequest",
    "OfficialsQuery",

    # Responses
    "ApiResponse",
    "ErrorResponse",
    "FieldError",
    "QueueResponse",
]
