# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Read-only projections used by the approval queue.

Each record kind projects into its own entry model; ``QueueEntry`` is the
discriminated union over them, tagged by ``kind``.
"""

from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class _QueueEntryBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    subtitle: str
    requested_by_name: str
    requested_at: datetime
    payload_ref: str


class CertificatePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    resident_id: str
    resident_name: str
    certificate_type: str
    purpose: str


class BlotterPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    case_number: str
    complainant: str
    respondent: str
    location: Optional[str] = None
    official_assigned_ref: Optional[str] = None


class IncidentPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: Optional[str] = None
    reporting_officer_ref: Optional[str] = None


class CertificateQueueEntry(_QueueEntryBase):
    kind: Literal["certificate"] = "certificate"
    type_label: str
    payload: CertificatePayload


class BlotterQueueEntry(_QueueEntryBase):
    kind: Literal["blotter"] = "blotter"
    type_label: Literal["Blotter Case"] = "Blotter Case"
    payload: BlotterPayload


class IncidentQueueEntry(_QueueEntryBase):
    kind: Literal["incident"] = "incident"
    type_label: Literal["Incident Report"] = "Incident Report"
    payload: IncidentPayload


QueueEntry = Annotated[
    Union[CertificateQueueEntry, BlotterQueueEntry, IncidentQueueEntry],
    Field(discriminator="kind"),
]


class QueueStatistics(BaseModel):
    """Pending counts across all kinds, always unfiltered."""

    total_pending: int = 0
    certificates: int = 0
    blotters: int = 0
    incidents: int = 0

    @property
    def per_kind(self) -> Dict[str, int]:
        return {
            "certificate": self.certificates,
            "blotter": self.blotters,
            "incident": self.incidents,
        }


class QueueListing(BaseModel):
    """Result of listing the approval queue."""

    entries: List[QueueEntry] = Field(default_factory=list)
    statistics: QueueStatistics = Field(default_factory=QueueStatistics)
    degraded_sources: List[str] = Field(default_factory=list)
