# SPDX-License-Identifier: Apache-2.0

"""
Approval queue aggregation.

Projects pending records of every kind into ``QueueEntry`` values, merges
them oldest first and tallies statistics before any kind filter is applied.
"""

import logging
from typing import Callable, Dict, Iterable, List, Sequence

from pydantic import ValidationError

from ..models.base import ensure_utc
from ..models.entities import BlotterCase, CertificateRequest, IncidentReport
from ..models.enums import RecordKind
from ..models.queue import (
    BlotterPayload,
    BlotterQueueEntry,
    CertificatePayload,
    CertificateQueueEntry,
    IncidentPayload,
    IncidentQueueEntry,
    QueueListing,
    QueueStatistics,
)

logger = logging.getLogger(__name__)

QUEUE_FILTERS = ("all",) + tuple(kind.value for kind in RecordKind)

COLLECTIONS: Dict[RecordKind, str] = {
    RecordKind.CERTIFICATE: "certificate_requests",
    RecordKind.BLOTTER: "blotter_cases",
    RecordKind.INCIDENT: "incident_reports",
}


def project_certificate(document: dict) -> CertificateQueueEntry:
    """Project a pending certificate request document into a queue entry."""
    record = CertificateRequest.from_document(document)
    return CertificateQueueEntry(
        id=record.id,
        title=f"{record.type_label} - {record.resident_name}",
        subtitle=f"Purpose: {record.purpose}",
        requested_by_name=record.requested_by_name,
        requested_at=ensure_utc(record.requested_at),
        payload_ref=f"{COLLECTIONS[RecordKind.CERTIFICATE]}/{record.id}",
        type_label=record.type_label,
        payload=CertificatePayload(
            resident_id=record.resident_id,
            resident_name=record.resident_name,
            certificate_type=record.certificate_type,
            purpose=record.purpose,
        ),
    )


def project_blotter(document: dict) -> BlotterQueueEntry:
    """Project an open blotter case document into a queue entry."""
    record = BlotterCase.from_document(document)
    complainant = record.party_name("complainant")
    respondent = record.party_name("respondent")
    return BlotterQueueEntry(
        id=record.id,
        title=f"{record.case_number} - {complainant} vs {respondent}",
        subtitle=f"Location: {record.location or 'N/A'}",
        requested_by_name=record.reported_by_name,
        requested_at=ensure_utc(record.created_at),
        payload_ref=f"{COLLECTIONS[RecordKind.BLOTTER]}/{record.id}",
        payload=BlotterPayload(
            case_number=record.case_number,
            complainant=complainant,
            respondent=respondent,
            location=record.location,
            official_assigned_ref=record.official_assigned_ref,
        ),
    )


def project_incident(document: dict) -> IncidentQueueEntry:
    """Project a recorded incident report document into a queue entry."""
    record = IncidentReport.from_document(document)
    return IncidentQueueEntry(
        id=record.id,
        title=record.title or "Untitled Incident",
        subtitle=f"Location: {record.location or 'N/A'}",
        requested_by_name=record.reported_by_name,
        requested_at=ensure_utc(record.created_at),
        payload_ref=f"{COLLECTIONS[RecordKind.INCIDENT]}/{record.id}",
        payload=IncidentPayload(
            location=record.location,
            reporting_officer_ref=record.reporting_officer_ref,
        ),
    )


PROJECTORS: Dict[RecordKind, Callable[[dict], object]] = {
    RecordKind.CERTIFICATE: project_certificate,
    RecordKind.BLOTTER: project_blotter,
    RecordKind.INCIDENT: project_incident,
}


def project_records(kind: RecordKind, documents: Iterable[dict]) -> List:
    """
    Project documents of one kind, skipping any record that cannot be projected.

    Args:
        kind: Record kind of every document
        documents: Raw pending documents from the record source

    Returns:
        List of queue entries in source order
    """
    projector = PROJECTORS[kind]
    entries = []
    for document in documents:
        try:
            entries.append(projector(document))
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                "Skipping unprojectable queue record",
                extra={
                    "kind": kind.value,
                    "record_id": str(document.get("_id", document.get("id"))),
                    "error": str(e)
                }
            )
    return entries


def aggregate_queue(
    pending: Dict[RecordKind, Sequence[dict]],
    kind_filter: str = "all",
    degraded_sources: Sequence[str] = ()
) -> QueueListing:
    """
    Merge pending records of all kinds into one ordered queue.

    Args:
        pending: Pending documents per record kind
        kind_filter: "all" or a record kind value
        degraded_sources: Kinds whose source could not be read

    Returns:
        QueueListing whose statistics ignore ``kind_filter``
    """
    if kind_filter not in QUEUE_FILTERS:
        raise ValueError(f"Unknown queue filter: {kind_filter}")

    projected: Dict[RecordKind, List] = {
        kind: project_records(kind, pending.get(kind, ())) for kind in RecordKind
    }

    statistics = QueueStatistics(
        certificates=len(projected[RecordKind.CERTIFICATE]),
        blotters=len(projected[RecordKind.BLOTTER]),
        incidents=len(projected[RecordKind.INCIDENT]),
    )
    statistics.total_pending = (
        statistics.certificates + statistics.blotters + statistics.incidents
    )

    merged = []
    for kind in RecordKind:
        merged.extend(projected[kind])
    # sorted() is stable, so ties keep source insertion order
    merged = sorted(merged, key=lambda entry: entry.requested_at)

    if kind_filter != "all":
        merged = [entry for entry in merged if entry.kind == kind_filter]

    return QueueListing(
        entries=merged,
        statistics=statistics,
        degraded_sources=list(degraded_sources),
    )
