# SPDX-License-Identifier: Apache-2.0

"""
Record sources and record intake.

Each source owns one record collection: it lists pending records for the
approval queue, loads single records and applies compare-and-set status
writes. ``RecordService`` files new certificate requests, blotter cases and
incident reports.
"""

import logging
import os
from typing import Dict, List, Optional, Type

from opentelemetry import trace

from ..domain import events
from ..domain.queue import COLLECTIONS
from ..domain.state_machine import (
    BLOTTER_STATE_MACHINE,
    CERTIFICATE_STATE_MACHINE,
    INCIDENT_STATE_MACHINE,
    StatusStateMachine,
)
from ..middleware.error_handler import NotFoundException
from ..models.base import BaseEntity, utc_now
from ..models.entities import BlotterCase, CertificateRequest, IncidentReport, UserContext
from ..models.enums import CertificateStatus, CertificateType, RecordKind
from ..models.requests import CreateBlotterRequest, CreateCertificateRequest, CreateIncidentRequest

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_BLOTTER_NUMBER_FORMAT = "BLT-{year}-{seq:04d}"


class RecordSource:
    """Storage access for one record kind."""

    kind: RecordKind
    model: Type[BaseEntity]
    machine: StatusStateMachine
    time_field = "created_at"

    def __init__(self, mongodb_service):
        self.mongodb_service = mongodb_service

    @property
    def collection(self) -> str:
        return COLLECTIONS[self.kind]

    def list_pending(self) -> List[Dict]:
        """Pending documents, oldest first."""
        with tracer.start_as_current_span(f"db.{self.kind.value}.list_pending") as span:
            documents = self.mongodb_service.find(
                self.collection,
                {"status": self.machine.pending_status},
                sort=[(self.time_field, 1), ("_id", 1)]
            )
            span.set_attribute("db.result_count", len(documents))
            return documents

    def get(self, record_id: str, session=None) -> BaseEntity:
        """
        Load one record.

        Raises:
            NotFoundException: If no live record has this ID
        """
        document = self.mongodb_service.find_one(self.collection, record_id, session=session)
        if document is None:
            raise NotFoundException(f"{self.label} {record_id} not found")
        return self.model.from_document(document)

    def insert(self, record: BaseEntity, session=None) -> str:
        return self.mongodb_service.create(self.collection, record.to_document(), session=session)

    def compare_and_set(self, record_id: str, expected_status: str, updates: Dict,
                        actor_id: str, session=None) -> bool:
        """Write ``updates`` only if the record is still in ``expected_status``."""
        return self.mongodb_service.update(
            self.collection,
            record_id,
            updates,
            actor_id,
            expected={"status": expected_status},
            session=session
        )

    def count_by(self, field: str, values) -> Dict[str, int]:
        counts = {}
        for value in values:
            value = getattr(value, "value", value)
            counts[value] = self.mongodb_service.count(self.collection, {field: value})
        return counts

    @property
    def label(self) -> str:
        return self.kind.value.capitalize()

    def title_for(self, record) -> str:
        return f"{self.label} {record.id}"


class CertificateRequestSource(RecordSource):
    kind = RecordKind.CERTIFICATE
    model = CertificateRequest
    machine = CERTIFICATE_STATE_MACHINE
    time_field = "requested_at"

    @property
    def label(self) -> str:
        return "Certificate request"

    def title_for(self, record: CertificateRequest) -> str:
        return f"{record.type_label} request of {record.resident_name}"


class BlotterCaseSource(RecordSource):
    kind = RecordKind.BLOTTER
    model = BlotterCase
    machine = BLOTTER_STATE_MACHINE

    @property
    def label(self) -> str:
        return "Blotter case"

    def title_for(self, record: BlotterCase) -> str:
        return f"Blotter case {record.case_number}"


class IncidentReportSource(RecordSource):
    kind = RecordKind.INCIDENT
    model = IncidentReport
    machine = INCIDENT_STATE_MACHINE

    @property
    def label(self) -> str:
        return "Incident report"

    def title_for(self, record: IncidentReport) -> str:
        return f"Incident report '{record.title or 'Untitled Incident'}'"


def build_record_sources(mongodb_service) -> Dict[RecordKind, RecordSource]:
    return {
        RecordKind.CERTIFICATE: CertificateRequestSource(mongodb_service),
        RecordKind.BLOTTER: BlotterCaseSource(mongodb_service),
        RecordKind.INCIDENT: IncidentReportSource(mongodb_service),
    }


class RecordService:
    """
    Files new records.

    Each record is inserted together with its audit entry in one transaction;
    the pending-count cache is invalidated and a ``created`` event emitted
    only after commit.
    """

    def __init__(self, mongodb_service, sources: Dict[RecordKind, RecordSource], audit_service,
                 notification_sink, redis_service=None, blotter_number_format: Optional[str] = None):
        self.mongodb_service = mongodb_service
        self.sources = sources
        self.audit_service = audit_service
        self.notification_sink = notification_sink
        self.redis_service = redis_service
        self.blotter_number_format = blotter_number_format or os.getenv(
            "BLOTTER_NUMBER_FORMAT", DEFAULT_BLOTTER_NUMBER_FORMAT
        )

    def get(self, kind: RecordKind, record_id: str) -> BaseEntity:
        return self.sources[kind].get(record_id)

    def create_certificate_request(self, request_data: CreateCertificateRequest,
                                   user_context: UserContext) -> CertificateRequest:
        record = CertificateRequest(
            resident_id=request_data.resident_id,
            resident_name=request_data.resident_name,
            certificate_type=request_data.certificate_type,
            purpose=request_data.purpose,
            requested_by=user_context.user_id,
            requested_by_name=user_context.name,
            created_by=user_context.user_id,
            updated_by=user_context.user_id
        )
        return self._file(RecordKind.CERTIFICATE, record, user_context)

    def create_blotter_case(self, request_data: CreateBlotterRequest,
                            user_context: UserContext) -> BlotterCase:
        """File a blotter case; the case number is allocated in the same transaction."""
        now = utc_now()

        def build(session) -> BlotterCase:
            sequence = self.mongodb_service.next_sequence(f"blotter:{now.year}", session=session)
            return BlotterCase(
                case_number=self.blotter_number_format.format(year=now.year, seq=sequence),
                complainant_ref=request_data.complainant_ref,
                complainant_free_text=request_data.complainant_free_text,
                respondent_ref=request_data.respondent_ref,
                respondent_free_text=request_data.respondent_free_text,
                incident_type=request_data.incident_type,
                location=request_data.location,
                narrative=request_data.narrative,
                reported_by=user_context.user_id,
                reported_by_name=user_context.name,
                created_at=now,
                updated_at=now,
                created_by=user_context.user_id,
                updated_by=user_context.user_id
            )

        return self._file(RecordKind.BLOTTER, build, user_context)

    def create_incident_report(self, request_data: CreateIncidentRequest,
                               user_context: UserContext) -> IncidentReport:
        record = IncidentReport(
            title=request_data.title,
            description=request_data.description,
            location=request_data.location,
            reporting_officer_ref=request_data.reporting_officer_ref,
            reported_by=user_context.user_id,
            reported_by_name=user_context.name,
            created_by=user_context.user_id,
            updated_by=user_context.user_id
        )
        return self._file(RecordKind.INCIDENT, record, user_context)

    def _file(self, kind: RecordKind, record_or_builder, user_context: UserContext):
        source = self.sources[kind]

        with tracer.start_as_current_span(f"records.{kind.value}.create") as span:
            span.set_attribute("user.id", user_context.user_id)

            def write(session):
                record = record_or_builder(session) if callable(record_or_builder) else record_or_builder
                source.insert(record, session=session)
                self.audit_service.log_action(
                    user_id=user_context.user_id,
                    entity=kind.value,
                    entity_id=record.id,
                    action="create",
                    after=record.model_dump(mode="json"),
                    user_context=user_context,
                    session=session
                )
                return record

            record = self.mongodb_service.run_in_transaction(write)
            span.set_attribute("record.id", record.id)

        logger.info(
            "Record filed",
            extra={"kind": kind.value, "record_id": record.id, "user_id": user_context.user_id}
        )

        if self.redis_service is not None:
            self.redis_service.invalidate_pending_counts()
        self.notification_sink.emit(
            events.created_event(kind.value, record.id, source.title_for(record), user_context.user_id)
        )
        return record

    def certificate_statistics(self) -> Dict[str, Dict[str, int]]:
        """Certificate request counts by status and by type."""
        source = self.sources[RecordKind.CERTIFICATE]
        by_status = source.count_by("status", CertificateStatus)
        by_type = source.count_by("certificate_type", CertificateType)
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_type": by_type,
        }
