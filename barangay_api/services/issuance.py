# SPDX-License-Identifier: Apache-2.0

"""
Certificate issuance service.

Releasing an approved certificate request allocates a certificate number,
computes the validity window, signs the QR payload and stores the issuance
record, all in one transaction with the request's move to ``released``.
Rendering the printable document happens after commit and never undoes an
issuance.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import jwt
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain import events
from ..domain.authority import QUEUE_ROLES, check_action_role
from ..domain.issuance import (
    DEFAULT_NUMBER_FORMAT,
    DEFAULT_VALIDITY_DAYS,
    NumberingScheme,
    ValidityPolicy,
    decode_qr_payload,
    encode_qr_payload,
    resolve_signer_name,
)
from ..domain.state_machine import transition_updates
from ..middleware.error_handler import (
    AuthorizationException,
    InvalidTransitionException,
    NotFoundException,
    PersistenceException,
    ValidationException,
)
from ..models.base import utc_now
from ..models.entities import CertificateRequest, IssuedCertificate, UserContext
from ..models.enums import CertificateValidity, RecordKind, WorkflowAction
from .mongodb import DuplicateDocumentError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ISSUED_COLLECTION = "issued_certificates"
DEFAULT_SIGNER_NAME = "Punong Barangay"


def _json_env(name: str) -> Dict[str, Any]:
    raw = os.getenv(name)
    if not raw:
        return {}
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a JSON object")
    return value


@dataclass
class IssuanceConfig:
    """Numbering, validity and signing settings for issued certificates."""
    qr_secret: str
    numbering: NumberingScheme = field(default_factory=NumberingScheme)
    validity: ValidityPolicy = field(default_factory=ValidityPolicy)
    default_signer_name: str = DEFAULT_SIGNER_NAME
    signer_position: str = DEFAULT_SIGNER_NAME

    @classmethod
    def from_env(cls) -> "IssuanceConfig":
        qr_secret = os.getenv("QR_SIGNING_SECRET")
        if not qr_secret:
            logger.warning("No QR_SIGNING_SECRET found, using development secret")
            qr_secret = "development-qr-signing-secret-change-me"

        validity_days = {
            key: int(days) for key, days in _json_env("CERTIFICATE_VALIDITY_DAYS").items()
        }
        return cls(
            qr_secret=qr_secret,
            numbering=NumberingScheme(
                number_format=os.getenv("CERTIFICATE_NUMBER_FORMAT", DEFAULT_NUMBER_FORMAT),
                prefixes={key: str(p) for key, p in _json_env("CERTIFICATE_NUMBER_PREFIXES").items()},
            ),
            validity=ValidityPolicy(
                days_by_type=validity_days,
                default_days=int(os.getenv("CERTIFICATE_DEFAULT_VALIDITY_DAYS", DEFAULT_VALIDITY_DAYS)),
            ),
            default_signer_name=os.getenv("DEFAULT_SIGNER_NAME", DEFAULT_SIGNER_NAME),
            signer_position=os.getenv("SIGNER_POSITION", DEFAULT_SIGNER_NAME),
        )


@dataclass
class IssuanceResult:
    """Outcome of ``CertificateIssuanceService.issue``."""
    certificate: IssuedCertificate
    request: CertificateRequest
    created: bool
    warnings: List[str] = field(default_factory=list)


class CertificateIssuanceService:
    """
    Sole writer of issued certificate records.

    Args:
        mongodb_service: Storage with transactions and counters
        sources: Record source per kind
        signature_lookup: Signer identity collaborator
        audit_service: Audit trail writer
        notification_sink: Receives events after commit
        config: Issuance settings
        pdf_renderer: Document rendering collaborator (optional)
    """

    def __init__(self, mongodb_service, sources, signature_lookup, audit_service,
                 notification_sink, config: IssuanceConfig, pdf_renderer=None):
        self.mongodb_service = mongodb_service
        self.requests = sources[RecordKind.CERTIFICATE]
        self.signature_lookup = signature_lookup
        self.audit_service = audit_service
        self.notification_sink = notification_sink
        self.config = config
        self.pdf_renderer = pdf_renderer

    def get(self, certificate_id: str) -> IssuedCertificate:
        document = self.mongodb_service.find_one(ISSUED_COLLECTION, certificate_id)
        if document is None:
            raise NotFoundException(f"Issued certificate {certificate_id} not found")
        return IssuedCertificate.from_document(document)

    def find_for_request(self, request_id: str, session=None) -> Optional[IssuedCertificate]:
        document = self.mongodb_service.find_one_by(
            ISSUED_COLLECTION, {"source_request_id": request_id}, session=session
        )
        return IssuedCertificate.from_document(document) if document else None

    def issue(self, request_id: str, user_context: UserContext,
              remarks: Optional[str] = None) -> IssuanceResult:
        """
        Release an approved certificate request and issue its certificate.

        Issuing again for a request that already has a certificate returns the
        existing one unchanged.

        Raises:
            AuthorizationException: Role not permitted to release
            NotFoundException: No such request
            InvalidTransitionException: Request is not approved
        """
        role_check = check_action_role(user_context, WorkflowAction.RELEASE)
        if not role_check.allowed:
            raise AuthorizationException(role_check.reason, error_type=role_check.error_code)

        with tracer.start_as_current_span("issuance.issue") as span:
            span.set_attributes({"request.id": request_id, "user.id": user_context.user_id})

            # Request first: once it reads as released its certificate is visible
            request = self.requests.get(request_id)
            existing = self.find_for_request(request_id)
            if existing is not None:
                span.set_attribute("issuance.created", False)
                return IssuanceResult(existing, self.requests.get(request_id), created=False)

            check = self.requests.machine.check_action(request.status, WorkflowAction.RELEASE)
            if not check.allowed:
                span.set_status(Status(StatusCode.ERROR, "invalid transition"))
                raise InvalidTransitionException(
                    check.reason,
                    kind=RecordKind.CERTIFICATE.value,
                    from_status=check.from_status,
                    to_status=check.to_status
                )

            signer_name = resolve_signer_name(
                self.signature_lookup.barangay_info(),
                self.signature_lookup.captain_user(),
                self.config.default_signer_name
            )
            issued_at = utc_now()
            updates = transition_updates(check.transition, user_context.user_id, issued_at, remarks)

            def write(session) -> IssuedCertificate:
                certificate = self._allocate(request, user_context, signer_name, issued_at, session)
                self.mongodb_service.create(ISSUED_COLLECTION, certificate.to_document(), session=session)
                if not self.requests.compare_and_set(request_id, check.from_status, updates,
                                                     user_context.user_id, session=session):
                    raise InvalidTransitionException(
                        f"Certificate request {request_id} is no longer '{check.from_status}'",
                        kind=RecordKind.CERTIFICATE.value,
                        from_status=check.from_status,
                        to_status=check.to_status
                    )
                self.audit_service.log_action(
                    user_id=user_context.user_id,
                    entity=RecordKind.CERTIFICATE.value,
                    entity_id=request_id,
                    action=WorkflowAction.RELEASE.value,
                    before={"status": check.from_status},
                    after={
                        "status": check.to_status,
                        "issued_certificate_id": certificate.id,
                        "certificate_number": certificate.certificate_number
                    },
                    user_context=user_context,
                    session=session
                )
                return certificate

            try:
                certificate = self.mongodb_service.run_in_transaction(write)
            except DuplicateDocumentError as e:
                if "source_request_id" not in e.key:
                    logger.error(
                        "Certificate number collision",
                        extra={"request_id": request_id, "key": e.key},
                        exc_info=True
                    )
                    raise PersistenceException("The certificate could not be issued") from e
                # A concurrent release of the same request committed first
                existing = self.find_for_request(request_id)
                if existing is None:
                    raise PersistenceException("The certificate could not be issued") from e
                return IssuanceResult(existing, self.requests.get(request_id), created=False)

            span.set_attributes({
                "issuance.created": True,
                "certificate.number": certificate.certificate_number
            })

        logger.info(
            "Certificate issued",
            extra={
                "request_id": request_id,
                "certificate_id": certificate.id,
                "certificate_number": certificate.certificate_number,
                "user_id": user_context.user_id
            }
        )

        warnings = self._render(certificate, user_context)
        self.notification_sink.emit(events.issued_event(
            certificate.id,
            certificate.certificate_number,
            request_id,
            user_context.user_id,
            warnings
        ))
        return IssuanceResult(certificate, self.requests.get(request_id), created=True, warnings=warnings)

    def _allocate(self, request: CertificateRequest, user_context: UserContext, signer_name: str,
                  issued_at, session) -> IssuedCertificate:
        """Allocate the next number and build the issuance record."""
        numbering = self.config.numbering
        certificate_type = request.certificate_type
        year = issued_at.year

        sequence = self.mongodb_service.next_sequence(
            numbering.counter_key(certificate_type, year), session=session
        )
        certificate_number = numbering.format(certificate_type, year, sequence)
        valid_from, valid_until = self.config.validity.window(certificate_type, issued_at)

        return IssuedCertificate(
            source_request_id=request.id,
            resident_id=request.resident_id,
            certificate_type=certificate_type,
            certificate_number=certificate_number,
            qr_payload=encode_qr_payload(
                certificate_number, request.resident_id, issued_at, self.config.qr_secret
            ),
            valid_from=valid_from,
            valid_until=valid_until,
            issued_at=issued_at,
            issued_by=user_context.user_id,
            signer_name=signer_name,
            signer_position=self.config.signer_position,
            created_at=issued_at,
            updated_at=issued_at,
            created_by=user_context.user_id,
            updated_by=user_context.user_id
        )

    def _render(self, certificate: IssuedCertificate, user_context: UserContext) -> List[str]:
        """Render the printable document; failures become warnings."""
        if self.pdf_renderer is None:
            return []

        with tracer.start_as_current_span("issuance.render") as span:
            try:
                _, signature_ref = self.signature_lookup.has_signature(
                    self.signature_lookup.current_authority_id()
                )
                asset_ref = self.pdf_renderer.render(certificate, signature_ref=signature_ref)
                self.mongodb_service.update(
                    ISSUED_COLLECTION, certificate.id, {"pdf_asset_ref": asset_ref}, user_context.user_id
                )
                certificate.pdf_asset_ref = asset_ref
                return []
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, "render failed"))
                logger.warning(
                    "Certificate issued but document rendering failed",
                    extra={
                        "certificate_id": certificate.id,
                        "certificate_number": certificate.certificate_number,
                        "error": str(e)
                    },
                    exc_info=True
                )
                return [f"Certificate document could not be generated: {e}"]

    def invalidate(self, certificate_id: str, user_context: UserContext, reason: str) -> IssuedCertificate:
        """
        Revoke an issued certificate. Its number stays allocated.

        Raises:
            AuthorizationException: Only captain or admin may invalidate
            NotFoundException: No such certificate
            InvalidTransitionException: Already invalidated
        """
        if not user_context.has_role(*QUEUE_ROLES):
            raise AuthorizationException("Only Barangay Captain or Admin can invalidate certificates")

        with tracer.start_as_current_span("issuance.invalidate") as span:
            span.set_attributes({"certificate.id": certificate_id, "user.id": user_context.user_id})
            certificate = self.get(certificate_id)
            if not certificate.is_valid:
                raise InvalidTransitionException(
                    f"Certificate {certificate.certificate_number} is already invalidated",
                    kind="issued_certificate",
                    from_status=CertificateValidity.INVALID.value,
                    to_status=CertificateValidity.INVALID.value
                )

            now = utc_now()
            updates = {
                "is_valid": False,
                "invalidated_at": now,
                "invalidated_by": user_context.user_id,
                "invalidation_reason": reason
            }

            def write(session):
                if not self.mongodb_service.update(ISSUED_COLLECTION, certificate_id, updates,
                                                   user_context.user_id, expected={"is_valid": True},
                                                   session=session):
                    raise InvalidTransitionException(
                        f"Certificate {certificate.certificate_number} is already invalidated",
                        kind="issued_certificate"
                    )
                self.audit_service.log_action(
                    user_id=user_context.user_id,
                    entity="issued_certificate",
                    entity_id=certificate_id,
                    action="invalidate",
                    before={"is_valid": True},
                    after={"is_valid": False, "invalidation_reason": reason},
                    user_context=user_context,
                    session=session
                )

            self.mongodb_service.run_in_transaction(write)

        logger.info(
            "Certificate invalidated",
            extra={"certificate_id": certificate_id, "user_id": user_context.user_id}
        )
        self.notification_sink.emit(events.invalidated_event(
            certificate_id, certificate.certificate_number, reason, user_context.user_id
        ))
        return self.get(certificate_id)

    def verify(self, code: Optional[str] = None, certificate_number: Optional[str] = None) -> Dict[str, Any]:
        """
        Look up a certificate by QR payload or number and report its validity.

        Raises:
            ValidationException: QR payload does not verify
            NotFoundException: No certificate with that number
        """
        with tracer.start_as_current_span("issuance.verify") as span:
            claims = None
            if code:
                try:
                    claims = decode_qr_payload(code, self.config.qr_secret)
                except jwt.InvalidTokenError as e:
                    span.set_attribute("verify.result", "bad_signature")
                    logger.warning("Certificate verification code rejected", extra={"error": str(e)})
                    raise ValidationException(
                        "Verification code is not authentic",
                        [{"field": "code", "message": "Verification code is not authentic",
                          "type": "value_error"}]
                    )
                certificate_number = claims["certificate_number"]

            document = self.mongodb_service.find_one_by(
                ISSUED_COLLECTION, {"certificate_number": certificate_number}
            )
            if document is None:
                span.set_attribute("verify.result", "not_found")
                raise NotFoundException(f"Certificate {certificate_number} not found")

            certificate = IssuedCertificate.from_document(document)
            if claims is not None and claims["resident_id"] != certificate.resident_id:
                span.set_attribute("verify.result", "mismatch")
                raise ValidationException(
                    "Verification code does not match the certificate",
                    [{"field": "code", "message": "Verification code does not match the certificate",
                      "type": "value_error"}]
                )

            now = utc_now()
            status = certificate.validity_status(now)
            span.set_attribute("verify.result", status.value)
            return {
                "certificate_number": certificate.certificate_number,
                "certificate_type": certificate.certificate_type,
                "status": status.value,
                "is_valid": status == CertificateValidity.VALID,
                "days_until_expiry": max(certificate.days_until_expiry(now), 0),
                "valid_from": certificate.valid_from,
                "valid_until": certificate.valid_until,
                "issued_at": certificate.issued_at,
                "signer_name": certificate.signer_name,
                "signer_position": certificate.signer_position,
            }
