# SPDX-License-Identifier: Apache-2.0

"""
Certificate document rendering.

Rendering runs in a separate worker; this collaborator enqueues the render
job on the message broker and returns the asset reference the worker will
write to.
"""

import logging
from typing import Optional

from ..models.entities import IssuedCertificate

logger = logging.getLogger(__name__)

RENDER_ROUTING_KEY = "certificate.render"


class PdfRenderError(Exception):
    """Raised when a render job could not be queued."""
    pass


class PdfRenderer:
    """
    Queues certificate render jobs.

    Args:
        amqp_service: Broker publisher
        asset_prefix: Storage prefix for rendered documents
    """

    def __init__(self, amqp_service=None, asset_prefix: str = "certificates"):
        self.amqp_service = amqp_service
        self.asset_prefix = asset_prefix.rstrip("/")

    def asset_ref_for(self, certificate: IssuedCertificate) -> str:
        return f"{self.asset_prefix}/{certificate.certificate_number}.pdf"

    def render(self, certificate: IssuedCertificate, signature_ref: Optional[str] = None) -> str:
        """
        Queue rendering of an issued certificate.

        Returns:
            Asset reference of the document to be produced

        Raises:
            PdfRenderError: If no broker is configured or publishing failed
        """
        if self.amqp_service is None:
            raise PdfRenderError("No render queue is configured")

        asset_ref = self.asset_ref_for(certificate)
        job = {
            "issued_certificate_id": certificate.id,
            "certificate_number": certificate.certificate_number,
            "certificate_type": certificate.certificate_type,
            "resident_id": certificate.resident_id,
            "qr_payload": certificate.qr_payload,
            "valid_from": certificate.valid_from,
            "valid_until": certificate.valid_until,
            "signer_name": certificate.signer_name,
            "signer_position": certificate.signer_position,
            "signature_ref": signature_ref,
            "asset_ref": asset_ref,
        }

        result = self.amqp_service.publish(RENDER_ROUTING_KEY, job, correlation_id=certificate.id)
        if not result.success:
            raise PdfRenderError(f"Render job was not queued: {result.error}")

        logger.info(
            "Certificate render job queued",
            extra={"certificate_number": certificate.certificate_number, "asset_ref": asset_ref}
        )
        return asset_ref
