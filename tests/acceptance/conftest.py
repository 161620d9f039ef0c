# SPDX-License-Identifier: Apache-2.0

"""
Fixtures for acceptance tests: the full application over in-memory storage.
"""

import os

import fakeredis
import pytest

os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('OTEL_ENABLED', 'false')

from barangay_api.app import create_app  # noqa: E402
from barangay_api.domain.issuance import NumberingScheme, ValidityPolicy  # noqa: E402
from barangay_api.models.enums import UserRole  # noqa: E402
from barangay_api.services.auth import AuthService  # noqa: E402
from barangay_api.services.issuance import IssuanceConfig  # noqa: E402
from barangay_api.services.redis import RedisService  # noqa: E402
from barangay_api.tests.fakes import QR_SECRET, InMemoryMongoService  # noqa: E402

USERS = {
    UserRole.CAPTAIN: ("captain-1", "Kapitan Jose Rizal"),
    UserRole.ADMIN: ("admin-1", "Admin Andres"),
    UserRole.SECRETARY: ("secretary-1", "Secretary Gabriela"),
    UserRole.STAFF: ("staff-1", "Desk Staff"),
}


@pytest.fixture(scope="session")
def auth_service():
    return AuthService()


@pytest.fixture
def mongo():
    return InMemoryMongoService()


@pytest.fixture
def renderer():
    """Render queue stand-in recording every job."""
    class RecordingRenderer:
        def __init__(self):
            self.jobs = []

        def render(self, certificate, signature_ref=None):
            self.jobs.append((certificate.certificate_number, signature_ref))
            return f"certificates/{certificate.certificate_number}.pdf"

    return RecordingRenderer()


@pytest.fixture
def app(mongo, auth_service, renderer):
    return create_app(
        config={'TESTING': True},
        mongodb_service=mongo,
        redis_service=RedisService(client=fakeredis.FakeRedis(decode_responses=True)),
        amqp_service=None,
        auth_service=auth_service,
        issuance_config=IssuanceConfig(qr_secret=QR_SECRET, numbering=NumberingScheme(),
                                       validity=ValidityPolicy()),
        pdf_renderer=renderer
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def headers_for(auth_service):
    """Authorization headers for the user holding ``role``."""
    def build(role: UserRole) -> dict:
        user_id, name = USERS[role]
        token = auth_service.issue_access_token(user_id, name, role)["access_token"]
        return {'Authorization': f'Bearer {token}'}
    return build
