# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
from unittest.mock import Mock

import fakeredis
import pytest

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['QR_SIGNING_SECRET'] = 'test-qr-signing-secret'

from barangay_api.app import create_app  # noqa: E402
from barangay_api.domain.issuance import NumberingScheme, ValidityPolicy  # noqa: E402
from barangay_api.models.entities import UserContext  # noqa: E402
from barangay_api.models.enums import UserRole  # noqa: E402
from barangay_api.services.auth import AuthService  # noqa: E402
from barangay_api.services.issuance import IssuanceConfig  # noqa: E402
from barangay_api.services.redis import RedisService  # noqa: E402
from barangay_api.tests.fakes import QR_SECRET, InMemoryMongoService  # noqa: E402


@pytest.fixture
def mongo():
    """In-memory MongoDB with transactions."""
    return InMemoryMongoService()


@pytest.fixture
def redis_service():
    """Redis service backed by fakeredis."""
    return RedisService(client=fakeredis.FakeRedis(decode_responses=True))


@pytest.fixture(scope="session")
def auth_service():
    """Auth service with a generated development key pair."""
    return AuthService()


@pytest.fixture
def issuance_config():
    return IssuanceConfig(
        qr_secret=QR_SECRET,
        numbering=NumberingScheme(),
        validity=ValidityPolicy(days_by_type={"business_permit_endorsement": 365}),
    )


@pytest.fixture
def pdf_renderer():
    renderer = Mock()
    renderer.render.side_effect = lambda certificate, signature_ref=None: (
        f"certificates/{certificate.certificate_number}.pdf"
    )
    return renderer


def make_user(role: UserRole, user_id: str, name: str) -> UserContext:
    return UserContext(user_id=user_id, name=name, role=role)


@pytest.fixture
def captain():
    return make_user(UserRole.CAPTAIN, "captain-1", "Kapitan Jose Rizal")


@pytest.fixture
def admin():
    return make_user(UserRole.ADMIN, "admin-1", "Admin Andres")


@pytest.fixture
def secretary():
    return make_user(UserRole.SECRETARY, "secretary-1", "Secretary Gabriela")


@pytest.fixture
def staff():
    return make_user(UserRole.STAFF, "staff-1", "Desk Staff")


@pytest.fixture
def app(mongo, redis_service, auth_service, issuance_config, pdf_renderer):
    """Flask application wired to in-memory services."""
    application = create_app(
        config={'TESTING': True},
        mongodb_service=mongo,
        redis_service=redis_service,
        amqp_service=None,
        auth_service=auth_service,
        issuance_config=issuance_config,
        pdf_renderer=pdf_renderer
    )
    return application


@pytest.fixture
def client(app):
    """Test client for the Flask application."""
    return app.test_client()


@pytest.fixture
def auth_headers(auth_service):
    """Build Authorization headers for a user context."""
    def build(user_context: UserContext) -> dict:
        token = auth_service.issue_access_token(
            user_context.user_id, user_context.name, user_context.role
        )["access_token"]
        return {'Authorization': f"Bearer {token}"}
    return build
