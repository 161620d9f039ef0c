# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the officials roster and the singleton role guard.
"""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest
import redis

from barangay_api.middleware.error_handler import (
    AuthorizationException,
    ConflictException,
    CustomException,
)
from barangay_api.models.requests import CreateOfficialRequest, UpdateOfficialRequest
from barangay_api.services.audit import AuditService
from barangay_api.services.officials import OfficialService, UniquenessGuard, singleton_roles_from_env
from barangay_api.services.redis import LockTimeoutError, RedisService


@pytest.fixture
def officials(app):
    return app.official_service


def create(service, user, position, name="Official", active=True):
    return service.create(CreateOfficialRequest(name=name, position=position, active=active), user)


class TestSingletonPositions:

    def test_second_active_captain_is_rejected(self, mongo, officials, admin):
        first = create(officials, admin, "Barangay Captain", "Jose Rizal")
        assert first.role_key == "barangay_captain"

        with pytest.raises(ConflictException) as exc_info:
            create(officials, admin, "Punong Barangay", "Andres Bonifacio")

        error = exc_info.value
        assert error.status_code == 422
        assert error.error_type == "already_held"
        assert error.details["holder_ids"] == [first.id]
        assert len(mongo.raw("officials")) == 1

    def test_inactive_holder_can_be_added(self, officials, admin):
        create(officials, admin, "Barangay Captain", "Jose Rizal")
        inactive = create(officials, admin, "Barangay Captain", "Andres Bonifacio", active=False)
        assert not inactive.active

    def test_toggle_runs_the_guard(self, officials, admin):
        first = create(officials, admin, "Barangay Captain", "Jose Rizal")
        second = create(officials, admin, "Barangay Captain", "Andres Bonifacio", active=False)

        with pytest.raises(ConflictException):
            officials.toggle_active(second.id, admin)

        assert not officials.toggle_active(first.id, admin).active
        assert officials.toggle_active(second.id, admin).active

    def test_position_change_runs_the_guard(self, officials, admin):
        create(officials, admin, "SK Chairperson", "Liza Soberano")
        kagawad = create(officials, admin, "Kagawad", "Pedro Penduko")

        with pytest.raises(ConflictException):
            officials.update(kagawad.id, UpdateOfficialRequest(position="SK Chairman"), admin)

        assert officials.get(kagawad.id).position == "Kagawad"

    def test_non_singleton_positions_are_unrestricted(self, officials, admin):
        for name in ("Pedro", "Juan", "Maria"):
            create(officials, admin, "Kagawad", name)
        assert len(officials.list_officials(admin, active=True)) == 3

    def test_renaming_the_holder_is_not_activation(self, officials, admin):
        captain = create(officials, admin, "Barangay Captain", "Jose Rizal")
        updated = officials.update(captain.id, UpdateOfficialRequest(name="Jose P. Rizal"), admin)
        assert updated.name == "Jose P. Rizal"
        assert updated.active

    def test_concurrent_activation(self, mongo, officials, admin):
        with ThreadPoolExecutor(max_workers=5) as pool:
            futures = [pool.submit(create, officials, admin, "Barangay Captain", f"Candidate {i}")
                       for i in range(5)]

        outcomes = [future.exception() for future in futures]
        assert sum(outcome is None for outcome in outcomes) == 1
        assert all(isinstance(outcome, ConflictException) for outcome in outcomes if outcome)
        active = [doc for doc in mongo.raw("officials") if doc["active"]]
        assert len(active) == 1

    def test_unique_index_backs_the_guard(self, mongo, redis_service, admin):
        # A guard that knows no singleton roles leaves only the storage index
        guard = UniquenessGuard(mongo, redis_service, singleton_roles=("none",))
        service = OfficialService(mongo, guard, AuditService(mongo))

        create(service, admin, "Barangay Captain", "Jose Rizal")
        with pytest.raises(ConflictException):
            create(service, admin, "Barangay Captain", "Andres Bonifacio")

    def test_lock_timeout(self, mongo, admin):
        redis_service = Mock()
        redis_service.lock.side_effect = LockTimeoutError("role:barangay_captain")
        service = OfficialService(mongo, UniquenessGuard(mongo, redis_service), AuditService(mongo))

        with pytest.raises(CustomException) as exc_info:
            create(service, admin, "Barangay Captain", "Jose Rizal")

        assert exc_info.value.status_code == 409
        assert exc_info.value.error_type == "lock_timeout"
        assert mongo.raw("officials") == []

    def test_guard_survives_redis_outage(self, mongo, admin):
        unreachable = redis.Redis(port=1, socket_connect_timeout=0.1, decode_responses=True)
        guard = UniquenessGuard(mongo, RedisService(client=unreachable))
        service = OfficialService(mongo, guard, AuditService(mongo))

        first = create(service, admin, "Barangay Captain", "Jose Rizal")
        assert first.active

        with pytest.raises(ConflictException):
            create(service, admin, "Punong Barangay", "Andres Bonifacio")


class TestRosterAccess:

    def test_secretary_cannot_manage(self, officials, secretary):
        with pytest.raises(AuthorizationException):
            create(officials, secretary, "Kagawad")
        with pytest.raises(AuthorizationException):
            officials.list_officials(secretary)

    def test_list_filters_by_active(self, officials, captain):
        create(officials, captain, "Kagawad", "Active One")
        create(officials, captain, "Kagawad", "Inactive One", active=False)

        assert [o.name for o in officials.list_officials(captain, active=False)] == ["Inactive One"]
        assert len(officials.list_officials(captain)) == 2

    def test_changes_are_audited(self, app, officials, admin):
        official = create(officials, admin, "Kagawad", "Pedro")
        officials.toggle_active(official.id, admin)

        entries = app.audit_service.entries_for("official", official.id)
        assert [entry["action"] for entry in entries] == ["create", "toggle_active"]
        assert entries[1]["before"] == {"active": True}
        assert entries[1]["after"] == {"active": False}


def test_singleton_roles_from_env(monkeypatch):
    monkeypatch.setenv("SINGLETON_ROLE_KEYS", "barangay_captain, sk_chairperson ,treasurer")
    assert singleton_roles_from_env() == ("barangay_captain", "sk_chairperson", "treasurer")

    monkeypatch.delenv("SINGLETON_ROLE_KEYS")
    assert singleton_roles_from_env() == ("barangay_captain", "sk_chairperson")
