# SPDX-License-Identifier: Apache-2.0

"""
Officials roster and the uniqueness guard for singleton roles.

Every path that leaves an official active (create, update, toggle) runs the
same guard while holding a per-role lock, so check-then-activate is one unit
per role key. The partial unique index on active role keys backs the guard
at the storage layer.
"""

import logging
import os
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from opentelemetry import trace

from ..domain.authority import can_manage_officials
from ..domain.roles import DEFAULT_SINGLETON_ROLES, GuardResult, check_singleton_available, derive_role_key
from ..middleware.error_handler import (
    AuthorizationException,
    ConflictException,
    CustomException,
    NotFoundException,
)
from ..models.entities import Official, UserContext
from ..models.requests import CreateOfficialRequest, UpdateOfficialRequest
from .mongodb import DuplicateDocumentError
from .redis import LockTimeoutError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

OFFICIALS_COLLECTION = "officials"


def singleton_roles_from_env() -> tuple:
    raw = os.getenv("SINGLETON_ROLE_KEYS")
    if not raw:
        return DEFAULT_SINGLETON_ROLES
    return tuple(key.strip() for key in raw.split(",") if key.strip())


class UniquenessGuard:
    """
    Enforces at most one active holder per singleton role key.

    Args:
        mongodb_service: Storage holding the officials roster
        redis_service: Provides the per-role lock
        singleton_roles: Role keys limited to one active holder
    """

    def __init__(self, mongodb_service, redis_service, singleton_roles: Iterable[str] = None):
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.singleton_roles = tuple(singleton_roles or singleton_roles_from_env())

    def is_singleton(self, role_key: Optional[str]) -> bool:
        return bool(role_key) and role_key in self.singleton_roles

    def active_holder_ids(self, role_key: str, session=None) -> List[str]:
        holders = self.mongodb_service.find(
            OFFICIALS_COLLECTION, {"role_key": role_key, "active": True}, session=session
        )
        return [holder["id"] for holder in holders]

    def assert_singleton_active(self, role_key: Optional[str], candidate_id: str,
                                session=None) -> GuardResult:
        """
        Fail if anyone other than ``candidate_id`` actively holds ``role_key``.

        Raises:
            ConflictException: The role is already held
        """
        with tracer.start_as_current_span("domain.roles.assert_singleton_active") as span:
            span.set_attributes({"role.key": role_key or "", "role.candidate_id": candidate_id})
            holders = self.active_holder_ids(role_key, session=session) if self.is_singleton(role_key) else []
            result = check_singleton_available(role_key, candidate_id, holders, self.singleton_roles)
            span.set_attribute("role.allowed", result.allowed)

        if not result.allowed:
            logger.warning(
                "Singleton role already held",
                extra={"role_key": role_key, "candidate_id": candidate_id,
                       "holder_ids": result.conflicting_ids}
            )
            raise ConflictException(result.reason, role_key=role_key, holder_ids=result.conflicting_ids)
        return result

    @contextmanager
    def activation(self, role_key: Optional[str], candidate_id: str) -> Iterator[None]:
        """
        Hold the role lock, check availability, and let the caller activate.

        The lock is held until the block exits, so the caller's write happens
        before any other activation of the same role key is checked.
        """
        if not self.is_singleton(role_key):
            yield
            return

        try:
            with self.redis_service.lock(f"role:{role_key}"):
                self.assert_singleton_active(role_key, candidate_id)
                yield
        except LockTimeoutError:
            raise CustomException(
                "Another change to this position is in progress. Try again.",
                409,
                "lock_timeout"
            )


class OfficialService:
    """Officials roster operations; activation always goes through the guard."""

    def __init__(self, mongodb_service, guard: UniquenessGuard, audit_service):
        self.mongodb_service = mongodb_service
        self.guard = guard
        self.audit_service = audit_service

    def _require_manager(self, user_context: UserContext) -> None:
        result = can_manage_officials(user_context)
        if not result.allowed:
            raise AuthorizationException(result.reason, error_type=result.error_code)

    def list_officials(self, user_context: UserContext, active: Optional[bool] = None) -> List[Official]:
        self._require_manager(user_context)
        filters = {} if active is None else {"active": active}
        documents = self.mongodb_service.find(OFFICIALS_COLLECTION, filters, sort=[("name", 1)])
        return [Official.from_document(doc) for doc in documents]

    def get(self, official_id: str) -> Official:
        document = self.mongodb_service.find_one(OFFICIALS_COLLECTION, official_id)
        if document is None:
            raise NotFoundException(f"Official {official_id} not found")
        return Official.from_document(document)

    def create(self, request_data: CreateOfficialRequest, user_context: UserContext) -> Official:
        self._require_manager(user_context)
        official = Official(
            name=request_data.name,
            position=request_data.position,
            category=request_data.category,
            role_key=derive_role_key(request_data.position),
            user_id=request_data.user_id,
            active=request_data.active,
            created_by=user_context.user_id,
            updated_by=user_context.user_id
        )

        def write(session):
            self.mongodb_service.create(OFFICIALS_COLLECTION, official.to_document(), session=session)
            self._audit(user_context, official.id, "create", None, official.model_dump(mode="json"), session)

        with tracer.start_as_current_span("officials.create") as span:
            span.set_attributes({"official.id": official.id, "role.key": official.role_key or ""})
            if official.active:
                with self.guard.activation(official.role_key, official.id):
                    self._commit(write, official)
            else:
                self._commit(write, official)

        logger.info("Official created", extra={"official_id": official.id, "role_key": official.role_key})
        return official

    def update(self, official_id: str, request_data: UpdateOfficialRequest,
               user_context: UserContext) -> Official:
        self._require_manager(user_context)
        current = self.get(official_id)

        changes: Dict = request_data.model_dump(exclude_unset=True, exclude_none=True)
        if "position" in changes:
            changes["role_key"] = derive_role_key(changes["position"])
        if "category" in changes:
            changes["category"] = getattr(changes["category"], "value", changes["category"])

        return self._apply(current, changes, user_context, "update")

    def toggle_active(self, official_id: str, user_context: UserContext) -> Official:
        self._require_manager(user_context)
        current = self.get(official_id)
        return self._apply(current, {"active": not current.active}, user_context, "toggle_active")

    def _apply(self, current: Official, changes: Dict, user_context: UserContext, action: str) -> Official:
        updated = current.model_copy(update=changes)
        before = {key: getattr(current, key) for key in changes}
        after = {key: getattr(updated, key) for key in changes}

        def write(session):
            if not self.mongodb_service.update(OFFICIALS_COLLECTION, current.id, changes,
                                               user_context.user_id, session=session):
                raise NotFoundException(f"Official {current.id} not found")
            self._audit(user_context, current.id, action, before, after, session)

        # Re-check whenever the official ends up active under a role key
        activating = updated.active and (not current.active or updated.role_key != current.role_key)

        with tracer.start_as_current_span(f"officials.{action}") as span:
            span.set_attributes({"official.id": current.id, "official.activating": activating})
            if activating:
                with self.guard.activation(updated.role_key, current.id):
                    self._commit(write, updated)
            else:
                self._commit(write, updated)

        logger.info(
            "Official updated",
            extra={"official_id": current.id, "action": action, "fields": sorted(changes)}
        )
        return self.get(current.id)

    def _commit(self, write, official: Official) -> None:
        try:
            self.mongodb_service.run_in_transaction(write)
        except DuplicateDocumentError as e:
            # Partial unique index on active role keys
            raise ConflictException(
                f"There is already an active {official.position}. Deactivate them first.",
                role_key=official.role_key
            ) from e

    def _audit(self, user_context: UserContext, official_id: str, action: str,
               before: Optional[Dict], after: Optional[Dict], session) -> None:
        self.audit_service.log_action(
            user_id=user_context.user_id,
            entity="official",
            entity_id=official_id,
            action=action,
            before=before,
            after=after,
            user_context=user_context,
            session=session
        )
