# SPDX-License-Identifier: Apache-2.0

"""
Approval queue service.

Applies the authority gate, reads every record source independently and
hands the pending documents to the queue aggregator.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from opentelemetry import trace
from pymongo.errors import PyMongoError

from ..domain.authority import can_view_queue
from ..domain.queue import QUEUE_FILTERS, aggregate_queue
from ..middleware.error_handler import AuthorizationException, ValidationException
from ..models.entities import UserContext
from ..models.enums import RecordKind
from ..models.queue import QueueListing, QueueStatistics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ApprovalQueueService:
    """
    Unified approval queue over certificate requests, blotter cases and
    incident reports.

    Args:
        sources: Record source per kind
        redis_service: Cache for the pending-count badge (optional)
        count_cache_ttl: Seconds the cached counts stay fresh
    """

    def __init__(self, sources, redis_service=None, count_cache_ttl: int = 60):
        self.sources = sources
        self.redis_service = redis_service
        self.count_cache_ttl = count_cache_ttl

    def _require_queue_access(self, user_context: UserContext) -> None:
        with tracer.start_as_current_span("domain.authority.can_view_queue") as span:
            result = can_view_queue(user_context)
            span.set_attribute("authority.allowed", result.allowed)
        if not result.allowed:
            logger.warning(
                "Approval queue access denied",
                extra={"user_id": user_context.user_id, "role": user_context.role}
            )
            raise AuthorizationException(result.reason, error_type=result.error_code)

    def _collect_pending(self) -> Tuple[Dict[RecordKind, Sequence[dict]], List[str]]:
        pending: Dict[RecordKind, Sequence[dict]] = {}
        degraded: List[str] = []
        for kind, source in self.sources.items():
            try:
                pending[kind] = source.list_pending()
            except PyMongoError as e:
                logger.error(
                    "Record source unavailable, queue is partial",
                    extra={"kind": kind.value, "error": str(e)},
                    exc_info=True
                )
                pending[kind] = []
                degraded.append(kind.value)
        return pending, degraded

    def list_queue(self, user_context: UserContext, kind_filter: str = "all") -> QueueListing:
        """
        List pending records of every kind, oldest first.

        Args:
            user_context: Acting user; must be captain or admin
            kind_filter: "all" or one record kind

        Returns:
            QueueListing with statistics computed before filtering

        Raises:
            AuthorizationException: Before any source is read, if the user may
                not view the queue
            ValidationException: Unknown filter value
        """
        self._require_queue_access(user_context)

        if kind_filter not in QUEUE_FILTERS:
            raise ValidationException(
                "Invalid queue filter",
                [{"field": "type", "message": f"Must be one of: {', '.join(QUEUE_FILTERS)}",
                  "type": "enum"}]
            )

        with tracer.start_as_current_span("domain.queue.aggregate") as span:
            pending, degraded = self._collect_pending()
            listing = aggregate_queue(pending, kind_filter, degraded)
            span.set_attributes({
                "queue.filter": kind_filter,
                "queue.total_pending": listing.statistics.total_pending,
                "queue.returned": len(listing.entries),
                "queue.degraded_sources": len(degraded)
            })

        if not degraded and self.redis_service is not None:
            self.redis_service.cache_pending_counts(
                listing.statistics.model_dump(), self.count_cache_ttl
            )
        return listing

    def pending_counts(self, user_context: UserContext) -> QueueStatistics:
        """Pending counts for the approvals badge, served from cache when fresh."""
        self._require_queue_access(user_context)

        if self.redis_service is not None:
            cached = self.redis_service.get_cached_pending_counts()
            if cached:
                return QueueStatistics(**cached)

        pending, degraded = self._collect_pending()
        statistics = aggregate_queue(pending, "all", degraded).statistics
        if not degraded and self.redis_service is not None:
            self.redis_service.cache_pending_counts(statistics.model_dump(), self.count_cache_ttl)
        return statistics
