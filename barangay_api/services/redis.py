# SPDX-License-Identifier: Apache-2.0

"""
Redis service built on redis-py.

Provides the JWT token blocklist, the cached pending counts shown on the
approvals badge, and short-lived per-key locks. Every operation degrades
gracefully when Redis is unreachable.
"""

import os
import json
import time
import threading
from contextlib import contextmanager
from typing import Optional, Dict, Any, Iterator
import redis
from redis.exceptions import LockNotOwnedError
from redis.lock import Lock
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

PENDING_COUNTS_KEY = "approvals:pending_counts"


class RedisConnectionError(Exception):
    """Raised when Redis connection fails."""
    pass


class LockTimeoutError(Exception):
    """Raised when a lock could not be acquired in time."""

    def __init__(self, name: str):
        super().__init__(f"Timed out waiting for lock {name}")
        self.name = name


class RedisService:
    """
    Redis service with graceful degradation.

    Args:
        redis_url: Redis connection URL (redis://host:port/db)
        client: Pre-built client, used instead of connecting to ``redis_url``
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")
        self._local_locks: Dict[str, threading.Lock] = {}
        self._local_locks_guard = threading.Lock()

        if client is not None:
            self.client = client
            return

        try:
            self.client = redis.from_url(self.redis_url, decode_responses=True)
            self._test_connection()
            logger.info(f"Redis service initialized successfully at {self.redis_url}")
        except Exception as e:
            logger.error(f"Failed to initialize Redis service: {str(e)}")
            self.client = None

    def _test_connection(self) -> None:
        """Test Redis connection."""
        try:
            if not self.client.ping():
                raise RedisConnectionError("Redis ping failed")
        except redis.RedisError as e:
            logger.error(f"Redis connection test failed: {str(e)}")
            raise RedisConnectionError(f"Redis connection failed: {str(e)}")

    def is_available(self) -> bool:
        """Check if Redis service is available."""
        return self.client is not None

    def set_json(self, key: str, value: Any, ttl_seconds: int) -> bool:
        """Store a JSON-serializable value with a TTL."""
        if not self.client:
            return False

        with tracer.start_as_current_span("redis.set") as span:
            span.set_attributes({"redis.key": key, "redis.ttl": ttl_seconds})
            try:
                return bool(self.client.setex(key, ttl_seconds, json.dumps(value)))
            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis set failed for key {key}: {str(e)}")
                return False

    def get_json(self, key: str) -> Optional[Any]:
        """Read a JSON value, or None when missing or unavailable."""
        if not self.client:
            return None

        with tracer.start_as_current_span("redis.get") as span:
            span.set_attribute("redis.key", key)
            try:
                value = self.client.get(key)
            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis get failed for key {key}: {str(e)}")
                return None

            if value is None:
                span.set_attribute("redis.result", "not_found")
                return None
            try:
                return json.loads(value)
            except (json.JSONDecodeError, TypeError):
                logger.warning(f"Discarding non-JSON cache value at {key}")
                return None

    def delete(self, key: str) -> bool:
        """Delete a key from Redis."""
        if not self.client:
            return False

        try:
            return bool(self.client.delete(key))
        except redis.RedisError as e:
            logger.error(f"Redis delete failed for key {key}: {str(e)}")
            return False

    # JWT Token Blocklist Methods

    def is_token_blocked(self, token_id: str) -> bool:
        """
        Check if a token ID is in the blocklist.

        Args:
            token_id: JWT ``jti`` claim

        Returns:
            True if the token is blocked
        """
        if not self.client:
            return False

        with tracer.start_as_current_span("redis.is_token_blocked") as span:
            span.set_attribute("token.id", token_id)
            try:
                blocked = bool(self.client.exists(f"blocklist:{token_id}"))
                span.set_attribute("token.blocked", blocked)
                return blocked
            except redis.RedisError as e:
                logger.error(f"Failed to check token blocklist: {str(e)}")
                return False

    def block_token(self, token_id: str, ttl_seconds: int) -> bool:
        """Add a token ID to the blocklist until it would have expired anyway."""
        if not self.client:
            return False

        try:
            return bool(self.client.setex(f"blocklist:{token_id}", ttl_seconds, "1"))
        except redis.RedisError as e:
            logger.error(f"Failed to block token {token_id}: {str(e)}")
            return False

    # Approval queue counts

    def cache_pending_counts(self, counts: Dict[str, int], ttl_seconds: int = 60) -> bool:
        """Cache pending counts for the approvals badge."""
        return self.set_json(PENDING_COUNTS_KEY, counts, ttl_seconds)

    def get_cached_pending_counts(self) -> Optional[Dict[str, int]]:
        """Get cached pending counts."""
        return self.get_json(PENDING_COUNTS_KEY)

    def invalidate_pending_counts(self) -> bool:
        """Drop cached pending counts after a record enters or leaves a pending status."""
        return self.delete(PENDING_COUNTS_KEY)

    # Locks

    def _local_lock(self, name: str) -> threading.Lock:
        with self._local_locks_guard:
            return self._local_locks.setdefault(name, threading.Lock())

    @contextmanager
    def lock(self, name: str, ttl_ms: int = 10000, wait_seconds: float = 5.0) -> Iterator[None]:
        """
        Hold an exclusive lock on ``name`` for the duration of the block.

        Uses redis-py's ``Lock`` (token set with ``NX PX``, compare-and-delete
        release). Falls back to a process-local lock when Redis is unavailable
        or stops answering.

        Raises:
            LockTimeoutError: If the lock is not acquired within ``wait_seconds``
        """
        key = f"lock:{name}"
        redis_lock = self._acquire_redis_lock(name, key, ttl_ms, wait_seconds)

        if redis_lock is None:
            local = self._local_lock(key)
            if not local.acquire(timeout=wait_seconds):
                raise LockTimeoutError(name)
            try:
                yield
            finally:
                local.release()
            return

        try:
            yield
        finally:
            try:
                redis_lock.release()
            except LockNotOwnedError:
                logger.warning(f"Lock {key} expired before release")
            except redis.RedisError as e:
                logger.error(f"Failed to release lock {key}: {str(e)}")

    def _acquire_redis_lock(self, name: str, key: str, ttl_ms: int,
                            wait_seconds: float) -> Optional[Lock]:
        """Acquire ``key`` in Redis; None means the local lock must be used."""
        if not self.client:
            return None

        with tracer.start_as_current_span("redis.lock") as span:
            span.set_attribute("redis.key", key)
            redis_lock = self.client.lock(
                key,
                timeout=ttl_ms / 1000,
                sleep=0.05,
                blocking_timeout=wait_seconds
            )
            try:
                acquired = redis_lock.acquire()
            except redis.RedisError as e:
                span.set_attribute("redis.result", "error")
                logger.warning(f"Redis lock {key} unavailable, using local lock: {str(e)}")
                return None

            if not acquired:
                span.set_attribute("redis.result", "timeout")
                raise LockTimeoutError(name)
            return redis_lock

    def ping(self) -> bool:
        if not self.client:
            return False
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False

    def health_check(self) -> Dict[str, Any]:
        """Check Redis health."""
        start = time.time()
        healthy = self.ping()
        return {
            "status": "healthy" if healthy else "unhealthy",
            "response_time_ms": round((time.time() - start) * 1000, 2),
            "url": self.redis_url.split("@")[-1]
        }
