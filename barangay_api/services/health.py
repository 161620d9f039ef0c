# SPDX-License-Identifier: Apache-2.0

"""
Health Check Service

Reports the health of MongoDB, Redis and the message broker together with
basic process metrics.
"""

import os
import time
from typing import Any, Dict, List

import psutil
from opentelemetry import trace

from ..models.base import utc_now

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "barangay-api"
SERVICE_VERSION = "1.0.0"


class HealthCheckService:
    """Dependency health for ``/api/healthz``."""

    def __init__(self, mongodb_service, redis_service=None, amqp_service=None):
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.amqp_service = amqp_service

    def get_health(self) -> Dict[str, Any]:
        """
        Check every dependency.

        MongoDB is critical: the overall status is ``unhealthy`` without it.
        Redis and the broker only degrade the service.
        """
        with tracer.start_as_current_span("health.check") as span:
            start_time = time.time()

            dependencies = {
                "mongodb": self._check_mongodb(),
                "redis": self._check_redis(),
                "amqp": self._check_amqp(),
            }
            overall_status = self.determine_overall_status(
                dependencies["mongodb"]["status"],
                [dependencies["redis"]["status"], dependencies["amqp"]["status"]]
            )
            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": dependencies["mongodb"]["status"],
                "health.redis_status": dependencies["redis"]["status"],
                "health.amqp_status": dependencies["amqp"]["status"]
            })

            return {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": utc_now().isoformat(),
                "response_time_ms": response_time_ms,
                "dependencies": dependencies,
                "system_metrics": self._get_system_metrics()
            }

    def _check_mongodb(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.mongodb_check") as span:
            start_time = time.time()
            result = self.mongodb_service.health_check()
            result["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            span.set_attribute("mongodb.status", result["status"])
            return result

    def _check_redis(self) -> Dict[str, Any]:
        if self.redis_service is None:
            return {"status": "not_configured"}
        with tracer.start_as_current_span("health.redis_check") as span:
            result = self.redis_service.health_check()
            span.set_attribute("redis.status", result["status"])
            return result

    def _check_amqp(self) -> Dict[str, Any]:
        if self.amqp_service is None:
            return {"status": "not_configured"}
        with tracer.start_as_current_span("health.amqp_check") as span:
            start_time = time.time()
            healthy = self.amqp_service.health_check()
            status = "healthy" if healthy else "unhealthy"
            span.set_attribute("amqp.status", status)
            return {
                "status": status,
                "response_time_ms": round((time.time() - start_time) * 1000, 2)
            }

    def _get_system_metrics(self) -> Dict[str, Any]:
        """Basic process and host metrics."""
        try:
            memory = psutil.virtual_memory()
            process = psutil.Process(os.getpid())
            return {
                "cpu_percent": psutil.cpu_percent(interval=None),
                "memory_percent": memory.percent,
                "process_memory_mb": round(process.memory_info().rss / 1024 / 1024, 2),
                "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
            }
        except psutil.Error as e:
            return {"error": f"Failed to collect system metrics: {str(e)}"}

    @staticmethod
    def determine_overall_status(critical_status: str, optional_statuses: List[str]) -> str:
        if critical_status != "healthy":
            return "unhealthy"
        if all(status in ("healthy", "not_configured") for status in optional_statuses):
            return "healthy"
        return "degraded"
