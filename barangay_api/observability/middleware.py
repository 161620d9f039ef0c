# SPDX-License-Identifier: Apache-2.0

"""
Observability Middleware

Flask instrumentation and per-request timing logs.
"""

import logging
import os
import time

from flask import Flask, g, request
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)


def add_observability_middleware(app: Flask) -> None:
    """Add OpenTelemetry instrumentation and request logging to the Flask app."""
    if os.getenv('OTEL_ENABLED', 'true').lower() == 'true':
        FlaskInstrumentor().instrument_app(app)

    slow_request_ms = float(os.getenv('SLOW_REQUEST_MS', '1000'))

    @app.before_request
    def start_request_timer():
        g.start_time = time.time()
        g.trace_id = None

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            g.trace_id = format(span_context.trace_id, "032x")

    @app.after_request
    def log_request(response):
        duration_ms = round((time.time() - g.get('start_time', time.time())) * 1000, 2)

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("http.duration_ms", duration_ms)

        fields = {
            "method": request.method,
            "path": request.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "remote_addr": request.remote_addr,
            "trace_id": g.get('trace_id')
        }
        if duration_ms >= slow_request_ms:
            logger.warning("Slow HTTP request", extra={"extra_fields": fields})
        else:
            logger.info("HTTP request completed", extra={"extra_fields": fields})

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id
        return response
