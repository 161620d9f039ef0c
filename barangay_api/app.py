# SPDX-License-Identifier: Apache-2.0

"""
Barangay Records API - Flask Application Entry Point

Builds the Flask application with OpenAPI 3.0 support, wires services and
middleware, and registers the approval and issuance workflow endpoints.
"""

import os

from flask import jsonify
from flask_openapi3 import Info, OpenAPI, Tag

from .middleware.auth import AuthMiddleware
from .middleware.error_handler import ErrorHandlerMiddleware
from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .routes.approvals import approvals_bp
from .routes.blotters import blotters_bp
from .routes.certificates import certificates_bp
from .routes.incidents import incidents_bp
from .routes.issued_certificates import issued_certificates_bp
from .routes.officials import officials_bp
from .routes.signatures import signatures_bp
from .services.amqp import create_amqp_service
from .services.approvals import ApprovalQueueService
from .services.audit import AuditService
from .services.auth import AuthService
from .services.health import HealthCheckService
from .services.issuance import CertificateIssuanceService, IssuanceConfig
from .services.mongodb import MongoDBService
from .services.notifications import NotificationSink
from .services.officials import OfficialService, UniquenessGuard
from .services.pdf import PdfRenderer
from .services.records import RecordService, build_record_sources
from .services.redis import RedisService
from .services.signatures import SignatureLookup
from .services.workflow import WorkflowService
from .utils.request import ResponseBuilder

# OpenAPI info
info = Info(
    title="Barangay Records API",
    version="1.0.0",
    description="Approval queue and certificate issuance for barangay records"
)

health_tag = Tag(name="Health", description="System health and status")


def load_config() -> dict:
    """Read application configuration from the environment."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/barangay_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'barangay_dev'),
        'MONGODB_TRANSACTIONS': os.getenv('MONGODB_TRANSACTIONS', 'true').lower() == 'true',
        'REDIS_URL': os.getenv('REDIS_URL', 'redis://localhost:6379'),
        'AMQP_URL': os.getenv('AMQP_URL', ''),
        'JWT_ACCESS_TOKEN_EXPIRES': int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', '900')),
        'PENDING_COUNT_CACHE_TTL': int(os.getenv('PENDING_COUNT_CACHE_TTL', '60')),
        'OTEL_ENABLED': os.getenv('OTEL_ENABLED', 'true').lower() == 'true',
    }


def create_app(config: dict = None, **services) -> OpenAPI:
    """
    Application factory.

    Args:
        config: Values overriding the environment configuration
        **services: Pre-built services replacing the defaults (for example
            ``mongodb_service``, ``redis_service``, ``amqp_service``,
            ``auth_service``, ``signature_lookup``, ``pdf_renderer``,
            ``issuance_config``)

    Returns:
        Configured Flask application
    """
    setup_observability()

    app = OpenAPI(__name__, info=info)
    app.config.update(load_config())
    app.config.update(config or {})

    add_observability_middleware(app)
    ErrorHandlerMiddleware(app)

    def service(name, factory):
        return services[name] if name in services else factory()

    mongodb_service = service('mongodb_service', lambda: MongoDBService(
        app.config['MONGODB_URI'],
        app.config['MONGODB_DATABASE'],
        app.config['MONGODB_TRANSACTIONS']
    ))
    redis_service = service('redis_service', lambda: RedisService(app.config['REDIS_URL']))
    amqp_service = service(
        'amqp_service', lambda: create_amqp_service() if app.config['AMQP_URL'] else None
    )
    auth_service = service('auth_service', lambda: AuthService(
        access_token_expire_minutes=app.config['JWT_ACCESS_TOKEN_EXPIRES'] // 60
    ))

    audit_service = AuditService(mongodb_service)
    notification_sink = service('notification_sink', lambda: NotificationSink(mongodb_service, amqp_service))
    signature_lookup = service('signature_lookup', lambda: SignatureLookup(mongodb_service))
    sources = build_record_sources(mongodb_service)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.redis_service = redis_service
    app.amqp_service = amqp_service
    app.auth_service = auth_service
    app.audit_service = audit_service
    app.notification_sink = notification_sink
    app.signature_lookup = signature_lookup
    app.auth_middleware = AuthMiddleware(auth_service, redis_service)

    app.record_service = RecordService(
        mongodb_service, sources, audit_service, notification_sink, redis_service
    )
    app.approval_queue_service = ApprovalQueueService(
        sources, redis_service, app.config['PENDING_COUNT_CACHE_TTL']
    )
    app.workflow_service = WorkflowService(
        mongodb_service, sources, signature_lookup, audit_service, notification_sink, redis_service
    )
    app.issuance_service = CertificateIssuanceService(
        mongodb_service,
        sources,
        signature_lookup,
        audit_service,
        notification_sink,
        service('issuance_config', IssuanceConfig.from_env),
        service('pdf_renderer', lambda: PdfRenderer(amqp_service))
    )
    app.official_service = OfficialService(
        mongodb_service,
        UniquenessGuard(mongodb_service, redis_service),
        audit_service
    )
    app.health_service = HealthCheckService(mongodb_service, redis_service, amqp_service)

    # Register routes
    app.register_api(approvals_bp)
    app.register_api(certificates_bp)
    app.register_api(blotters_bp)
    app.register_api(incidents_bp)
    app.register_api(issued_certificates_bp)
    app.register_api(officials_bp)
    app.register_api(signatures_bp)

    @app.get('/api/healthz', tags=[health_tag])
    def health_check():
        """Dependency health; 503 when MongoDB is unavailable."""
        health_data = app.health_service.get_health()
        status_code = 503 if health_data["status"] == "unhealthy" else 200
        body, status, _ = ResponseBuilder.success(
            data=health_data,
            message=f"Service is {health_data['status']}",
            status_code=status_code
        )
        if status_code == 503:
            body["success"] = False
        return jsonify(body), status

    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.mongodb_service.create_indexes()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
