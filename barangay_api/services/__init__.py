# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage, messaging and workflow orchestration.
"""

from .mongodb import MongoDBService, DuplicateDocumentError, get_mongodb_service, close_mongodb_connection
from .amqp import AMQPService, AMQPConfig, PublishResult, create_amqp_service
from .redis import RedisService, LockTimeoutError

__all__ = [
    "MongoDBService",
    "DuplicateDocumentError",
    "get_mongodb_service",
    "close_mongodb_connection",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "create_amqp_service",
    "RedisService",
    "LockTimeoutError"
]
