#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Create the MongoDB indexes the workflow relies on.

The unique indexes on certificate numbers, source requests, blotter case
numbers and active singleton role keys must exist before the API serves
traffic. Run with ``python -m barangay_api.scripts.create_indexes``.
"""

import sys
import logging

from ..services.mongodb import get_mongodb_service, close_mongodb_connection

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main(mongodb_service=None) -> int:
    """Create indexes; returns the process exit code."""
    owns_connection = mongodb_service is None
    mongodb_service = mongodb_service or get_mongodb_service()
    try:
        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            return 1

        logger.info(f"Connected to MongoDB database {health['database']}")
        if not health.get('transactions_enabled'):
            logger.warning(
                "Transactions are disabled; a failed release can leave a gap in certificate numbers"
            )

        mongodb_service.create_indexes()
        logger.info("MongoDB indexes created successfully")
        return 0

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        return 1
    finally:
        if owns_connection:
            close_mongodb_connection()


if __name__ == "__main__":
    sys.exit(main())
