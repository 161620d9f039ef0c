# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with transactional operations and connection pooling.
"""

import os
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from pymongo import MongoClient, ASCENDING, ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError,
)
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from ..models.base import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sort = List[Tuple[str, int]]


class DuplicateDocumentError(ValueError):
    """Raised when a write violates a unique index."""

    def __init__(self, collection: str, key: Optional[Dict[str, Any]] = None):
        super().__init__(f"Document with this identifier already exists in {collection}")
        self.collection = collection
        self.key = key or {}


def _public(document: Optional[Dict]) -> Optional[Dict]:
    """Expose ``_id`` as ``id`` for callers."""
    if document is not None and "_id" in document:
        document["id"] = str(document.pop("_id"))
    return document


class MongoDBService:
    """MongoDB service with soft-delete aware CRUD, counters and transactions."""

    def __init__(self, connection_string: str = None, database_name: str = None,
                 transactions_enabled: bool = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/barangay_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'barangay_dev')
        if transactions_enabled is None:
            transactions_enabled = os.getenv('MONGODB_TRANSACTIONS', 'true').lower() == 'true'
        self.transactions_enabled = transactions_enabled
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                self._client = None
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'transactions_enabled': self.transactions_enabled
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    def _build_query(self, filters: Dict = None, include_deleted: bool = False) -> Dict:
        """Build query excluding soft-deleted documents by default."""
        query = {}
        if not include_deleted:
            query["deleted_at"] = None
        if filters:
            query.update(filters)
        return query

    # Transactions

    def run_in_transaction(self, callback: Callable[[Optional[ClientSession]], T]) -> T:
        """
        Run ``callback(session)`` as one atomic unit.

        With transactions enabled the callback runs inside a snapshot
        transaction that the driver retries on transient write conflicts, so
        the callback must only perform database work. Without transactions
        (standalone development servers) it runs with ``session=None``.
        """
        if not self.transactions_enabled:
            return callback(None)

        with self.client.start_session() as session:
            return session.with_transaction(
                callback,
                read_concern=ReadConcern("snapshot"),
                write_concern=WriteConcern("majority")
            )

    # CRUD Operations

    def create(self, collection: str, document: Dict, session: ClientSession = None) -> str:
        """Insert a document that already carries its ``_id``."""
        try:
            collection_obj = self.get_collection(collection)
            result = collection_obj.insert_one(document, session=session)

            logger.info(f"Created document in {collection}: {result.inserted_id}")
            return str(result.inserted_id)

        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key error in {collection}: {e}")
            raise DuplicateDocumentError(collection, (e.details or {}).get("keyValue"))

    def find(self, collection: str, filters: Dict = None, sort: Sort = None,
             include_deleted: bool = False, session: ClientSession = None) -> List[Dict]:
        """Find documents with optional filters and sort order."""
        query = self._build_query(filters, include_deleted)
        cursor = self.get_collection(collection).find(query, session=session)
        if sort:
            cursor = cursor.sort(sort)

        documents = [_public(doc) for doc in cursor]
        logger.debug(f"Found {len(documents)} documents in {collection}")
        return documents

    def find_one(self, collection: str, doc_id: str, include_deleted: bool = False,
                 session: ClientSession = None) -> Optional[Dict]:
        """Find a single document by ID."""
        return self.find_one_by(collection, {"_id": doc_id}, include_deleted, session)

    def find_one_by(self, collection: str, filters: Dict, include_deleted: bool = False,
                    session: ClientSession = None) -> Optional[Dict]:
        """Find a single document matching ``filters``."""
        query = self._build_query(filters, include_deleted)
        document = self.get_collection(collection).find_one(query, session=session)
        if document is None:
            logger.debug(f"No document in {collection} matched {filters}")
        return _public(document)

    def update(self, collection: str, doc_id: str, updates: Dict, user_id: str,
               expected: Dict = None, session: ClientSession = None) -> bool:
        """
        Update a document by ID.

        Args:
            collection: Collection name
            doc_id: Document ID
            updates: Fields to set
            user_id: User performing the update
            expected: Extra conditions the stored document must still satisfy
                (compare-and-set); the update is skipped when they do not hold
            session: Transaction session

        Returns:
            True when a document matched and was updated
        """
        query = self._build_query({"_id": doc_id})
        if expected:
            query.update(expected)

        updates = dict(updates)
        updates["updated_at"] = utc_now()
        updates["updated_by"] = user_id

        try:
            result = self.get_collection(collection).update_one(
                query, {"$set": updates}, session=session
            )
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key error updating {doc_id} in {collection}: {e}")
            raise DuplicateDocumentError(collection, (e.details or {}).get("keyValue"))

        if result.matched_count > 0:
            logger.info(f"Updated document {doc_id} in {collection}")
            return True

        logger.warning(f"No document updated for {doc_id} in {collection}")
        return False

    def upsert(self, collection: str, doc_id: str, updates: Dict, user_id: str,
               session: ClientSession = None) -> None:
        """Set fields on a document, creating it when absent."""
        now = utc_now()
        updates = dict(updates)
        updates["updated_at"] = now
        updates["updated_by"] = user_id
        self.get_collection(collection).update_one(
            {"_id": doc_id},
            {"$set": updates, "$setOnInsert": {"created_at": now, "created_by": user_id}},
            upsert=True,
            session=session
        )
        logger.info(f"Upserted document {doc_id} in {collection}")

    def soft_delete(self, collection: str, doc_id: str, user_id: str,
                    session: ClientSession = None) -> bool:
        """Soft delete a document by setting deleted_at timestamp."""
        return self.update(collection, doc_id, {"deleted_at": utc_now()}, user_id, session=session)

    def count(self, collection: str, filters: Dict = None, include_deleted: bool = False,
              session: ClientSession = None) -> int:
        """Count documents with optional filters."""
        query = self._build_query(filters, include_deleted)
        count = self.get_collection(collection).count_documents(query, session=session)
        logger.debug(f"Counted {count} documents in {collection}")
        return count

    def next_sequence(self, counter_key: str, session: ClientSession = None) -> int:
        """
        Atomically allocate the next value of a named counter.

        ``$inc`` on a single document is atomic, so concurrent callers always
        receive distinct values; inside a transaction the increment commits
        or rolls back together with the caller's other writes.
        """
        counter = self.get_collection("counters").find_one_and_update(
            {"_id": counter_key},
            {"$inc": {"seq": 1}, "$set": {"updated_at": utc_now()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session
        )
        return int(counter["seq"])

    # Index Management

    def create_indexes(self) -> None:
        """Create indexes, including the unique constraints the workflow relies on."""
        try:
            logger.info("Creating MongoDB indexes...")

            for name in ("certificate_requests", "blotter_cases", "incident_reports"):
                records = self.get_collection(name)
                records.create_index([("status", ASCENDING), ("deleted_at", ASCENDING)])

            self.get_collection("certificate_requests").create_index(
                [("status", ASCENDING), ("requested_at", ASCENDING)]
            )
            self.get_collection("blotter_cases").create_index("case_number", unique=True)

            issued = self.get_collection("issued_certificates")
            issued.create_index("certificate_number", unique=True)
            issued.create_index("source_request_id", unique=True)

            # At most one active holder per singleton role key
            officials = self.get_collection("officials")
            officials.create_index(
                "role_key",
                unique=True,
                name="unique_active_role_key",
                partialFilterExpression={"active": True, "role_key": {"$type": "string"}}
            )

            users = self.get_collection("users")
            users.create_index("role")

            events = self.get_collection("domain_events")
            events.create_index([("entity", ASCENDING), ("entity_id", ASCENDING)])
            events.create_index("occurred_at")

            audit_logs = self.get_collection("audit_logs")
            audit_logs.create_index([("entity", ASCENDING), ("entity_id", ASCENDING)])
            audit_logs.create_index("trace_id")

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
