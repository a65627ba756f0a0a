# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB persistence gateway with soft deletes, pagination and units of work.
"""

import os
import logging
from typing import List, Dict, Optional, Any, Callable, Tuple, TypeVar
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError,
    PyMongoError
)
from bson import ObjectId
from bson.errors import InvalidId

from ..models.base import utcnow
from ..domain.errors import ConflictError, DuplicateError
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

T = TypeVar('T')

RESCUE_REQUESTS = "rescue_requests"
RESCUE_TEAMS = "rescue_teams"
USERS = "users"


class PaginationResult:
    """Result container for paginated queries."""

    def __init__(self, items: List[Dict], total: int, page: int, page_size: int):
        self.items = items
        self.total = total
        self.page = page
        self.page_size = page_size
        self.total_pages = (total + page_size - 1) // page_size
        self.has_next = page < self.total_pages
        self.has_prev = page > 1


class MongoDBService:
    """MongoDB service with soft-delete aware CRUD and transactional units of work."""

    def __init__(self, connection_string: str = None, database_name: str = None,
                 client: MongoClient = None, transactions_enabled: bool = None):
        """
        Initialize MongoDB service.

        Args:
            connection_string: MongoDB URI (defaults to ``MONGODB_URI``)
            database_name: Database name (defaults to ``MONGODB_DATABASE``)
            client: Pre-built client; skips lazy connection when given
            transactions_enabled: Use server transactions for units of work.
                Requires a replica set; defaults to ``MONGODB_TRANSACTIONS``.
        """
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/rescue_coordination_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'rescue_coordination_dev')
        if transactions_enabled is None:
            transactions_enabled = os.getenv('MONGODB_TRANSACTIONS', 'false').lower() == 'true'
        self.transactions_enabled = transactions_enabled
        self._client: Optional[MongoClient] = client
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(
            f"MongoDB service initialized for database: {self.database_name}",
            extra={"transactions_enabled": self.transactions_enabled}
        )

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
                    retryReads=True
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
        except PyMongoError as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    # Helpers

    @staticmethod
    def _to_object_id(doc_id: str) -> Optional[ObjectId]:
        """Convert a string ID to ObjectId; None when malformed."""
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            return None

    @staticmethod
    def _build_query(filters: Dict = None, include_deleted: bool = False) -> Dict:
        """Build query with optional filters, excluding soft-deleted records by default."""
        query = {}
        if not include_deleted:
            query["deleted_at"] = None
        if filters:
            query.update(filters)
        return query

    @staticmethod
    def _serialize(document: Optional[Dict]) -> Optional[Dict]:
        """Expose ``_id`` as string ``id``."""
        if document is None:
            return None
        if "_id" in document:
            document["id"] = str(document.pop("_id"))
        return document

    @staticmethod
    def _session_kwargs(session) -> Dict[str, Any]:
        return {"session": session} if session is not None else {}

    @staticmethod
    def _sort_spec(sort_by: str, sort_order: int) -> List[Tuple[str, int]]:
        # _id breaks ties between documents created within the same millisecond
        return [(sort_by, sort_order), ("_id", sort_order)]

    # CRUD Operations

    def create(self, collection: str, document: Dict, session=None) -> Dict:
        """Insert a document, stamping timestamps. Returns the stored document with ``id``."""
        document = dict(document)
        now = utcnow()
        document.setdefault("created_at", now)
        document.setdefault("updated_at", now)
        document.setdefault("deleted_at", None)

        doc_id = document.pop("id", None)
        document["_id"] = self._to_object_id(doc_id) if doc_id else ObjectId()
        if document["_id"] is None:
            raise ValueError(f"Invalid ObjectId format: {doc_id}")

        try:
            self.get_collection(collection).insert_one(document, **self._session_kwargs(session))
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key error in {collection}: {e}")
            raise DuplicateError("Document with this identifier already exists") from e

        logger.info(f"Created document in {collection}: {document['_id']}")
        return self._serialize(document)

    def find_one(self, collection: str, doc_id: str, include_deleted: bool = False,
                 session=None) -> Optional[Dict]:
        """Find a single document by ID."""
        object_id = self._to_object_id(doc_id)
        if object_id is None:
            logger.debug(f"Invalid document ID {doc_id} for {collection}")
            return None

        query = self._build_query({"_id": object_id}, include_deleted)
        document = self.get_collection(collection).find_one(query, **self._session_kwargs(session))
        return self._serialize(document)

    def find_one_by(self, collection: str, filters: Dict, include_deleted: bool = False) -> Optional[Dict]:
        """Find a single document matching filters."""
        query = self._build_query(filters, include_deleted)
        return self._serialize(self.get_collection(collection).find_one(query))

    def find(self, collection: str, filters: Dict = None, sort_by: str = "created_at",
             sort_order: int = DESCENDING, include_deleted: bool = False) -> List[Dict]:
        """Find all matching documents in a stable order."""
        query = self._build_query(filters, include_deleted)
        cursor = self.get_collection(collection).find(query).sort(self._sort_spec(sort_by, sort_order))
        documents = [self._serialize(doc) for doc in cursor]

        logger.debug(f"Found {len(documents)} documents in {collection}")
        return documents

    def paginate(self, collection: str, page: int = 1, page_size: int = 20,
                 filters: Dict = None, sort_by: str = "created_at", sort_order: int = DESCENDING,
                 include_deleted: bool = False) -> PaginationResult:
        """Paginate documents with sorting and filtering."""
        query = self._build_query(filters, include_deleted)
        collection_obj = self.get_collection(collection)

        skip = (page - 1) * page_size
        total = collection_obj.count_documents(query)

        cursor = (
            collection_obj.find(query)
            .sort(self._sort_spec(sort_by, sort_order))
            .skip(skip)
            .limit(page_size)
        )
        documents = [self._serialize(doc) for doc in cursor]

        logger.debug(f"Paginated {len(documents)} documents from {collection} (page {page})")
        return PaginationResult(documents, total, page, page_size)

    def update(self, collection: str, doc_id: str, updates: Dict, expected: Dict = None,
               session=None) -> bool:
        """
        Update a non-deleted document by ID.

        Args:
            expected: Extra field values the document must currently hold;
                the update is skipped when they do not match

        Returns:
            True if a document matched
        """
        object_id = self._to_object_id(doc_id)
        if object_id is None:
            return False

        query = self._build_query({"_id": object_id})
        if expected:
            query.update(expected)

        updates = dict(updates)
        updates.setdefault("updated_at", utcnow())

        try:
            result = self.get_collection(collection).update_one(
                query, {"$set": updates}, **self._session_kwargs(session)
            )
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key error updating {doc_id} in {collection}: {e}")
            raise DuplicateError("Document with this identifier already exists") from e

        if result.matched_count > 0:
            logger.info(f"Updated document {doc_id} in {collection}")
            return True

        logger.warning(f"No document updated for {doc_id} in {collection}", extra={"expected": expected})
        return False

    def soft_delete(self, collection: str, doc_id: str, expected: Dict = None, session=None) -> bool:
        """Soft delete a document by setting its ``deleted_at`` timestamp."""
        now = utcnow()
        return self.update(
            collection, doc_id, {"deleted_at": now, "updated_at": now},
            expected=expected, session=session
        )

    def count(self, collection: str, filters: Dict = None, include_deleted: bool = False) -> int:
        """Count documents with optional filters."""
        query = self._build_query(filters, include_deleted)
        return self.get_collection(collection).count_documents(query)

    def count_by_group(self, collection: str, field: str, filters: Dict = None) -> List[Dict[str, Any]]:
        """Count non-deleted documents grouped by ``field``."""
        pipeline = [
            {"$match": self._build_query(filters)},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"_id": ASCENDING}}
        ]
        results = list(self.get_collection(collection).aggregate(pipeline))

        logger.debug(f"Grouped {collection} by {field}: {len(results)} groups")
        return [{field: row["_id"], "count": row["count"]} for row in results]

    # Units of work

    def with_transaction(self, fn: Callable[[UnitOfWork], T]) -> T:
        """
        Run ``fn`` with a unit of work whose writes commit or fail together.

        Any exception raised by ``fn`` aborts the transaction (or replays the
        unit's compensating writes) and propagates to the caller unchanged.
        A server-side write conflict surfaces as ConflictError.
        """
        if not self.transactions_enabled:
            unit = UnitOfWork(self)
            try:
                return fn(unit)
            except Exception:
                logger.warning("Unit of work failed, rolling back recorded writes")
                unit.rollback()
                raise

        try:
            with self.client.start_session() as session:
                with session.start_transaction():
                    return fn(UnitOfWork(self, session))
        except PyMongoError as e:
            if e.has_error_label("TransientTransactionError"):
                logger.warning(f"Transaction aborted by concurrent write: {e}")
                raise ConflictError("Concurrent update detected, please retry") from e
            raise

    # Index Management

    def create_indexes(self) -> None:
        """Create indexes for all collections."""
        logger.info("Creating MongoDB indexes...")

        requests = self.get_collection(RESCUE_REQUESTS)
        requests.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
        requests.create_index([("category", ASCENDING)])
        requests.create_index([("province_city", ASCENDING)])
        requests.create_index([("user_id", ASCENDING)])
        requests.create_index([("assigned_team_id", ASCENDING), ("status", ASCENDING)])
        requests.create_index([("deleted_at", ASCENDING), ("created_at", DESCENDING)])

        teams = self.get_collection(RESCUE_TEAMS)
        # Names are unique among live teams only
        teams.create_index(
            [("name", ASCENDING)],
            unique=True,
            partialFilterExpression={"deleted_at": {"$type": "null"}}
        )
        teams.create_index([("status", ASCENDING), ("created_at", ASCENDING)])
        teams.create_index([("province_city", ASCENDING), ("specialization", ASCENDING)])

        users = self.get_collection(USERS)
        users.create_index([("email", ASCENDING)], unique=True)

        logger.info("MongoDB indexes created successfully")
