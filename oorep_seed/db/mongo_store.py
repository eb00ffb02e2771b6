"""
MongoDB knowledge store (pymongo).

Every round trip carries bounded timeouts and is retried with exponential
backoff on connection-level errors. Duplicate keys are reported as
DuplicateRecordError and never retried.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

from bson import ObjectId
from loguru import logger
from pymongo import ASCENDING, DESCENDING, MongoClient, UpdateOne
from pymongo.database import Database
from pymongo.errors import (
    BulkWriteError,
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    PyMongoError,
)

from ..exceptions import (
    BulkWriteFailedError,
    DuplicateRecordError,
    StoreError,
    StoreUnavailableError,
)
from ..retry import retry_call
from .store import (
    MAPPINGS,
    NATURAL_KEYS,
    REMEDIES,
    RUBRICS,
    BulkUpsertResult,
    UpsertOperation,
    UpsertOutcome,
)

if TYPE_CHECKING:
    from config import Settings

T = TypeVar("T")

DEFAULT_DATABASE = "homeo_clinic"

# Secondary indexes used by the clinic application's read paths
SECONDARY_INDEXES: dict[str, list[list[tuple[str, int]]]] = {
    RUBRICS: [
        [("repertoryType", ASCENDING), ("chapter", ASCENDING)],
        [("modality", ASCENDING), ("isGlobal", ASCENDING)],
    ],
    REMEDIES: [
        [("category", ASCENDING), ("modality", ASCENDING)],
    ],
    MAPPINGS: [
        [("remedyId", ASCENDING), ("grade", DESCENDING)],
        [("rubricId", ASCENDING), ("grade", DESCENDING)],
    ],
}


class MongoKnowledgeStore:
    """
    KnowledgeStore backed by a MongoDB database.

    Example:
        store = MongoKnowledgeStore("mongodb://localhost:27017/homeo_clinic")
        store.connect()
        ...
        store.close()
    """

    def __init__(
        self,
        uri: str,
        database: str | None = None,
        timeout_ms: int = 10000,
        retry_attempts: int = 3,
        retry_backoff: float = 0.5,
        client: MongoClient | None = None,
    ):
        self.uri = uri
        self.database_name = database
        self.timeout_ms = timeout_ms
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self._client = client
        self._db: Database | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> MongoKnowledgeStore:
        return cls(
            uri=settings.mongodb_uri,
            database=settings.mongodb_database,
            timeout_ms=settings.store_timeout_ms,
            retry_attempts=settings.retry_attempts,
            retry_backoff=settings.retry_backoff_seconds,
        )

    # ========================================
    # Connection lifetime
    # ========================================

    def connect(self) -> None:
        if self._client is None:
            self._client = MongoClient(
                self.uri,
                serverSelectionTimeoutMS=self.timeout_ms,
                connectTimeoutMS=self.timeout_ms,
                socketTimeoutMS=self.timeout_ms * 3,
            )
        if self.database_name:
            self._db = self._client[self.database_name]
        else:
            self._db = self._client.get_default_database(default=DEFAULT_DATABASE)

        try:
            self._call(lambda: self._client.admin.command("ping"), "MongoDB ping")
        except PyMongoError as exc:
            # e.g. authentication failure
            raise StoreUnavailableError(f"MongoDB rejected the connection: {exc}") from exc
        logger.info("Connected to MongoDB (database={})", self._db.name)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("Disconnected from MongoDB")

    @property
    def db(self) -> Database:
        if self._db is None:
            raise StoreUnavailableError("MongoDB store used before connect()")
        return self._db

    def _call(self, func: Callable[[], T], label: str) -> T:
        return retry_call(
            func,
            retry_on=(ConnectionFailure,),
            attempts=self.retry_attempts,
            backoff=self.retry_backoff,
            label=label,
            on_exhausted=lambda exc: StoreUnavailableError(f"MongoDB unavailable: {exc}"),
        )

    def _guarded(self, func: Callable[[], T], label: str) -> T:
        """Like _call, but server-side rejections become StoreError."""
        try:
            return self._call(func, label)
        except PyMongoError as exc:
            raise StoreError(f"MongoDB {label} failed: {exc}") from exc

    # ========================================
    # Schema
    # ========================================

    def ensure_indexes(self) -> None:
        """Create unique natural-key indexes and the read-path indexes."""
        for collection, fields in NATURAL_KEYS.items():
            self._create_index(collection, [(f, ASCENDING) for f in fields], unique=True)
        for collection, indexes in SECONDARY_INDEXES.items():
            for keys in indexes:
                self._create_index(collection, keys)

    def _create_index(self, collection: str, keys: list[tuple[str, int]], unique: bool = False) -> None:
        try:
            name = self._call(
                lambda: self.db[collection].create_index(keys, unique=unique),
                f"create index on {collection}",
            )
            logger.debug("Index ready: {}.{}", collection, name)
        except OperationFailure as exc:
            # Conflicting pre-existing index (e.g. created by the application)
            logger.warning("Could not create index {} on {}: {}", keys, collection, exc)

    # ========================================
    # Reads
    # ========================================

    def find_id(self, collection: str, key: dict[str, Any]) -> ObjectId | None:
        doc = self._guarded(
            lambda: self.db[collection].find_one(key, projection={"_id": 1}),
            f"find {collection}",
        )
        return doc["_id"] if doc else None

    def count(self, collection: str, filter: dict[str, Any] | None = None) -> int:
        return self._guarded(
            lambda: self.db[collection].count_documents(filter or {}),
            f"count {collection}",
        )

    def find(
        self, collection: str, filter: dict[str, Any] | None = None, limit: int = 0
    ) -> list[dict[str, Any]]:
        return self._guarded(
            lambda: list(self.db[collection].find(filter or {}, limit=limit)),
            f"find {collection}",
        )

    def count_orphans(self, collection: str, field: str, target_collection: str) -> int:
        pipeline = [
            {"$lookup": {
                "from": target_collection,
                "localField": field,
                "foreignField": "_id",
                "as": "_target",
            }},
            {"$match": {"_target": {"$size": 0}}},
            {"$count": "orphans"},
        ]
        result = self._guarded(
            lambda: list(self.db[collection].aggregate(pipeline, allowDiskUse=True)),
            f"orphan check {collection}.{field}",
        )
        return result[0]["orphans"] if result else 0

    # ========================================
    # Writes
    # ========================================

    def insert(self, collection: str, document: dict[str, Any]) -> ObjectId:
        try:
            result = self._call(
                lambda: self.db[collection].insert_one(dict(document)),
                f"insert {collection}",
            )
        except DuplicateKeyError as exc:
            key = {f: document.get(f) for f in NATURAL_KEYS.get(collection, ())}
            raise DuplicateRecordError(collection, key) from exc
        except PyMongoError as exc:
            raise StoreError(f"Insert into {collection} failed: {exc}") from exc
        return result.inserted_id

    def upsert(
        self,
        collection: str,
        key: dict[str, Any],
        values: dict[str, Any],
        on_insert: dict[str, Any] | None = None,
    ) -> UpsertOutcome:
        update = self._update_document(values, on_insert)
        try:
            result = self._call(
                lambda: self.db[collection].update_one(key, update, upsert=True),
                f"upsert {collection}",
            )
        except PyMongoError as exc:
            raise StoreError(f"Upsert into {collection} failed: {exc}") from exc

        if result.upserted_id is not None:
            return UpsertOutcome.INSERTED
        if result.modified_count:
            return UpsertOutcome.MODIFIED
        return UpsertOutcome.MATCHED

    def bulk_upsert(
        self, collection: str, operations: list[UpsertOperation]
    ) -> BulkUpsertResult:
        if not operations:
            return BulkUpsertResult()

        requests = [
            UpdateOne(op.key, self._update_document(op.values, op.on_insert), upsert=True)
            for op in operations
        ]
        try:
            result = self._call(
                lambda: self.db[collection].bulk_write(requests, ordered=False),
                f"bulk upsert {collection}",
            )
        except BulkWriteError as exc:
            write_errors = exc.details.get("writeErrors", [])
            raise BulkWriteFailedError(
                collection, f"{len(write_errors)} write errors", len(write_errors)
            ) from exc
        except PyMongoError as exc:
            raise BulkWriteFailedError(collection, str(exc)) from exc

        return BulkUpsertResult(
            upserted=result.upserted_count,
            modified=result.modified_count,
            matched=result.matched_count,
        )

    def delete_many(self, collection: str, filter: dict[str, Any] | None = None) -> int:
        result = self._guarded(
            lambda: self.db[collection].delete_many(filter or {}),
            f"delete {collection}",
        )
        return result.deleted_count

    @staticmethod
    def _update_document(values: dict[str, Any], on_insert: dict[str, Any] | None) -> dict[str, Any]:
        update: dict[str, Any] = {"$set": dict(values)}
        if on_insert:
            update["$setOnInsert"] = dict(on_insert)
        return update
