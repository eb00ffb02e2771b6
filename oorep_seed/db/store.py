"""
Knowledge-base store contract.

The loaders talk to the target store only through this small, MongoDB-shaped
interface so the same pipeline can run against MongoDB or the in-memory
store used for dry runs.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from bson import ObjectId
from loguru import logger

if TYPE_CHECKING:
    from config import Settings

RUBRICS = "rubrics"
REMEDIES = "remedies"
MAPPINGS = "rubricremedies"

# Unique natural keys per collection
NATURAL_KEYS: dict[str, tuple[str, ...]] = {
    RUBRICS: ("rubricText", "repertoryType"),
    REMEDIES: ("name", "modality"),
    MAPPINGS: ("rubricId", "remedyId", "repertoryType"),
}


class UpsertOutcome(str, Enum):
    INSERTED = "inserted"
    MODIFIED = "modified"
    MATCHED = "matched"  # existed with identical values


@dataclass
class UpsertOperation:
    """One keyed upsert: ``values`` are always set, ``on_insert`` only on creation."""

    key: dict[str, Any]
    values: dict[str, Any]
    on_insert: dict[str, Any] = field(default_factory=dict)


@dataclass
class BulkUpsertResult:
    upserted: int = 0
    modified: int = 0
    matched: int = 0


@runtime_checkable
class KnowledgeStore(Protocol):
    """Operations the seeding pipeline needs from the target store."""

    def connect(self) -> None:
        """Acquire the connection; raises StoreUnavailableError."""
        ...

    def close(self) -> None:
        ...

    def ensure_indexes(self) -> None:
        ...

    def find_id(self, collection: str, key: dict[str, Any]) -> ObjectId | None:
        ...

    def insert(self, collection: str, document: dict[str, Any]) -> ObjectId:
        """Insert and return the new id; raises DuplicateRecordError."""
        ...

    def upsert(
        self,
        collection: str,
        key: dict[str, Any],
        values: dict[str, Any],
        on_insert: dict[str, Any] | None = None,
    ) -> UpsertOutcome:
        ...

    def bulk_upsert(
        self, collection: str, operations: list[UpsertOperation]
    ) -> BulkUpsertResult:
        """Unordered bulk upsert; raises BulkWriteFailedError."""
        ...

    def count(self, collection: str, filter: dict[str, Any] | None = None) -> int:
        ...

    def find(
        self, collection: str, filter: dict[str, Any] | None = None, limit: int = 0
    ) -> list[dict[str, Any]]:
        ...

    def delete_many(self, collection: str, filter: dict[str, Any] | None = None) -> int:
        ...

    def count_orphans(self, collection: str, field: str, target_collection: str) -> int:
        """Count documents whose ``field`` references no ``_id`` in the target."""
        ...


@contextmanager
def open_store(settings: Settings, dry_run: bool = False) -> Iterator[KnowledgeStore]:
    """
    Scoped store acquisition.

    Connects, ensures the natural-key indexes and always closes the
    connection, whether the body finishes, fails or is interrupted.
    """
    from .memory_store import MemoryKnowledgeStore
    from .mongo_store import MongoKnowledgeStore

    store: KnowledgeStore
    if dry_run:
        logger.info("Dry run: loading into an in-memory store")
        store = MemoryKnowledgeStore()
    else:
        store = MongoKnowledgeStore.from_settings(settings)

    try:
        store.connect()
        store.ensure_indexes()
        yield store
    finally:
        store.close()
