"""Target knowledge-base stores."""

from .memory_store import MemoryKnowledgeStore
from .mongo_store import MongoKnowledgeStore
from .store import (
    MAPPINGS,
    NATURAL_KEYS,
    REMEDIES,
    RUBRICS,
    BulkUpsertResult,
    KnowledgeStore,
    UpsertOperation,
    UpsertOutcome,
    open_store,
)

__all__ = [
    "MAPPINGS",
    "NATURAL_KEYS",
    "REMEDIES",
    "RUBRICS",
    "BulkUpsertResult",
    "KnowledgeStore",
    "MemoryKnowledgeStore",
    "MongoKnowledgeStore",
    "UpsertOperation",
    "UpsertOutcome",
    "open_store",
]
