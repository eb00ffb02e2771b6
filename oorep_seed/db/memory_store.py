"""
In-memory knowledge store.

Used for dry runs and tests. It enforces the same unique natural keys as the
MongoDB indexes, so the loaders see identical duplicate and upsert behavior.
"""

from __future__ import annotations

import copy
from typing import Any

from bson import ObjectId
from loguru import logger

from ..exceptions import DuplicateRecordError
from .store import NATURAL_KEYS, BulkUpsertResult, UpsertOperation, UpsertOutcome


def _matches(document: dict[str, Any], filter: dict[str, Any]) -> bool:
    """Equality and ``$in`` matching, which is all the pipeline queries use."""
    for name, expected in filter.items():
        actual = document.get(name)
        if isinstance(expected, dict) and "$in" in expected:
            if actual not in expected["$in"]:
                return False
        elif actual != expected:
            return False
    return True


class MemoryKnowledgeStore:
    """Dict-backed KnowledgeStore."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[ObjectId, dict[str, Any]]] = {}
        self._keys: dict[str, dict[tuple, ObjectId]] = {}
        self.connected = False

    def connect(self) -> None:
        self.connected = True

    def close(self) -> None:
        self.connected = False

    def ensure_indexes(self) -> None:
        for collection in NATURAL_KEYS:
            self._collection(collection)

    # ========================================
    # Internals
    # ========================================

    def _collection(self, name: str) -> dict[ObjectId, dict[str, Any]]:
        if name not in self.collections:
            self.collections[name] = {}
            self._keys[name] = {}
        return self.collections[name]

    @staticmethod
    def _key_of(collection: str, document: dict[str, Any]) -> tuple | None:
        fields = NATURAL_KEYS.get(collection)
        if not fields:
            return None
        return tuple(document.get(f) for f in fields)

    def _lookup(self, collection: str, filter: dict[str, Any]) -> dict[str, Any] | None:
        docs = self._collection(collection)
        key = self._key_of(collection, filter)
        fields = NATURAL_KEYS.get(collection, ())
        if key is not None and set(filter) == set(fields):
            oid = self._keys[collection].get(key)
            return docs.get(oid) if oid is not None else None
        for doc in docs.values():
            if _matches(doc, filter):
                return doc
        return None

    # ========================================
    # Reads
    # ========================================

    def find_id(self, collection: str, key: dict[str, Any]) -> ObjectId | None:
        doc = self._lookup(collection, key)
        return doc["_id"] if doc else None

    def count(self, collection: str, filter: dict[str, Any] | None = None) -> int:
        docs = self._collection(collection).values()
        if not filter:
            return len(docs)
        return sum(1 for doc in docs if _matches(doc, filter))

    def find(
        self, collection: str, filter: dict[str, Any] | None = None, limit: int = 0
    ) -> list[dict[str, Any]]:
        results = []
        for doc in self._collection(collection).values():
            if filter and not _matches(doc, filter):
                continue
            results.append(copy.deepcopy(doc))
            if limit and len(results) >= limit:
                break
        return results

    def count_orphans(self, collection: str, field: str, target_collection: str) -> int:
        targets = self._collection(target_collection)
        return sum(
            1 for doc in self._collection(collection).values() if doc.get(field) not in targets
        )

    # ========================================
    # Writes
    # ========================================

    def insert(self, collection: str, document: dict[str, Any]) -> ObjectId:
        docs = self._collection(collection)
        key = self._key_of(collection, document)
        if key is not None and key in self._keys[collection]:
            fields = NATURAL_KEYS[collection]
            raise DuplicateRecordError(collection, dict(zip(fields, key)))

        oid = document.get("_id") or ObjectId()
        stored = copy.deepcopy(document)
        stored["_id"] = oid
        docs[oid] = stored
        if key is not None:
            self._keys[collection][key] = oid
        return oid

    def upsert(
        self,
        collection: str,
        key: dict[str, Any],
        values: dict[str, Any],
        on_insert: dict[str, Any] | None = None,
    ) -> UpsertOutcome:
        existing = self._lookup(collection, key)
        if existing is None:
            self.insert(collection, {**key, **(on_insert or {}), **values})
            return UpsertOutcome.INSERTED

        changed = {k: v for k, v in values.items() if existing.get(k) != v}
        if not changed:
            return UpsertOutcome.MATCHED
        existing.update(copy.deepcopy(changed))
        return UpsertOutcome.MODIFIED

    def bulk_upsert(
        self, collection: str, operations: list[UpsertOperation]
    ) -> BulkUpsertResult:
        result = BulkUpsertResult()
        for op in operations:
            outcome = self.upsert(collection, op.key, op.values, op.on_insert)
            if outcome is UpsertOutcome.INSERTED:
                result.upserted += 1
            elif outcome is UpsertOutcome.MODIFIED:
                result.modified += 1
                result.matched += 1
            else:
                result.matched += 1
        return result

    def delete_many(self, collection: str, filter: dict[str, Any] | None = None) -> int:
        docs = self._collection(collection)
        doomed = [oid for oid, doc in docs.items() if not filter or _matches(doc, filter)]
        for oid in doomed:
            key = self._key_of(collection, docs.pop(oid))
            if key is not None:
                self._keys[collection].pop(key, None)
        if doomed:
            logger.debug("Deleted {} documents from {}", len(doomed), collection)
        return len(doomed)
