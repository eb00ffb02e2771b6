"""
Rubric and remedy loaders.

Each record is looked up by natural key and inserted only when absent. Both
outcomes register the internal id with the identity resolver, which is what
makes the mapping stage possible on a re-run against a populated store.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING, ClassVar, Union

from bson import ObjectId
from loguru import logger

from ...db.store import REMEDIES, RUBRICS
from ...exceptions import DuplicateRecordError, StoreError
from ..models import RemedyRecord, RubricRecord
from .base import BaseLoader, LoaderConfig, LoadResult, utc_now

if TYPE_CHECKING:
    from ...db.store import KnowledgeStore
    from ..identity import IdentityResolver, IdMap

KeyedRecord = Union[RubricRecord, RemedyRecord]


class NaturalKeyLoader(BaseLoader[KeyedRecord]):
    """Find-or-insert loader keyed on ``record.natural_key()``."""

    name: ClassVar[str] = "natural_key_loader"

    def __init__(
        self,
        store: KnowledgeStore,
        resolver: IdentityResolver,
        config: LoaderConfig | None = None,
    ):
        super().__init__(store, config)
        self.resolver = resolver

    @property
    @abstractmethod
    def id_map(self) -> IdMap:
        """Identity map this loader registers ids in."""

    def _process_batch(self, batch: Sequence[KeyedRecord]) -> LoadResult:
        result = LoadResult()
        for record in batch:
            try:
                self._load_one(record, result)
            except StoreError as exc:
                result.record_failure(f"{self.collection} {record.external_id}: {exc}")
        return result

    def _load_one(self, record: KeyedRecord, result: LoadResult) -> None:
        key = record.natural_key()

        existing = self.store.find_id(self.collection, key)
        if existing is not None:
            self._register(record, existing)
            result.skipped += 1
            return

        now = utc_now()
        document = {**record.to_document(), "createdAt": now, "updatedAt": now}
        try:
            internal_id = self.store.insert(self.collection, document)
        except DuplicateRecordError:
            # Someone else inserted the same key between lookup and insert
            internal_id = self.store.find_id(self.collection, key)
            if internal_id is None:
                raise
            logger.debug("{}: duplicate on insert resolved by re-lookup {}", self.name, key)
            self._register(record, internal_id)
            result.skipped += 1
            return

        self._register(record, internal_id)
        result.inserted += 1

    def _register(self, record: KeyedRecord, internal_id: ObjectId) -> None:
        record.internal_id = internal_id
        self.id_map.register(record.external_id, internal_id)


class RubricLoader(NaturalKeyLoader):
    name: ClassVar[str] = "rubric_loader"
    collection: ClassVar[str] = RUBRICS

    @property
    def id_map(self) -> IdMap:
        return self.resolver.rubrics


class RemedyLoader(NaturalKeyLoader):
    name: ClassVar[str] = "remedy_loader"
    collection: ClassVar[str] = REMEDIES

    @property
    def id_map(self) -> IdMap:
        return self.resolver.remedies
