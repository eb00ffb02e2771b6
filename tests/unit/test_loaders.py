"""
Unit tests for the idempotent loaders.

Uses the in-memory store; failure modes are injected by subclassing it.
"""

from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure

from oorep_seed.db.memory_store import MemoryKnowledgeStore
from oorep_seed.db.mongo_store import MongoKnowledgeStore
from oorep_seed.db.store import MAPPINGS, REMEDIES, RUBRICS
from oorep_seed.etl.identity import IdentityResolver
from oorep_seed.etl.loaders import LoaderConfig, LoadResult, MappingLoader, RemedyLoader, RubricLoader
from oorep_seed.etl.loaders.natural_key import NaturalKeyLoader
from oorep_seed.etl.models import MappingRecord, RemedyRecord, RepertoryType, RubricRecord
from oorep_seed.exceptions import BulkWriteFailedError, StoreError, StoreUnavailableError


def rubrics(count=3):
    return [
        RubricRecord(external_id=i, repertory_type=RepertoryType.PUBLICUM, chapter="Mind", rubric_text=f"Rubric {i}")
        for i in range(count)
    ]


def remedies(count=3):
    return [RemedyRecord(external_id=i, name=f"Remedy {i}") for i in range(count)]


def mappings(count=5, grade=2):
    return [
        MappingRecord(rubric_id=ObjectId(), remedy_id=ObjectId(), grade=grade, repertory_type=RepertoryType.PUBLICUM)
        for _ in range(count)
    ]


class RacingStore(MemoryKnowledgeStore):
    """Another writer inserts the record between lookup and insert."""

    def find_id(self, collection, key):
        if not getattr(self, "_raced", False):
            self._raced = True
            super().insert(collection, {**key, "note": "other writer"})
            return None
        return super().find_id(collection, key)


class FailingBulkStore(MemoryKnowledgeStore):
    """Rejects every bulk write and one poisoned individual upsert."""

    def __init__(self, poisoned_grade=None):
        super().__init__()
        self.poisoned_grade = poisoned_grade
        self.bulk_calls = 0

    def bulk_upsert(self, collection, operations):
        self.bulk_calls += 1
        raise BulkWriteFailedError(collection, "simulated")

    def upsert(self, collection, key, values, on_insert=None):
        if values.get("grade") == self.poisoned_grade:
            raise StoreError("document failed validation")
        return super().upsert(collection, key, values, on_insert)


class TestLoadResult:
    """Tests for result accounting."""

    def test_merge(self):
        result = LoadResult(inserted=1, skipped=2)
        result.merge(LoadResult(inserted=3, failed=1, errors=["boom"]))

        assert result.to_dict() == {"inserted": 4, "updated": 0, "skipped": 2, "failed": 1}
        assert result.errors == ["boom"]
        assert result.total == 7

    def test_error_messages_are_capped(self):
        result = LoadResult()
        for i in range(500):
            result.record_failure(f"error {i}")

        assert result.failed == 500
        assert len(result.errors) == 100


class TestNaturalKeyLoaders:
    """Tests for the rubric and remedy loaders."""

    def test_inserts_and_registers(self, memory_store):
        resolver = IdentityResolver()
        records = rubrics()

        result = RubricLoader(memory_store, resolver, LoaderConfig(batch_size=2)).load(records)

        assert result.inserted == 3
        assert memory_store.count(RUBRICS) == 3
        for record in records:
            assert resolver.rubrics.resolve(record.external_id) == record.internal_id

    def test_timestamps_set_on_insert(self, memory_store):
        RemedyLoader(memory_store, IdentityResolver()).load(remedies(1))

        [document] = memory_store.find(REMEDIES)
        assert document["createdAt"] == document["updatedAt"]
        assert document["name"] == "Remedy 0"

    def test_idempotent_second_run(self, memory_store):
        RemedyLoader(memory_store, IdentityResolver()).load(remedies())
        resolver = IdentityResolver()

        result = RemedyLoader(memory_store, resolver).load(remedies())

        assert result.to_dict() == {"inserted": 0, "updated": 0, "skipped": 3, "failed": 0}
        assert memory_store.count(REMEDIES) == 3
        # Existing records are still registered for the mapping stage
        assert len(resolver.remedies) == 3

    def test_duplicate_race_resolved_by_relookup(self):
        store = RacingStore()
        resolver = IdentityResolver()

        result = RubricLoader(store, resolver).load(rubrics(1))

        assert result.to_dict() == {"inserted": 0, "updated": 0, "skipped": 1, "failed": 0}
        assert store.count(RUBRICS) == 1
        assert resolver.rubrics.resolve(0) == store.find(RUBRICS)[0]["_id"]

    def test_per_record_store_error_counted(self):
        class RejectingStore(MemoryKnowledgeStore):
            def insert(self, collection, document):
                if document["name"] == "Remedy 1":
                    raise StoreError("rejected")
                return super().insert(collection, document)

        store = RejectingStore()
        resolver = IdentityResolver()

        result = RemedyLoader(store, resolver).load(remedies())

        assert result.inserted == 2
        assert result.failed == 1
        assert "rejected" in result.errors[0]
        assert resolver.remedies.resolve(1) is None

    def test_lookup_rejected_by_server_counted_per_record(self):
        client = MagicMock()
        collection = client["seed"]["rubrics"]
        collection.find_one.side_effect = [OperationFailure("bad query"), None]
        collection.insert_one.return_value = MagicMock(inserted_id=ObjectId())
        store = MongoKnowledgeStore("mongodb://x", database="seed", retry_backoff=0, client=client)
        store.connect()

        result = RubricLoader(store, IdentityResolver()).load(rubrics(2))

        assert result.failed == 1
        assert result.inserted == 1
        assert "bad query" in result.errors[0]

    def test_base_loader_needs_an_identity_map(self, memory_store):
        with pytest.raises(TypeError):
            NaturalKeyLoader(memory_store, IdentityResolver())

    def test_store_unavailable_propagates(self):
        class DownStore(MemoryKnowledgeStore):
            def find_id(self, collection, key):
                raise StoreUnavailableError("connection lost")

        with pytest.raises(StoreUnavailableError):
            RubricLoader(DownStore(), IdentityResolver()).load(rubrics(1))


class TestMappingLoader:
    """Tests for the bulk mapping loader."""

    def test_bulk_insert(self, memory_store):
        result = MappingLoader(memory_store, LoaderConfig(batch_size=2)).load(mappings(5))

        assert result.inserted == 5
        assert memory_store.count(MAPPINGS) == 5

    def test_rerun_counts_matched_as_skipped(self, memory_store):
        records = mappings(4)
        MappingLoader(memory_store).load(records)

        result = MappingLoader(memory_store).load(records)

        assert result.to_dict() == {"inserted": 0, "updated": 0, "skipped": 4, "failed": 0}
        assert memory_store.count(MAPPINGS) == 4

    def test_grade_change_counts_as_update(self, memory_store):
        records = mappings(2, grade=2)
        MappingLoader(memory_store).load(records)
        stamps = {d["_id"]: (d["createdAt"], d["updatedAt"]) for d in memory_store.find(MAPPINGS)}
        for record in records:
            record.grade = 3

        result = MappingLoader(memory_store).load(records)

        assert result.updated == 2
        assert {d["grade"] for d in memory_store.find(MAPPINGS)} == {3}
        # Timestamps record creation only
        assert {d["_id"]: (d["createdAt"], d["updatedAt"]) for d in memory_store.find(MAPPINGS)} == stamps

    def test_document_shape(self, memory_store):
        [record] = mappings(1, grade=4)
        MappingLoader(memory_store).load([record])

        [document] = memory_store.find(MAPPINGS)
        assert document["rubricId"] == record.rubric_id
        assert document["remedyId"] == record.remedy_id
        assert document["repertoryType"] == "publicum"
        assert document["grade"] == 4
        assert "createdAt" in document

    def test_bulk_failure_falls_back_to_individual_upserts(self):
        store = FailingBulkStore(poisoned_grade=3)
        records = mappings(3, grade=2) + mappings(1, grade=3)

        result = MappingLoader(store, LoaderConfig(batch_size=10)).load(records)

        assert store.bulk_calls == 1
        assert result.inserted == 3
        assert result.failed == 1
        assert store.count(MAPPINGS) == 3

    def test_store_unavailable_propagates(self):
        class DownStore(MemoryKnowledgeStore):
            def bulk_upsert(self, collection, operations):
                raise StoreUnavailableError("connection lost")

        with pytest.raises(StoreUnavailableError):
            MappingLoader(DownStore()).load(mappings(1))
