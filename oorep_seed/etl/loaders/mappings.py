"""
Rubric-remedy mapping loader.

Mappings are written with unordered bulk upserts. When a whole batch is
rejected, the batch is replayed one upsert at a time so a single bad record
only fails itself.

Only ``grade`` is written on every run. ``createdAt`` and ``updatedAt`` are
set when the mapping is first inserted and are not touched afterwards, so an
unchanged re-run modifies nothing. A grade change is reported as ``updated``
in the load counts, not through the timestamps.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import ClassVar

from loguru import logger

from ...db.store import MAPPINGS, UpsertOperation, UpsertOutcome
from ...exceptions import BulkWriteFailedError, StoreError
from ..models import MappingRecord
from .base import BaseLoader, LoadResult, utc_now


class MappingLoader(BaseLoader[MappingRecord]):
    """Bulk upsert keyed on (rubricId, remedyId, repertoryType)."""

    name: ClassVar[str] = "mapping_loader"
    collection: ClassVar[str] = MAPPINGS

    def _process_batch(self, batch: Sequence[MappingRecord]) -> LoadResult:
        operations = [self._operation(record) for record in batch]

        try:
            bulk = self.store.bulk_upsert(self.collection, operations)
        except (BulkWriteFailedError, StoreError) as exc:
            logger.warning(
                "{}: bulk write of {} mappings failed ({}); retrying individually",
                self.name,
                len(operations),
                exc,
            )
            return self._upsert_individually(operations)

        return LoadResult(
            inserted=bulk.upserted,
            updated=bulk.modified,
            skipped=bulk.matched - bulk.modified,
        )

    def _upsert_individually(self, operations: list[UpsertOperation]) -> LoadResult:
        result = LoadResult()
        for op in operations:
            try:
                outcome = self.store.upsert(self.collection, op.key, op.values, op.on_insert)
            except StoreError as exc:
                result.record_failure(f"mapping {op.key}: {exc}")
                continue

            if outcome is UpsertOutcome.INSERTED:
                result.inserted += 1
            elif outcome is UpsertOutcome.MODIFIED:
                result.updated += 1
            else:
                result.skipped += 1
        return result

    @staticmethod
    def _operation(record: MappingRecord) -> UpsertOperation:
        now = utc_now()
        document = record.to_document()
        key = record.natural_key()
        return UpsertOperation(
            key=key,
            values={k: v for k, v in document.items() if k not in key},
            on_insert={"createdAt": now, "updatedAt": now},
        )
