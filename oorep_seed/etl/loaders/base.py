"""
Base Loader Class.

Provides the batching loop and result accounting shared by the rubric,
remedy and mapping loaders. Per-record and per-batch store errors are
counted; StoreUnavailableError is fatal and propagates.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, ClassVar, Generic, TypeVar

from loguru import logger

if TYPE_CHECKING:
    from ...db.store import KnowledgeStore

RecordT = TypeVar("RecordT")

# Error messages kept per result; further failures are only counted
MAX_ERROR_MESSAGES = 100


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class LoadResult:
    """Result of loading one entity type."""

    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.skipped + self.failed

    def record_failure(self, message: str, count: int = 1) -> None:
        self.failed += count
        if len(self.errors) < MAX_ERROR_MESSAGES:
            self.errors.append(message)

    def merge(self, other: LoadResult) -> None:
        self.inserted += other.inserted
        self.updated += other.updated
        self.skipped += other.skipped
        self.failed += other.failed
        room = MAX_ERROR_MESSAGES - len(self.errors)
        if room > 0:
            self.errors.extend(other.errors[:room])

    def to_dict(self) -> dict[str, int]:
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
        }


# =============================================================================
# Loader Configuration
# =============================================================================


@dataclass
class LoaderConfig:
    """Configuration for loaders."""

    batch_size: int = 1000

    # Logging
    log_operations: bool = True


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Base Loader
# =============================================================================


class BaseLoader(ABC, Generic[RecordT]):
    """
    Abstract base class for knowledge-base loaders.

    Subclasses implement _process_batch(); batches run sequentially in input
    order so identity registration is stable between runs.
    """

    name: ClassVar[str] = "base_loader"
    collection: ClassVar[str] = ""

    def __init__(self, store: KnowledgeStore, config: LoaderConfig | None = None):
        self.store = store
        self.config = config or LoaderConfig()

    def load(self, records: Sequence[RecordT]) -> LoadResult:
        """
        Load records into the store.

        Args:
            records: Normalized records

        Returns:
            LoadResult with counts and sampled error messages
        """
        result = LoadResult()
        batch_size = max(1, self.config.batch_size)
        batches = (len(records) + batch_size - 1) // batch_size

        for number, start in enumerate(range(0, len(records), batch_size), start=1):
            batch = records[start : start + batch_size]
            result.merge(self._process_batch(batch))
            if self.config.log_operations:
                logger.debug("{}: batch {}/{} done ({} records)", self.name, number, batches, len(batch))

        return result

    @abstractmethod
    def _process_batch(self, batch: Sequence[RecordT]) -> LoadResult:
        """Persist one batch and account for every record in it."""
        ...

