"""
Base Transformer Class.

Transformers are pure per-record functions from raw OOREP rows to normalized
records. A row is either accepted or dropped for a named reason; the counts
are kept in TransformStats instead of raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import ClassVar, Generic, TypeVar

from loguru import logger

# Drop reasons
NON_TARGET_LOCALE = "non_target_locale"
EMPTY_TEXT = "empty_text"
EMPTY_NAME = "empty_name"
UNRESOLVED_RUBRIC = "unresolved_rubric"
UNRESOLVED_REMEDY = "unresolved_remedy"

RawT = TypeVar("RawT")
RecordT = TypeVar("RecordT")


# =============================================================================
# Transformation Statistics
# =============================================================================


@dataclass
class TransformStats:
    """Accepted/dropped counts for one transformation run."""

    processed: int = 0
    accepted: int = 0
    dropped: Counter[str] = field(default_factory=Counter)

    @property
    def dropped_total(self) -> int:
        return sum(self.dropped.values())

    def to_dict(self) -> dict[str, object]:
        return {
            "processed": self.processed,
            "accepted": self.accepted,
            "dropped": dict(self.dropped),
        }


# =============================================================================
# Base Transformer
# =============================================================================


class BaseTransformer(ABC, Generic[RawT, RecordT]):
    """
    Abstract base class for entity transformers.

    Subclasses implement _transform_one(), returning either a normalized
    record or a drop reason string.
    """

    name: ClassVar[str] = "base_transformer"

    def __init__(self) -> None:
        self.stats = TransformStats()

    def transform(self, rows: Iterable[RawT]) -> list[RecordT]:
        """
        Transform raw rows into normalized records.

        Args:
            rows: Raw OOREP rows

        Returns:
            Accepted records, in input order
        """
        records: list[RecordT] = []

        for row in rows:
            self.stats.processed += 1
            outcome = self._transform_one(row)
            if isinstance(outcome, str):
                self.stats.dropped[outcome] += 1
                continue
            records.append(outcome)
            self.stats.accepted += 1

        self._log_stats()
        return records

    @abstractmethod
    def _transform_one(self, row: RawT) -> RecordT | str:
        """Transform one row; return a drop reason to reject it."""
        ...

    def _log_stats(self) -> None:
        logger.info(
            "{}: processed={}, accepted={}, dropped={}",
            self.name,
            self.stats.processed,
            self.stats.accepted,
            dict(self.stats.dropped) or 0,
        )


def clamp_grade(weight: int | None, low: int = 1, high: int = 4) -> int:
    """Clamp an OOREP weight into the 1-4 grade range (NULL counts as 1)."""
    if weight is None:
        return low
    return max(low, min(high, weight))
