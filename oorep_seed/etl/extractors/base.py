"""
Base Extractor Class.

Provides the abstract base for the OOREP source adapters.
Uses a registry pattern so the orchestrator can pick a source by type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from loguru import logger

from ..models import RawChapter, RawMapping, RawRemedy, RawRubric

if TYPE_CHECKING:
    from config import Settings


# =============================================================================
# Extractor Registry (Plugin Pattern)
# =============================================================================


class ExtractorRegistry:
    """
    Registry for source adapters.

    Example:
        @ExtractorRegistry.register("dump")
        class DumpFileExtractor(BaseExtractor):
            ...

        extractor_class = ExtractorRegistry.get("dump")
    """

    _extractors: ClassVar[dict[str, type[BaseExtractor]]] = {}

    @classmethod
    def register(cls, source_type: str):
        """Decorator to register an extractor class under ``source_type``."""

        def decorator(extractor_class: type[BaseExtractor]):
            cls._extractors[source_type] = extractor_class
            extractor_class.source_type = source_type
            logger.debug("Registered extractor: {} -> {}", source_type, extractor_class.__name__)
            return extractor_class

        return decorator

    @classmethod
    def get(cls, source_type: str) -> type[BaseExtractor]:
        """Get extractor class by source type."""
        if source_type not in cls._extractors:
            raise KeyError(f"No extractor registered for source type: {source_type}")
        return cls._extractors[source_type]

    @classmethod
    def list_extractors(cls) -> dict[str, type[BaseExtractor]]:
        """List all registered extractors."""
        return dict(cls._extractors)


# =============================================================================
# Extraction Result
# =============================================================================


@dataclass
class ExtractedData:
    """Raw records per entity type, as produced by one extraction."""

    chapters: list[RawChapter] = field(default_factory=list)
    remedies: list[RawRemedy] = field(default_factory=list)
    rubrics: list[RawRubric] = field(default_factory=list)
    mappings: list[RawMapping] = field(default_factory=list)

    # Malformed lines/rows skipped, per source table
    malformed: Counter[str] = field(default_factory=Counter)
    source: str = ""

    def counts(self) -> dict[str, int]:
        return {
            "chapters": len(self.chapters),
            "remedies": len(self.remedies),
            "rubrics": len(self.rubrics),
            "mappings": len(self.mappings),
        }


# =============================================================================
# Base Extractor
# =============================================================================


class BaseExtractor(ABC):
    """
    Abstract base class for OOREP source adapters.

    Extractors are responsible for:
    1. Reading the four OOREP tables from a source (dump file, database)
    2. Parsing each row into a typed raw record
    3. Raising SourceUnavailableError when the source cannot be read at all

    Subclasses must implement:
    - extract(): Main extraction logic
    - describe(): Human-readable source description for logs
    """

    source_type: ClassVar[str] = "unknown"

    @abstractmethod
    def extract(self) -> ExtractedData:
        """
        Extract raw records from the source.

        Returns:
            ExtractedData with one list per entity type

        Raises:
            SourceUnavailableError: If the source cannot be opened
        """
        ...

    @abstractmethod
    def describe(self) -> str:
        ...

    def _log_counts(self, data: ExtractedData) -> None:
        counts = data.counts()
        logger.info(
            "Extracted from {}: chapters={}, remedies={}, rubrics={}, mappings={}",
            data.source,
            counts["chapters"],
            counts["remedies"],
            counts["rubrics"],
            counts["mappings"],
        )
        if data.malformed:
            logger.warning("Skipped malformed rows: {}", dict(data.malformed))


# =============================================================================
# Source Selection
# =============================================================================


def create_extractor(settings: Settings, dump_file: str | Path | None = None) -> BaseExtractor:
    """
    Pick the source adapter for this run.

    A dump file given on the command line or via OOREP_SQL_FILE selects file
    mode; otherwise the OOREP PostgreSQL database is read.
    """
    path = dump_file or settings.oorep_sql_file
    if path:
        return ExtractorRegistry.get("dump")(path)
    return ExtractorRegistry.get("postgres")(settings=settings)
