"""
ETL Pipeline Orchestrator.

Runs the seed strictly in order: extract, chapter index, rubrics, remedies,
then mappings. Mapping transformation needs the identity resolver fully
populated by the two earlier loads, so nothing here runs concurrently.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from ..db.store import open_store
from .extractors import create_extractor
from .identity import IdentityResolver
from .loaders import LoaderConfig, LoadResult, MappingLoader, RemedyLoader, RubricLoader
from .transformers import (
    ChapterIndex,
    MappingTransformer,
    RemedyTransformer,
    RubricTransformer,
    TransformStats,
)

if TYPE_CHECKING:
    from config import Settings

    from ..db.store import KnowledgeStore
    from .extractors import BaseExtractor


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class EntityReport:
    """Transform and load outcome for one entity type."""

    transform: TransformStats = field(default_factory=TransformStats)
    load: LoadResult = field(default_factory=LoadResult)

    def to_dict(self) -> dict[str, Any]:
        return {"transform": self.transform.to_dict(), "load": self.load.to_dict()}


@dataclass
class PipelineResult:
    """Result of one seed run."""

    source: str = ""
    dry_run: bool = False

    extracted: dict[str, int] = field(default_factory=dict)
    malformed: Counter[str] = field(default_factory=Counter)

    rubrics: EntityReport = field(default_factory=EntityReport)
    remedies: EntityReport = field(default_factory=EntityReport)
    mappings: EntityReport = field(default_factory=EntityReport)

    # Timing
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    duration_seconds: float = 0.0

    @property
    def entities(self) -> dict[str, EntityReport]:
        return {"rubrics": self.rubrics, "remedies": self.remedies, "mappings": self.mappings}

    @property
    def failed(self) -> int:
        return sum(report.load.failed for report in self.entities.values())

    @property
    def success(self) -> bool:
        """The run succeeded if no record failed to load."""
        return self.failed == 0

    def summary_rows(self) -> list[dict[str, Any]]:
        """One row per entity: accepted/dropped by the transformer, load counts."""
        rows = []
        for name, report in self.entities.items():
            rows.append({
                "entity": name,
                "extracted": self.extracted.get(name, 0),
                "accepted": report.transform.accepted,
                "dropped": dict(report.transform.dropped),
                **report.load.to_dict(),
            })
        return rows

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "dry_run": self.dry_run,
            "extracted": self.extracted,
            "malformed": dict(self.malformed),
            "entities": {name: report.to_dict() for name, report in self.entities.items()},
            "duration_seconds": self.duration_seconds,
            "success": self.success,
        }


# =============================================================================
# Pipeline Orchestrator
# =============================================================================


class SeedPipeline:
    """
    Seed orchestrator.

    Example:
        with open_store(settings) as store:
            result = SeedPipeline(create_extractor(settings), store, settings).run()
    """

    def __init__(
        self,
        extractor: BaseExtractor,
        store: KnowledgeStore,
        settings: Settings | None = None,
        *,
        dry_run: bool = False,
    ):
        if settings is None:
            from config import get_settings

            settings = get_settings()

        self.extractor = extractor
        self.store = store
        self.settings = settings
        self.dry_run = dry_run
        self.resolver = IdentityResolver()

    def run(self) -> PipelineResult:
        """
        Run the full seed.

        Raises:
            SourceUnavailableError: Source could not be read
            StoreUnavailableError: Target store lost; later stages are not attempted
        """
        result = PipelineResult(dry_run=self.dry_run)
        self.resolver = IdentityResolver()
        batch_sizes = self.settings.get_batch_sizes()

        # Step 1: Extract
        logger.info("Starting extraction from {}...", self.extractor.describe())
        data = self.extractor.extract()
        result.source = data.source
        result.extracted = data.counts()
        result.malformed = Counter(data.malformed)

        # Step 2: Chapter index
        chapters = ChapterIndex(data.chapters)
        logger.info("Chapter index built: {} chapters", len(chapters))

        # Step 3: Rubrics
        transformer = RubricTransformer(chapters)
        rubrics = transformer.transform(data.rubrics)
        result.rubrics.transform = transformer.stats
        logger.info("Loading {} rubrics...", len(rubrics))
        result.rubrics.load = RubricLoader(
            self.store, self.resolver, LoaderConfig(batch_size=batch_sizes["rubrics"])
        ).load(rubrics)

        # Step 4: Remedies
        transformer = RemedyTransformer()
        remedies = transformer.transform(data.remedies)
        result.remedies.transform = transformer.stats
        logger.info("Loading {} remedies...", len(remedies))
        result.remedies.load = RemedyLoader(
            self.store, self.resolver, LoaderConfig(batch_size=batch_sizes["remedies"])
        ).load(remedies)

        # Step 5: Mappings (resolver is complete from here on)
        logger.info("Identity maps ready: {}", self.resolver.stats())
        transformer = MappingTransformer(self.resolver)
        mappings = transformer.transform(data.mappings)
        result.mappings.transform = transformer.stats
        logger.info("Loading {} mappings...", len(mappings))
        result.mappings.load = MappingLoader(
            self.store, LoaderConfig(batch_size=batch_sizes["mappings"])
        ).load(mappings)

        return self._finalize(result)

    def _finalize(self, result: PipelineResult) -> PipelineResult:
        result.completed_at = datetime.now()
        result.duration_seconds = (result.completed_at - result.started_at).total_seconds()

        for row in result.summary_rows():
            logger.info(
                "{}: inserted={}, updated={}, skipped={}, failed={}, dropped={}",
                row["entity"],
                row["inserted"],
                row["updated"],
                row["skipped"],
                row["failed"],
                row["dropped"] or 0,
            )
        if result.malformed:
            logger.warning("Malformed source rows skipped: {}", dict(result.malformed))

        logger.info(
            "Seed {} in {:.1f}s",
            "completed" if result.success else "completed with failures",
            result.duration_seconds,
        )
        return result


def run_seed(
    settings: Settings | None = None,
    dump_file: str | Path | None = None,
    dry_run: bool | None = None,
) -> PipelineResult:
    """
    Run the seed end to end.

    The store is acquired before extraction and released on every exit path.

    Args:
        settings: Settings (default: get_settings())
        dump_file: OOREP dump path; overrides OOREP_SQL_FILE
        dry_run: Load into an in-memory store (default: settings.dry_run)
    """
    if settings is None:
        from config import get_settings

        settings = get_settings()
    if dry_run is None:
        dry_run = settings.dry_run

    extractor = create_extractor(settings, dump_file)
    with open_store(settings, dry_run=dry_run) as store:
        return SeedPipeline(extractor, store, settings, dry_run=dry_run).run()
