"""
OOREP PostgreSQL extractor.

Reads the four OOREP tables from a live database with SQLAlchemy. Locale
filtering is pushed to the server for rubrics and mappings; the transformers
enforce it again, so a permissive query never leaks other repertories.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ...exceptions import SourceUnavailableError
from ...retry import retry_call
from ..models import TARGET_REPERTORY, RawChapter, RawMapping, RawRemedy, RawRubric
from .base import BaseExtractor, ExtractedData, ExtractorRegistry

if TYPE_CHECKING:
    from config import Settings


CHAPTERS_SQL = text(
    """
    SELECT id, textt AS text
    FROM chapter
    """
)

RUBRICS_SQL = text(
    """
    SELECT
        r.abbrev,
        r.id,
        r.chapterid,
        r.fullpath,
        r.path,
        r.textt,
        c.textt AS chapter_text
    FROM rubric r
    LEFT JOIN chapter c ON r.chapterid = c.id
    WHERE r.abbrev = :abbrev
    ORDER BY r.chapterid, r.id
    """
)

REMEDIES_SQL = text(
    """
    SELECT id, namelong AS name, nameabbrev AS abbreviation
    FROM remedy
    ORDER BY namelong
    """
)

MAPPINGS_SQL = text(
    """
    SELECT rr.abbrev, rr.rubricid, rr.remedyid, rr.weight
    FROM rubricremedy rr
    WHERE rr.abbrev = :abbrev
    ORDER BY rr.rubricid, rr.weight DESC
    """
)


@ExtractorRegistry.register("postgres")
class PostgresExtractor(BaseExtractor):
    """
    Extract OOREP tables from PostgreSQL.

    Connection parameters come from OOREP_DB_HOST/PORT/NAME/USER/PASS unless
    an engine is injected (tests use SQLite).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        engine: Engine | None = None,
        repertory: str = TARGET_REPERTORY,
        retry_attempts: int | None = None,
        retry_backoff: float | None = None,
    ):
        if settings is None and engine is None:
            from config import get_settings

            settings = get_settings()

        self.settings = settings
        self.repertory = repertory
        self.retry_attempts = retry_attempts or (settings.retry_attempts if settings else 3)
        self.retry_backoff = (
            retry_backoff
            if retry_backoff is not None
            else (settings.retry_backoff_seconds if settings else 0.5)
        )
        self._engine = engine
        self._owns_engine = engine is None

    def describe(self) -> str:
        if self.settings is not None and self._owns_engine:
            url = self.settings.source_database_url()
            return f"postgres {url.host}:{url.port}/{url.database}"
        return f"database {self._get_engine().url.render_as_string(hide_password=True)}"

    def _get_engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(
                self.settings.source_database_url(),
                pool_pre_ping=True,
                connect_args={"connect_timeout": self.settings.source_timeout_seconds},
            )
        return self._engine

    def _connect(self) -> Connection:
        """Open a connection, retrying transient failures with exponential backoff."""
        engine = self._get_engine()
        return retry_call(
            engine.connect,
            retry_on=(OperationalError,),
            attempts=self.retry_attempts,
            backoff=self.retry_backoff,
            label="OOREP source connection",
            on_exhausted=lambda exc: SourceUnavailableError(
                f"OOREP database unreachable after {self.retry_attempts} attempts: {exc}"
            ),
        )

    def extract(self) -> ExtractedData:
        data = ExtractedData(source=self.describe())

        try:
            conn = self._connect()
            logger.info("Connected to OOREP source ({})", data.source)
            try:
                self._read_chapters(conn, data)
                self._read_rubrics(conn, data)
                self._read_remedies(conn, data)
                self._read_mappings(conn, data)
            finally:
                conn.close()
        except OperationalError as exc:
            raise SourceUnavailableError(f"Lost connection to OOREP source: {exc}") from exc
        except SQLAlchemyError as exc:
            raise SourceUnavailableError(f"OOREP source query failed: {exc}") from exc
        finally:
            if self._owns_engine and self._engine is not None:
                self._engine.dispose()
                logger.debug("Disconnected from OOREP source")

        self._log_counts(data)
        return data

    # ========================================
    # Table readers
    # ========================================

    def _read_chapters(self, conn: Connection, data: ExtractedData) -> None:
        for row in conn.execute(CHAPTERS_SQL):
            if row.id is None:
                data.malformed["chapter"] += 1
                continue
            data.chapters.append(RawChapter(external_id=int(row.id), text=row.text or ""))

    def _read_rubrics(self, conn: Connection, data: ExtractedData) -> None:
        for row in conn.execute(RUBRICS_SQL, {"abbrev": self.repertory}):
            if row.id is None:
                data.malformed["rubric"] += 1
                continue
            data.rubrics.append(
                RawRubric(
                    external_id=int(row.id),
                    repertory_abbrev=row.abbrev or "",
                    chapter_external_id=row.chapterid,
                    fullpath=row.fullpath,
                    path=row.path,
                    text=row.textt,
                    chapter_text=row.chapter_text,
                )
            )

    def _read_remedies(self, conn: Connection, data: ExtractedData) -> None:
        for row in conn.execute(REMEDIES_SQL):
            if row.id is None:
                data.malformed["remedy"] += 1
                continue
            data.remedies.append(
                RawRemedy(
                    external_id=int(row.id),
                    abbrev=row.abbreviation or "",
                    long_name=row.name,
                )
            )

    def _read_mappings(self, conn: Connection, data: ExtractedData) -> None:
        for row in conn.execute(MAPPINGS_SQL, {"abbrev": self.repertory}):
            if row.rubricid is None or row.remedyid is None:
                data.malformed["rubricremedy"] += 1
                continue
            data.mappings.append(
                RawMapping(
                    repertory_abbrev=row.abbrev or "",
                    rubric_external_id=int(row.rubricid),
                    remedy_external_id=int(row.remedyid),
                    weight=row.weight,
                )
            )
