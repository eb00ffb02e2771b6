"""
Unit tests for the relational OOREP reader.

The OOREP tables are recreated in a temporary SQLite database, so the
queries run for real without a PostgreSQL server.
"""

from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from oorep_seed.etl.extractors import PostgresExtractor
from oorep_seed.exceptions import SourceUnavailableError


SCHEMA = [
    "CREATE TABLE chapter (abbrev TEXT, id INTEGER, textt TEXT)",
    "CREATE TABLE remedy (id INTEGER, nameabbrev TEXT, namelong TEXT, namealt TEXT)",
    """CREATE TABLE rubric (
        abbrev TEXT, id INTEGER, mother INTEGER, ismother BOOLEAN,
        chapterid INTEGER, fullpath TEXT, path TEXT, textt TEXT
    )""",
    "CREATE TABLE rubricremedy (abbrev TEXT, rubricid INTEGER, remedyid INTEGER, weight INTEGER, chapterid INTEGER)",
]

ROWS = [
    "INSERT INTO chapter VALUES ('publicum', 5, 'Mind')",
    "INSERT INTO remedy VALUES (10, 'Nat-m', 'Natrum Muriaticum', NULL)",
    "INSERT INTO remedy VALUES (11, 'Sep.', NULL, NULL)",
    "INSERT INTO rubric VALUES ('publicum', 100, NULL, 0, 5, 'Mind, grief', 'grief', 'Ailments from grief')",
    "INSERT INTO rubric VALUES ('publicum', 101, NULL, 0, 99, 'Mind, weeping', 'weeping', NULL)",
    "INSERT INTO rubric VALUES ('kent-de', 100, NULL, 0, 5, 'Gemüt, Kummer', 'Kummer', 'Kummer')",
    "INSERT INTO rubricremedy VALUES ('publicum', 100, 10, 9, 5)",
    "INSERT INTO rubricremedy VALUES ('kent-de', 100, 10, 2, 5)",
]


@pytest.fixture
def oorep_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'oorep.db'}")
    with engine.begin() as conn:
        for statement in SCHEMA + ROWS:
            conn.execute(text(statement))
    yield engine
    engine.dispose()


class TestPostgresExtractor:
    """Tests against a real (SQLite) database."""

    def test_reads_all_tables(self, oorep_engine):
        data = PostgresExtractor(engine=oorep_engine).extract()

        assert data.counts() == {"chapters": 1, "remedies": 2, "rubrics": 2, "mappings": 1}

    def test_locale_filter_pushed_to_query(self, oorep_engine):
        data = PostgresExtractor(engine=oorep_engine).extract()

        assert {r.repertory_abbrev for r in data.rubrics} == {"publicum"}
        assert {m.repertory_abbrev for m in data.mappings} == {"publicum"}

    def test_rubric_rows_carry_joined_chapter(self, oorep_engine):
        data = PostgresExtractor(engine=oorep_engine).extract()
        rubrics = {r.external_id: r for r in data.rubrics}

        assert rubrics[100].chapter_text == "Mind"
        assert rubrics[100].text == "Ailments from grief"
        assert rubrics[101].chapter_text is None
        assert rubrics[101].fullpath == "Mind, weeping"

    def test_remedy_columns(self, oorep_engine):
        data = PostgresExtractor(engine=oorep_engine).extract()
        remedies = {r.external_id: r for r in data.remedies}

        assert remedies[10].long_name == "Natrum Muriaticum"
        assert remedies[10].abbrev == "Nat-m"
        assert remedies[11].long_name is None

    def test_mapping_weight_kept_raw(self, oorep_engine):
        [mapping] = PostgresExtractor(engine=oorep_engine).extract().mappings

        assert mapping.weight == 9
        assert (mapping.rubric_external_id, mapping.remedy_external_id) == (100, 10)

    def test_describe_hides_password(self, settings):
        settings.oorep_db_pass = "secret"
        extractor = PostgresExtractor(settings=settings)

        assert "secret" not in extractor.describe()
        assert "localhost:5432/oorep" in extractor.describe()


class TestConnectionFailures:
    """Unreachable sources become SourceUnavailableError after retries."""

    def test_connect_retried_then_fails(self):
        engine = Mock()
        engine.connect.side_effect = OperationalError("connect", {}, Exception("refused"))

        extractor = PostgresExtractor(engine=engine, retry_attempts=3, retry_backoff=0)

        with pytest.raises(SourceUnavailableError, match="unreachable"):
            extractor.extract()
        assert engine.connect.call_count == 3

    def test_missing_table_is_source_error(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")

        with pytest.raises(SourceUnavailableError):
            PostgresExtractor(engine=engine).extract()
        engine.dispose()


class TestSourceDatabaseUrl:
    """Tests for the PostgreSQL URL built from settings."""

    def test_url_fields(self, settings):
        settings.oorep_db_host = "db.internal"
        settings.oorep_db_port = 5433
        settings.oorep_db_user = "oorep"

        url = settings.source_database_url()

        assert url.drivername == "postgresql+psycopg2"
        assert url.host == "db.internal"
        assert url.port == 5433
        assert url.username == "oorep"
        assert url.database == "oorep"
