"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings
from oorep_seed.db.memory_store import MemoryKnowledgeStore


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require MongoDB)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# A small OOREP dump. Blocks are deliberately out of dependency order, and
# it contains one German row per table, a malformed rubric line, a NULL
# weight, an out-of-range weight and a block for a table we do not read.
SAMPLE_DUMP = "\n".join([
    "--",
    "-- PostgreSQL database dump",
    "--",
    "SET statement_timeout = 0;",
    "",
    "COPY public.rubricremedy (abbrev, rubricid, remedyid, weight, chapterid) FROM stdin;",
    "publicum\t100\t1\t3\t10",
    "publicum\t101\t2\t5\t10",
    "publicum\t102\t1\t\\N\t11",
    "kent-de\t100\t1\t2\t10",
    "publicum\t999\t1\t1\t10",
    "publicum\t100\t77\t2\t10",
    "\\.",
    "",
    "COPY public.chapter (abbrev, id, textt) FROM stdin;",
    "publicum\t10\tMind",
    "publicum\t11\tHead",
    "\\.",
    "",
    "COPY public.rubric (abbrev, id, mother, ismother, chapterid, fullpath, path, textt) FROM stdin;",
    "publicum\t100\t\\N\tf\t10\tMind, anxiety\tanxiety\tAnxiety",
    "publicum\t101\t100\tf\t10\tMind, anxiety, night\tnight\t\\N",
    "publicum\t102\t\\N\tf\t11\tHead, pain\tpain\tPain",
    "kent-de\t100\t\\N\tf\t10\tGemüt, Angst\tAngst\tAngst",
    "publicum\t103\t\\N\tf\t10\t\\N\t\\N\t\\N",
    "broken line",
    "\\.",
    "",
    "COPY public.remedy (id, nameabbrev, namelong, namealt) FROM stdin;",
    "1\tAcon.\tAconitum napellus\t\\N",
    "2\tBell.\t\\N\t\\N",
    "3\t\\N\t\\N\t\\N",
    "\\.",
    "",
    "COPY public.info (abbrev, title) FROM stdin;",
    "publicum\tEnglish",
    "\\.",
    "",
]) + "\n"


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def sample_dump_text():
    """Provide the sample OOREP dump as text."""
    return SAMPLE_DUMP


@pytest.fixture
def dump_file(tmp_path):
    """Write the sample dump to a temporary file."""
    path = tmp_path / "oorep.sql"
    path.write_text(SAMPLE_DUMP, encoding="utf-8")
    return path


@pytest.fixture
def settings():
    """Settings isolated from the environment and .env files."""
    return Settings(
        _env_file=None,
        mongodb_uri="mongodb://localhost:27017/oorep_seed_test",
        oorep_sql_file=None,
        oorep_db_host="localhost",
        oorep_db_port=5432,
        oorep_db_name="oorep",
        oorep_db_user="postgres",
        oorep_db_pass="",
        dry_run=False,
        log_file=None,
        retry_attempts=2,
        retry_backoff_seconds=0,
        rubric_batch_size=2,
        remedy_batch_size=2,
        mapping_batch_size=2,
    )


@pytest.fixture
def memory_store():
    """Provide a connected in-memory knowledge store."""
    store = MemoryKnowledgeStore()
    store.connect()
    store.ensure_indexes()
    yield store
    store.close()
