"""
OOREP SQL dump extractor.

Scans a pg_dump-style text file in a single pass. Data lives in blocks of the
form::

    COPY public.rubric (abbrev, id, mother, ...) FROM stdin;
    publicum\t100\t\\N\t...
    \\.

A small state machine tracks which block (if any) is open and a dispatch
table maps the open block to its row parser. Blocks may appear in any order
and any of them may be missing.
"""

from __future__ import annotations

import gzip
import re
from collections.abc import Callable, Iterator
from enum import Enum
from pathlib import Path
from typing import IO

from loguru import logger

from ...exceptions import SourceUnavailableError
from ..models import RawChapter, RawMapping, RawRecord, RawRemedy, RawRubric
from .base import BaseExtractor, ExtractedData, ExtractorRegistry

COPY_HEADER = re.compile(
    r'^COPY\s+(?:"?(?P<schema>[\w$]+)"?\.)?"?(?P<table>[\w$]+)"?\s*(?:\([^)]*\))?\s+FROM\s+stdin;\s*$',
    re.IGNORECASE,
)
END_OF_DATA = "\\."
NULL = "\\N"

_ESCAPES = {"\\": "\\", "t": "\t", "n": "\n", "r": "\r", "b": "\b", "f": "\f", "v": "\v"}
_ESCAPE_RE = re.compile(r"\\(.)")


class ScanState(str, Enum):
    """Scanner states; one capturing state per known table."""

    IDLE = "idle"
    IN_CHAPTER = "in_chapter"
    IN_REMEDY = "in_remedy"
    IN_RUBRIC = "in_rubric"
    IN_MAPPING = "in_mapping"
    SKIPPING = "skipping"  # COPY block of a table we do not consume


TABLE_STATES: dict[str, ScanState] = {
    "chapter": ScanState.IN_CHAPTER,
    "remedy": ScanState.IN_REMEDY,
    "rubric": ScanState.IN_RUBRIC,
    "rubricremedy": ScanState.IN_MAPPING,
}


class MalformedRow(ValueError):
    """A data line that does not fit the table's column layout."""


# =============================================================================
# Field helpers
# =============================================================================


def decode_field(value: str) -> str | None:
    """Decode one COPY text-format column (``\\N`` is NULL)."""
    if value == NULL:
        return None
    if "\\" not in value:
        return value
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), value)


def _require_columns(fields: list[str | None], count: int) -> None:
    if len(fields) < count:
        raise MalformedRow(f"expected at least {count} columns, got {len(fields)}")


def _required_int(value: str | None) -> int:
    if value is None or value == "":
        raise MalformedRow("missing integer id")
    try:
        return int(value)
    except ValueError as exc:
        raise MalformedRow(f"not an integer: {value!r}") from exc


def _optional_int(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise MalformedRow(f"not an integer: {value!r}") from exc


# =============================================================================
# Row parsers (fixed OOREP column order)
# =============================================================================


def parse_chapter(fields: list[str | None]) -> RawChapter:
    # chapter(abbrev, id, textt, ...)
    _require_columns(fields, 3)
    return RawChapter(external_id=_required_int(fields[1]), text=fields[2] or "")


def parse_remedy(fields: list[str | None]) -> RawRemedy:
    # remedy(id, nameabbrev, namelong, namealt, ...)
    _require_columns(fields, 3)
    return RawRemedy(
        external_id=_required_int(fields[0]),
        abbrev=fields[1] or "",
        long_name=fields[2],
    )


def parse_rubric(fields: list[str | None]) -> RawRubric:
    # rubric(abbrev, id, mother, ismother, chapterid, fullpath, path, textt, ...)
    _require_columns(fields, 8)
    return RawRubric(
        external_id=_required_int(fields[1]),
        repertory_abbrev=fields[0] or "",
        chapter_external_id=_optional_int(fields[4]),
        fullpath=fields[5],
        path=fields[6],
        text=fields[7],
    )


def parse_mapping(fields: list[str | None]) -> RawMapping:
    # rubricremedy(abbrev, rubricid, remedyid, weight, chapterid, ...)
    _require_columns(fields, 4)
    return RawMapping(
        repertory_abbrev=fields[0] or "",
        rubric_external_id=_required_int(fields[1]),
        remedy_external_id=_required_int(fields[2]),
        weight=_optional_int(fields[3]),
    )


ROW_PARSERS: dict[ScanState, tuple[str, Callable[[list[str | None]], RawRecord]]] = {
    ScanState.IN_CHAPTER: ("chapter", parse_chapter),
    ScanState.IN_REMEDY: ("remedy", parse_remedy),
    ScanState.IN_RUBRIC: ("rubric", parse_rubric),
    ScanState.IN_MAPPING: ("rubricremedy", parse_mapping),
}


# =============================================================================
# Scanner
# =============================================================================


class DumpScanner:
    """
    Finite-state scanner over the lines of an OOREP dump.

    Feed lines with :meth:`feed` (or iterate with :meth:`scan`); records are
    accumulated into :attr:`data`. Malformed lines inside a capturing block
    are skipped and counted per table.
    """

    def __init__(self) -> None:
        self.state = ScanState.IDLE
        self.data = ExtractedData()
        self.blocks_seen: list[str] = []

    def scan(self, lines: Iterator[str]) -> ExtractedData:
        for line in lines:
            self.feed(line)
        if self.state is not ScanState.IDLE:
            logger.warning("Dump ended inside an open COPY block ({})", self.state.value)
        return self.data

    def feed(self, line: str) -> None:
        line = line.rstrip("\r\n")

        if self.state is ScanState.IDLE:
            self._on_idle(line)
            return

        if line.strip() == END_OF_DATA:
            self.state = ScanState.IDLE
            return

        if self.state is ScanState.SKIPPING:
            return

        table, parser = ROW_PARSERS[self.state]
        fields = [decode_field(value) for value in line.split("\t")]
        try:
            record = parser(fields)
        except MalformedRow as exc:
            self.data.malformed[table] += 1
            logger.debug("Skipping malformed {} row: {} ({})", table, line[:80], exc)
            return
        self._accumulate(record)

    def _on_idle(self, line: str) -> None:
        if not line.startswith("COPY"):
            return
        match = COPY_HEADER.match(line.strip())
        if not match:
            return
        table = match.group("table").lower()
        self.state = TABLE_STATES.get(table, ScanState.SKIPPING)
        if self.state is not ScanState.SKIPPING:
            self.blocks_seen.append(table)
            logger.debug("Entering COPY block for {}", table)

    def _accumulate(self, record: RawRecord) -> None:
        if isinstance(record, RawChapter):
            self.data.chapters.append(record)
        elif isinstance(record, RawRemedy):
            self.data.remedies.append(record)
        elif isinstance(record, RawRubric):
            self.data.rubrics.append(record)
        else:
            self.data.mappings.append(record)


# =============================================================================
# Extractor
# =============================================================================


def resolve_dump_path(path: str | Path, cwd: Path | None = None) -> Path:
    """
    Resolve a dump path given on the command line or in the environment.

    Relative paths are tried against the working directory first, then its
    parent (the project root when running from a sub-directory).

    Raises:
        SourceUnavailableError: If no candidate exists
    """
    path = Path(path).expanduser()
    if path.is_absolute():
        candidates = [path]
    else:
        base = cwd or Path.cwd()
        candidates = [base / path, base.parent / path]

    for candidate in candidates:
        if candidate.is_file():
            return candidate

    raise SourceUnavailableError(
        f"SQL file not found: {candidates[0]} (provide the path to the OOREP oorep.sql dump)"
    )


@ExtractorRegistry.register("dump")
class DumpFileExtractor(BaseExtractor):
    """
    Extract OOREP tables from a SQL dump (plain text or ``.gz``).

    Example:
        data = DumpFileExtractor("oorep.sql").extract()
    """

    def __init__(self, source: str | Path, encoding: str = "utf-8"):
        self.source = Path(source)
        self.encoding = encoding

    def describe(self) -> str:
        return f"dump file {self.source}"

    def extract(self) -> ExtractedData:
        path = resolve_dump_path(self.source)
        logger.info("Reading SQL dump: {}", path)

        scanner = DumpScanner()
        try:
            with self._open(path) as fh:
                data = scanner.scan(fh)
        except OSError as exc:
            raise SourceUnavailableError(f"Cannot read SQL file {path}: {exc}") from exc

        data.source = str(path)
        missing = set(TABLE_STATES) - set(scanner.blocks_seen)
        if missing:
            logger.warning("No COPY block found for: {}", ", ".join(sorted(missing)))
        self._log_counts(data)
        return data

    def _open(self, path: Path) -> IO[str]:
        if path.suffix == ".gz":
            return gzip.open(path, "rt", encoding=self.encoding, errors="replace")
        return path.open("r", encoding=self.encoding, errors="replace")
