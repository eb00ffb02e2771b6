"""
OOREP Source Adapters.

Two interchangeable extractors behind one interface: a single-pass SQL dump
scanner and a PostgreSQL reader.
"""

from .base import BaseExtractor, ExtractedData, ExtractorRegistry, create_extractor
from .dump_extractor import DumpFileExtractor, DumpScanner, ScanState, resolve_dump_path
from .postgres_extractor import PostgresExtractor

__all__ = [
    "BaseExtractor",
    "ExtractedData",
    "ExtractorRegistry",
    "create_extractor",
    "DumpFileExtractor",
    "DumpScanner",
    "ScanState",
    "resolve_dump_path",
    "PostgresExtractor",
]
