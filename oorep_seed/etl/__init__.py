"""
ETL Pipeline for the OOREP reference data.

Extracts the OOREP repertory and remedy tables from a SQL dump or a live
PostgreSQL database, normalizes them into the clinic knowledge-base schema
and loads them idempotently.

Architecture:
    Source adapter -> Transformers -> Loaders (knowledge store)
                            ^            |
                            +-- IdentityResolver

Example:
    from config import get_settings
    from oorep_seed.etl import run_seed

    result = run_seed(get_settings(), dump_file="oorep.sql.gz")
    print(result.summary_rows())
"""

from .identity import IdentityResolver, IdMap
from .models import (
    CLASSICAL_MODALITY,
    TARGET_REPERTORY,
    MappingRecord,
    RawChapter,
    RawMapping,
    RawRemedy,
    RawRubric,
    RemedyRecord,
    RepertoryType,
    RubricRecord,
)
from .pipeline import EntityReport, PipelineResult, SeedPipeline, run_seed
from .verification import VerificationReport, clear_seeded_data, verify_seed

__all__ = [
    # Pipeline
    "SeedPipeline",
    "PipelineResult",
    "EntityReport",
    "run_seed",
    # Identity
    "IdentityResolver",
    "IdMap",
    # Models
    "CLASSICAL_MODALITY",
    "TARGET_REPERTORY",
    "RepertoryType",
    "RawChapter",
    "RawRemedy",
    "RawRubric",
    "RawMapping",
    "RubricRecord",
    "RemedyRecord",
    "MappingRecord",
    # Verification
    "VerificationReport",
    "verify_seed",
    "clear_seeded_data",
]
