"""
Entity Transformers.

Pure row-level transformers from raw OOREP records to knowledge-base records,
with per-reason drop counts.
"""

from .base import (
    EMPTY_NAME,
    EMPTY_TEXT,
    NON_TARGET_LOCALE,
    UNRESOLVED_REMEDY,
    UNRESOLVED_RUBRIC,
    BaseTransformer,
    TransformStats,
    clamp_grade,
)
from .chapters import ChapterIndex
from .mappings import MappingTransformer
from .remedies import KINGDOM_CATEGORIES, RemedyTransformer, category_for
from .rubrics import RubricTransformer, pick_rubric_text

__all__ = [
    "BaseTransformer",
    "TransformStats",
    "clamp_grade",
    "ChapterIndex",
    "RubricTransformer",
    "RemedyTransformer",
    "MappingTransformer",
    "KINGDOM_CATEGORIES",
    "category_for",
    "pick_rubric_text",
    "NON_TARGET_LOCALE",
    "EMPTY_TEXT",
    "EMPTY_NAME",
    "UNRESOLVED_RUBRIC",
    "UNRESOLVED_REMEDY",
]
