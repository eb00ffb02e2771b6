"""Rubric transformer: OOREP rubric rows -> RubricRecord."""

from __future__ import annotations

from ..models import TARGET_REPERTORY, RawRubric, RepertoryType, RubricRecord
from .base import EMPTY_TEXT, NON_TARGET_LOCALE, BaseTransformer
from .chapters import ChapterIndex


def pick_rubric_text(row: RawRubric) -> str:
    """First non-blank of textt, fullpath, path (trimmed)."""
    for candidate in (row.text, row.fullpath, row.path):
        if candidate and candidate.strip():
            return candidate.strip()
    return ""


class RubricTransformer(BaseTransformer[RawRubric, RubricRecord]):
    """
    Keep English (publicum) rubrics and attach their chapter name.

    Rows from any other repertory are dropped as non_target_locale; rows
    without any usable text are dropped as empty_text.
    """

    name = "rubric_transformer"

    def __init__(self, chapters: ChapterIndex):
        super().__init__()
        self.chapters = chapters

    def _transform_one(self, row: RawRubric) -> RubricRecord | str:
        if row.repertory_abbrev != TARGET_REPERTORY:
            return NON_TARGET_LOCALE

        rubric_text = pick_rubric_text(row)
        if not rubric_text:
            return EMPTY_TEXT

        return RubricRecord(
            external_id=row.external_id,
            repertory_type=RepertoryType.PUBLICUM,
            chapter=self.chapters.name_for(row.chapter_external_id, row.chapter_text),
            rubric_text=rubric_text,
        )
