"""Remedy transformer: OOREP remedy rows -> RemedyRecord."""

from __future__ import annotations

from ..models import UNKNOWN, RawRemedy, RemedyRecord
from .base import EMPTY_NAME, BaseTransformer

KINGDOM_CATEGORIES: dict[str, str] = {
    "plant": "Plant Kingdom",
    "mineral": "Mineral Kingdom",
    "animal": "Animal Kingdom",
    "nosode": "Nosode",
    "sarcode": "Sarcode",
    "imponderabilia": "Imponderabilia",
}


def category_for(kingdom: str | None) -> str:
    """Display category for a kingdom token; unknown tokens map to "Unknown"."""
    if not kingdom:
        return UNKNOWN
    return KINGDOM_CATEGORIES.get(kingdom.strip().lower(), UNKNOWN)


class RemedyTransformer(BaseTransformer[RawRemedy, RemedyRecord]):
    """Name remedies by their long name (falling back to the abbreviation)."""

    name = "remedy_transformer"

    def _transform_one(self, row: RawRemedy) -> RemedyRecord | str:
        name = (row.long_name or "").strip() or (row.abbrev or "").strip()
        if not name:
            return EMPTY_NAME

        return RemedyRecord(
            external_id=row.external_id,
            name=name,
            category=category_for(row.kingdom),
        )
