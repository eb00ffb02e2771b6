"""Mapping transformer: OOREP rubricremedy rows -> MappingRecord."""

from __future__ import annotations

from ..identity import IdentityResolver
from ..models import TARGET_REPERTORY, MappingRecord, RawMapping, RepertoryType
from .base import (
    NON_TARGET_LOCALE,
    UNRESOLVED_REMEDY,
    UNRESOLVED_RUBRIC,
    BaseTransformer,
    clamp_grade,
)


class MappingTransformer(BaseTransformer[RawMapping, MappingRecord]):
    """
    Translate rubric/remedy ids through the identity resolver.

    Must run after rubrics and remedies are loaded: a mapping whose endpoint
    was never persisted is dropped, so no dangling reference reaches the store.
    """

    name = "mapping_transformer"

    def __init__(self, resolver: IdentityResolver):
        super().__init__()
        self.resolver = resolver

    def _transform_one(self, row: RawMapping) -> MappingRecord | str:
        if row.repertory_abbrev != TARGET_REPERTORY:
            return NON_TARGET_LOCALE

        rubric_id = self.resolver.rubrics.resolve(row.rubric_external_id)
        if rubric_id is None:
            return UNRESOLVED_RUBRIC

        remedy_id = self.resolver.remedies.resolve(row.remedy_external_id)
        if remedy_id is None:
            return UNRESOLVED_REMEDY

        # TODO: confirm upstream whether OOREP weights above 4 are real grades
        # or a format mismatch; they are clamped for now.
        return MappingRecord(
            rubric_id=rubric_id,
            remedy_id=remedy_id,
            grade=clamp_grade(row.weight),
            repertory_type=RepertoryType.PUBLICUM,
        )
