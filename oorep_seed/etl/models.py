"""
ETL Pipeline Data Models.

Raw records mirror the OOREP tables and are discarded after transformation.
Normalized records carry the clinic knowledge-base shape and serialize to the
camelCase documents the application reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from bson import ObjectId

# English repertory; the only one this pipeline persists
TARGET_REPERTORY = "publicum"
CLASSICAL_MODALITY = "classical_homeopathy"
DEFAULT_POTENCIES = ("6C", "30C", "200C", "1M")
UNKNOWN = "Unknown"


class RepertoryType(str, Enum):
    """Repertories known to the clinic knowledge base."""

    KENT = "kent"
    BBCR = "bbcr"
    BOERICKE = "boericke"
    SYNTHESIS = "synthesis"
    PUBLICUM = "publicum"  # English Kent-style repertory


# =============================================================================
# Raw Extraction Models
# =============================================================================


@dataclass(frozen=True)
class RawChapter:
    external_id: int
    text: str


@dataclass(frozen=True)
class RawRemedy:
    external_id: int
    abbrev: str
    long_name: str | None
    kingdom: str | None = None


@dataclass(frozen=True)
class RawRubric:
    """One row of the OOREP ``rubric`` table."""

    external_id: int
    repertory_abbrev: str
    chapter_external_id: int | None
    fullpath: str | None
    path: str | None
    text: str | None
    # Only filled by the relational reader (rubric LEFT JOIN chapter)
    chapter_text: str | None = None


@dataclass(frozen=True)
class RawMapping:
    """One row of the OOREP ``rubricremedy`` table."""

    repertory_abbrev: str
    rubric_external_id: int
    remedy_external_id: int
    weight: int | None


RawRecord = Union[RawChapter, RawRemedy, RawRubric, RawMapping]


# =============================================================================
# Normalized Models
# =============================================================================


@dataclass
class RubricRecord:
    """A rubric ready for loading into the ``rubrics`` collection."""

    external_id: int
    repertory_type: RepertoryType
    chapter: str
    rubric_text: str
    modality: str = CLASSICAL_MODALITY
    is_global: bool = True
    linked_symptoms: list[str] = field(default_factory=list)

    # Assigned by the loader
    internal_id: ObjectId | None = None

    def natural_key(self) -> dict[str, Any]:
        return {"rubricText": self.rubric_text, "repertoryType": self.repertory_type.value}

    def to_document(self) -> dict[str, Any]:
        """Serialize to a MongoDB document (without ``_id``)."""
        return {
            "repertoryType": self.repertory_type.value,
            "chapter": self.chapter,
            "rubricText": self.rubric_text,
            "linkedSymptoms": list(self.linked_symptoms),
            "modality": self.modality,
            "isGlobal": self.is_global,
        }


@dataclass
class RemedyRecord:
    """
    A remedy ready for loading into the ``remedies`` collection.

    Every collection field is defaulted so that downstream consumers (the
    suggestion engine, materia medica screens) never see a null.
    """

    external_id: int
    name: str
    category: str = UNKNOWN
    modality: str = CLASSICAL_MODALITY
    is_global: bool = True

    # Materia medica
    keynotes: list[str] = field(default_factory=list)
    pathogenesis: str = ""
    clinical_notes: str = ""

    supported_potencies: list[str] = field(default_factory=lambda: list(DEFAULT_POTENCIES))
    constitution_traits: list[str] = field(default_factory=list)
    modalities_better: list[str] = field(default_factory=list)
    modalities_worse: list[str] = field(default_factory=list)
    clinical_indications: list[str] = field(default_factory=list)
    incompatibilities: list[str] = field(default_factory=list)

    internal_id: ObjectId | None = None

    def natural_key(self) -> dict[str, Any]:
        return {"name": self.name, "modality": self.modality}

    def to_document(self) -> dict[str, Any]:
        """Serialize to a MongoDB document (without ``_id``)."""
        return {
            "name": self.name,
            "category": self.category,
            "modality": self.modality,
            "constitutionTraits": list(self.constitution_traits),
            "modalities": {
                "better": list(self.modalities_better),
                "worse": list(self.modalities_worse),
            },
            "clinicalIndications": list(self.clinical_indications),
            "incompatibilities": list(self.incompatibilities),
            "materiaMedica": {
                "keynotes": list(self.keynotes),
                "pathogenesis": self.pathogenesis,
                "clinicalNotes": self.clinical_notes,
            },
            "supportedPotencies": list(self.supported_potencies),
            "isGlobal": self.is_global,
        }


@dataclass
class MappingRecord:
    """A graded rubric-remedy association (``rubricremedies`` collection)."""

    rubric_id: ObjectId
    remedy_id: ObjectId
    grade: int
    repertory_type: RepertoryType

    def natural_key(self) -> dict[str, Any]:
        return {
            "rubricId": self.rubric_id,
            "remedyId": self.remedy_id,
            "repertoryType": self.repertory_type.value,
        }

    def to_document(self) -> dict[str, Any]:
        return {**self.natural_key(), "grade": self.grade}
