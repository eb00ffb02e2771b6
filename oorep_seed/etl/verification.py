"""
Post-seed verification and cleanup.

verify_seed() counts what the knowledge base holds against the published
OOREP publicum volumes; clear_seeded_data() removes seeded data before a
fresh run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from ..db.store import MAPPINGS, REMEDIES, RUBRICS
from .models import CLASSICAL_MODALITY, RepertoryType

if TYPE_CHECKING:
    from ..db.store import KnowledgeStore

# Published OOREP publicum volumes
EXPECTED_PUBLICUM_RUBRICS = 74667
EXPECTED_REMEDIES = 2432
EXPECTED_PUBLICUM_MAPPINGS = 735566
COMPLETENESS_THRESHOLD = 0.9

SAMPLE_SIZE = 5


@dataclass
class VerificationCheck:
    name: str
    actual: int
    expected: int
    minimum: int

    @property
    def passed(self) -> bool:
        return self.actual >= self.minimum


@dataclass
class VerificationReport:
    """Counts, referential checks and samples for the seeded knowledge base."""

    rubrics_total: int = 0
    rubrics_global: int = 0
    rubrics_by_type: dict[str, int] = field(default_factory=dict)

    remedies_total: int = 0
    remedies_global: int = 0

    mappings_total: int = 0
    mappings_by_type: dict[str, int] = field(default_factory=dict)

    # Mappings whose rubricId / remedyId points nowhere
    orphaned_rubric_refs: int = 0
    orphaned_remedy_refs: int = 0

    sample_rubrics: list[dict[str, Any]] = field(default_factory=list)
    sample_remedies: list[dict[str, Any]] = field(default_factory=list)
    sample_mappings: list[dict[str, Any]] = field(default_factory=list)

    checks: list[VerificationCheck] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return (
            all(check.passed for check in self.checks)
            and self.orphaned_rubric_refs == 0
            and self.orphaned_remedy_refs == 0
        )

    @property
    def verdict(self) -> str:
        return "PASSED" if self.passed else "PARTIAL"

    def to_dict(self) -> dict[str, Any]:
        return {
            "rubrics": {
                "total": self.rubrics_total,
                "global": self.rubrics_global,
                "by_type": self.rubrics_by_type,
            },
            "remedies": {"total": self.remedies_total, "global": self.remedies_global},
            "mappings": {"total": self.mappings_total, "by_type": self.mappings_by_type},
            "orphans": {
                "rubric_refs": self.orphaned_rubric_refs,
                "remedy_refs": self.orphaned_remedy_refs,
            },
            "checks": [
                {"name": c.name, "actual": c.actual, "expected": c.expected, "passed": c.passed}
                for c in self.checks
            ],
            "verdict": self.verdict,
        }


def verify_seed(store: KnowledgeStore, sample_size: int = SAMPLE_SIZE) -> VerificationReport:
    """Count the seeded collections and compare them with the expected volumes."""
    classical = {"modality": CLASSICAL_MODALITY}
    report = VerificationReport()

    report.rubrics_total = store.count(RUBRICS, classical)
    report.rubrics_global = store.count(RUBRICS, {**classical, "isGlobal": True})
    report.remedies_total = store.count(REMEDIES, classical)
    report.remedies_global = store.count(REMEDIES, {**classical, "isGlobal": True})
    report.mappings_total = store.count(MAPPINGS)

    for repertory in RepertoryType:
        report.rubrics_by_type[repertory.value] = store.count(
            RUBRICS, {**classical, "repertoryType": repertory.value}
        )
        report.mappings_by_type[repertory.value] = store.count(
            MAPPINGS, {"repertoryType": repertory.value}
        )

    report.orphaned_rubric_refs = store.count_orphans(MAPPINGS, "rubricId", RUBRICS)
    report.orphaned_remedy_refs = store.count_orphans(MAPPINGS, "remedyId", REMEDIES)

    report.sample_rubrics = [
        {"repertoryType": d.get("repertoryType"), "chapter": d.get("chapter"), "rubricText": d.get("rubricText")}
        for d in store.find(RUBRICS, classical, limit=sample_size)
    ]
    report.sample_remedies = [
        {"name": d.get("name"), "category": d.get("category")}
        for d in store.find(REMEDIES, classical, limit=sample_size)
    ]
    report.sample_mappings = [
        _describe_mapping(store, d) for d in store.find(MAPPINGS, limit=sample_size)
    ]

    publicum = RepertoryType.PUBLICUM.value
    report.checks = [
        VerificationCheck(
            "publicum rubrics",
            report.rubrics_by_type[publicum],
            EXPECTED_PUBLICUM_RUBRICS,
            int(EXPECTED_PUBLICUM_RUBRICS * COMPLETENESS_THRESHOLD),
        ),
        VerificationCheck("remedies", report.remedies_total, EXPECTED_REMEDIES, EXPECTED_REMEDIES),
        VerificationCheck(
            "publicum mappings",
            report.mappings_by_type[publicum],
            EXPECTED_PUBLICUM_MAPPINGS,
            int(EXPECTED_PUBLICUM_MAPPINGS * COMPLETENESS_THRESHOLD),
        ),
    ]

    for check in report.checks:
        if not check.passed:
            logger.warning(
                "{}: {} present, expected ~{} ({} missing)",
                check.name,
                check.actual,
                check.expected,
                check.expected - check.actual,
            )
    logger.info("Seeding verification: {}", report.verdict)
    return report


def _describe_mapping(store: KnowledgeStore, mapping: dict[str, Any]) -> dict[str, Any]:
    rubric = store.find(RUBRICS, {"_id": mapping.get("rubricId")}, limit=1)
    remedy = store.find(REMEDIES, {"_id": mapping.get("remedyId")}, limit=1)
    return {
        "repertoryType": mapping.get("repertoryType"),
        "grade": mapping.get("grade"),
        "remedy": remedy[0].get("name") if remedy else None,
        "rubric": rubric[0].get("rubricText") if rubric else None,
    }


def clear_seeded_data(store: KnowledgeStore) -> dict[str, int]:
    """
    Delete classical-homeopathy rubrics and remedies and every mapping.

    Returns:
        Deleted document counts per collection
    """
    classical = {"modality": CLASSICAL_MODALITY}
    deleted = {
        RUBRICS: store.delete_many(RUBRICS, classical),
        REMEDIES: store.delete_many(REMEDIES, classical),
        MAPPINGS: store.delete_many(MAPPINGS),
    }
    logger.info(
        "Deleted {} rubrics, {} remedies, {} mappings",
        deleted[RUBRICS],
        deleted[REMEDIES],
        deleted[MAPPINGS],
    )
    return deleted
