"""
Unit tests for the chapter index and entity transformers.
"""

import pytest
from bson import ObjectId

from oorep_seed.etl.identity import IdentityResolver
from oorep_seed.etl.models import (
    CLASSICAL_MODALITY,
    DEFAULT_POTENCIES,
    RawChapter,
    RawMapping,
    RawRemedy,
    RawRubric,
    RepertoryType,
)
from oorep_seed.etl.transformers import (
    EMPTY_NAME,
    EMPTY_TEXT,
    NON_TARGET_LOCALE,
    UNRESOLVED_REMEDY,
    UNRESOLVED_RUBRIC,
    ChapterIndex,
    MappingTransformer,
    RemedyTransformer,
    RubricTransformer,
    category_for,
    clamp_grade,
    pick_rubric_text,
)


def rubric(id=100, abbrev="publicum", chapter=5, fullpath=None, path=None, text="Ailments from grief", chapter_text=None):
    return RawRubric(
        external_id=id,
        repertory_abbrev=abbrev,
        chapter_external_id=chapter,
        fullpath=fullpath,
        path=path,
        text=text,
        chapter_text=chapter_text,
    )


class TestChapterIndex:
    """Tests for chapter name lookup."""

    def test_known_chapter(self):
        index = ChapterIndex([RawChapter(5, "Mind")])

        assert index.name_for(5) == "Mind"

    def test_unknown_chapter_defaults(self):
        index = ChapterIndex([RawChapter(5, "Mind")])

        assert index.name_for(6) == "Unknown"
        assert index.name_for(None) == "Unknown"

    def test_fallback_text_used(self):
        assert ChapterIndex().name_for(6, " Head ") == "Head"

    def test_blank_chapter_text_not_indexed(self):
        index = ChapterIndex([RawChapter(5, "  ")])

        assert len(index) == 0
        assert index.name_for(5) == "Unknown"


class TestRubricTransformer:
    """Tests for rubric normalization."""

    def test_scenario_a_rubric(self):
        transformer = RubricTransformer(ChapterIndex([RawChapter(5, "Mind")]))

        [record] = transformer.transform([rubric()])

        assert record.chapter == "Mind"
        assert record.rubric_text == "Ailments from grief"
        assert record.repertory_type is RepertoryType.PUBLICUM
        assert record.modality == CLASSICAL_MODALITY
        assert record.is_global is True

    def test_text_falls_back_to_fullpath_then_path(self):
        assert pick_rubric_text(rubric(text=None, fullpath="Mind, grief", path="grief")) == "Mind, grief"
        assert pick_rubric_text(rubric(text="  ", fullpath=None, path="grief")) == "grief"

    def test_text_is_trimmed(self):
        assert pick_rubric_text(rubric(text="  Anxiety  ")) == "Anxiety"

    def test_empty_text_dropped(self):
        transformer = RubricTransformer(ChapterIndex())

        records = transformer.transform([rubric(text=None, fullpath="", path=None)])

        assert records == []
        assert transformer.stats.dropped[EMPTY_TEXT] == 1

    def test_joined_chapter_text_used_when_index_misses(self):
        transformer = RubricTransformer(ChapterIndex())

        [record] = transformer.transform([rubric(chapter_text="Mind")])

        assert record.chapter == "Mind"

    @pytest.mark.parametrize("abbrev", ["kent-de", "bogboen", "Publicum", ""])
    def test_non_target_locale_dropped(self, abbrev):
        transformer = RubricTransformer(ChapterIndex())

        assert transformer.transform([rubric(abbrev=abbrev)]) == []
        assert transformer.stats.dropped[NON_TARGET_LOCALE] == 1

    def test_locale_completeness(self):
        rows = [rubric(id=i, abbrev=("publicum" if i % 3 else "kent-de")) for i in range(30)]
        transformer = RubricTransformer(ChapterIndex())

        records = transformer.transform(rows)

        non_publicum = sum(1 for r in rows if r.repertory_abbrev != "publicum")
        assert transformer.stats.dropped[NON_TARGET_LOCALE] == non_publicum
        assert len(records) == len(rows) - non_publicum
        assert transformer.stats.processed == len(rows)

    def test_document_shape(self):
        [record] = RubricTransformer(ChapterIndex([RawChapter(5, "Mind")])).transform([rubric()])

        assert record.to_document() == {
            "repertoryType": "publicum",
            "chapter": "Mind",
            "rubricText": "Ailments from grief",
            "linkedSymptoms": [],
            "modality": "classical_homeopathy",
            "isGlobal": True,
        }


class TestRemedyTransformer:
    """Tests for remedy normalization."""

    def test_long_name_preferred(self):
        [record] = RemedyTransformer().transform([RawRemedy(10, "Nat-m", "Natrum Muriaticum")])

        assert record.name == "Natrum Muriaticum"
        assert record.category == "Unknown"
        assert record.supported_potencies == list(DEFAULT_POTENCIES)

    def test_abbrev_fallback(self):
        [record] = RemedyTransformer().transform([RawRemedy(10, "Nat-m", "  ")])

        assert record.name == "Nat-m"

    def test_empty_name_dropped(self):
        transformer = RemedyTransformer()

        assert transformer.transform([RawRemedy(10, "", None)]) == []
        assert transformer.stats.dropped[EMPTY_NAME] == 1

    def test_kingdom_category(self):
        [record] = RemedyTransformer().transform([RawRemedy(1, "Acon.", "Aconitum", kingdom="Plant")])

        assert record.category == "Plant Kingdom"

    @pytest.mark.parametrize(
        "kingdom,expected",
        [("mineral", "Mineral Kingdom"), ("NOSODE", "Nosode"), ("fungus", "Unknown"), (None, "Unknown")],
    )
    def test_category_for(self, kingdom, expected):
        assert category_for(kingdom) == expected

    def test_document_has_no_nulls(self):
        [record] = RemedyTransformer().transform([RawRemedy(10, "Nat-m", "Natrum Muriaticum")])
        document = record.to_document()

        assert document["materiaMedica"] == {"keynotes": [], "pathogenesis": "", "clinicalNotes": ""}
        assert document["modalities"] == {"better": [], "worse": []}
        assert None not in document.values()


class TestClampGrade:
    """Tests for weight to grade clamping."""

    @pytest.mark.parametrize(
        "weight,grade",
        [(9, 4), (0, 1), (-3, 1), (None, 1), (1, 1), (2, 2), (3, 3), (4, 4), (5, 4)],
    )
    def test_clamp(self, weight, grade):
        assert clamp_grade(weight) == grade


class TestMappingTransformer:
    """Tests for mapping normalization through the identity resolver."""

    @pytest.fixture
    def resolver(self):
        resolver = IdentityResolver()
        resolver.rubrics.register(100, ObjectId())
        resolver.remedies.register(10, ObjectId())
        return resolver

    def test_scenario_a_mapping(self, resolver):
        [record] = MappingTransformer(resolver).transform([RawMapping("publicum", 100, 10, 9)])

        assert record.grade == 4
        assert record.repertory_type is RepertoryType.PUBLICUM
        assert record.rubric_id == resolver.rubrics.resolve(100)
        assert record.remedy_id == resolver.remedies.resolve(10)

    def test_scenario_b_mapping(self, resolver):
        transformer = MappingTransformer(resolver)

        assert transformer.transform([RawMapping("kent-de", 100, 10, 9)]) == []
        assert transformer.stats.dropped == {NON_TARGET_LOCALE: 1}

    def test_unresolved_endpoints_dropped(self, resolver):
        transformer = MappingTransformer(resolver)

        records = transformer.transform([
            RawMapping("publicum", 999, 10, 2),
            RawMapping("publicum", 100, 999, 2),
        ])

        assert records == []
        assert transformer.stats.dropped[UNRESOLVED_RUBRIC] == 1
        assert transformer.stats.dropped[UNRESOLVED_REMEDY] == 1

    def test_stats_to_dict(self, resolver):
        transformer = MappingTransformer(resolver)
        transformer.transform([RawMapping("publicum", 100, 10, 2), RawMapping("kent-de", 100, 10, 2)])

        assert transformer.stats.to_dict() == {
            "processed": 2,
            "accepted": 1,
            "dropped": {NON_TARGET_LOCALE: 1},
        }
