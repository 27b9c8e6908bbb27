"""Tests for section context resolution against the catalog."""

import pytest

from adaptive_quiz.config import settings
from adaptive_quiz.services.topic_context import (
    build_future_topics,
    build_section_context,
    join_topics,
    resolve_course,
    slugify,
    unique_topics,
)

from conftest import COURSE_ID, SECTION_ID, SUBJECT_ID


class TestTopicHelpers:

    def test_unique_topics_trims_and_keeps_first_seen_order(self):
        assert unique_topics([" B ", "A", "B", None, "", "  ", 3, "C"]) == ["B", "A", "C"]

    def test_join_topics(self):
        assert join_topics(["Cells", "Genetics", "Cells"]) == "Cells, Genetics"
        assert join_topics([]) == ""

    def test_slugify(self):
        assert slugify("Intro to Biology") == "intro-to-biology"
        assert slugify("  C++ & Data_Structures! ") == "c-data-structures"


class TestResolveCourse:

    async def test_by_id(self, db):
        course = await resolve_course(db, COURSE_ID)
        assert course["id"] == COURSE_ID

    async def test_by_slugified_title(self, db):
        course = await resolve_course(db, "intro-to-biology")
        assert course["id"] == COURSE_ID
        assert course["slug"] == "intro-to-biology"

    async def test_by_stored_slug(self, db):
        await db.execute("UPDATE courses SET slug = 'bio-101' WHERE id = ?", (COURSE_ID,))
        await db.commit()
        course = await resolve_course(db, "bio-101")
        assert course["id"] == COURSE_ID

    async def test_unknown(self, db):
        assert await resolve_course(db, "chemistry") is None
        assert await resolve_course(db, "") is None


class TestBuildSectionContext:

    async def test_section_topics_use_last_topic_row(self, db):
        context = await build_section_context(db, COURSE_ID, SUBJECT_ID, SECTION_ID)

        assert context.section_title == "Genetics"
        assert context.main_topic == "Punnett squares"
        assert context.topic_hierarchy == "Biology > Genetics > Punnett"
        assert context.future_topic_values == []

    async def test_ascending_topic_order(self, db, monkeypatch):
        monkeypatch.setattr(settings, "section_topic_order", "asc")
        context = await build_section_context(db, COURSE_ID, SUBJECT_ID, SECTION_ID)

        assert context.main_topic == "Mendel"
        assert context.future_topic_values == ["DNA replication"]
        assert await build_future_topics(db, context) == "DNA replication"

    async def test_previous_topics_stop_at_current_section(self, db):
        context = await build_section_context(db, COURSE_ID, SUBJECT_ID, SECTION_ID)

        assert context.all_previous_topics == [
            "Biology > Cells",
            "Biology > Genetics > Mendel",
            "Biology > Genetics > Punnett",
        ]

    async def test_future_sections_span_later_modules(self, db):
        context = await build_section_context(db, COURSE_ID, SUBJECT_ID, "section-cells")

        assert [s["id"] for s in context.all_future_sections] == [
            "section-genetics",
            "section-evolution",
            "section-ecology",
        ]

    async def test_future_topics_fall_back_to_upcoming_sections(self, db):
        context = await build_section_context(db, COURSE_ID, SUBJECT_ID, SECTION_ID)

        future = await build_future_topics(db, context)
        assert future == "Evolution, How species change, Speciation, Ecology"

    async def test_hierarchy_falls_back_to_previous_topics(self, db):
        context = await build_section_context(db, COURSE_ID, SUBJECT_ID, "section-ecology")

        assert context.main_topic == ""
        assert context.topic_hierarchy.startswith("Biology > Cells, ")
        assert "Natural selection" in context.topic_hierarchy

    async def test_resolves_course_by_slug(self, db):
        context = await build_section_context(db, "intro-to-biology", SUBJECT_ID, SECTION_ID)
        assert context.course_id == COURSE_ID

    @pytest.mark.parametrize(
        "course_ref, subject_id, section_id",
        [
            ("missing-course", SUBJECT_ID, SECTION_ID),
            (COURSE_ID, "missing-subject", SECTION_ID),
            (COURSE_ID, SUBJECT_ID, "missing-section"),
        ],
    )
    async def test_missing_catalog_rows(self, db, course_ref, subject_id, section_id):
        assert await build_section_context(db, course_ref, subject_id, section_id) is None
