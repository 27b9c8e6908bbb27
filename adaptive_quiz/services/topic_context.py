"""
topic_context.py - Pedagogical context for adaptive quiz sessions

Resolves a course/subject/section triple against the catalog and collects:
- the section's own topic (main topic, hierarchy, future topic)
- every topic taught up to and including the section (prerequisites)
- every section that comes after it (upcoming material)

All topic collections are trimmed, de-duplicated and keep first-seen order.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Iterable, List, Dict, Any

from adaptive_quiz.config import settings
from adaptive_quiz.db import catalog

logger = logging.getLogger(__name__)


@dataclass
class SectionContext:
    course_id: str
    course_title: str
    subject_id: str
    subject_title: str
    section_id: str
    section_title: str
    section_overview: Optional[str]
    current_section_topics: List[str] = field(default_factory=list)
    topic_hierarchy_values: List[str] = field(default_factory=list)
    future_topic_values: List[str] = field(default_factory=list)
    all_previous_topics: List[str] = field(default_factory=list)
    all_future_sections: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def main_topic(self) -> str:
        return join_topics(self.current_section_topics)

    @property
    def topic_hierarchy(self) -> str:
        """The section's own hierarchy, or everything taught up to it."""
        return join_topics(self.topic_hierarchy_values) or join_topics(self.all_previous_topics)


# ── Topic set helpers ────────────────────────────────────────────────

def normalize_topic(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def unique_topics(values: Iterable) -> List[str]:
    """Trimmed, non-empty values in first-seen order."""
    seen: Dict[str, None] = {}
    for value in values:
        normalized = normalize_topic(value)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


def join_topics(values: Iterable) -> str:
    return ", ".join(unique_topics(values))


def slugify(text: str) -> str:
    text = re.sub(r"[^\w\s-]", "", text.lower().strip())
    text = re.sub(r"[\s_-]+", "-", text)
    return text.strip("-")


# ── Resolution ───────────────────────────────────────────────────────

async def resolve_course(db, course_ref: str) -> Optional[Dict[str, Any]]:
    """Find a course by id, then by stored slug, then by slug of its title."""
    if not course_ref:
        return None

    course = await catalog.get_course_by_id(db, course_ref)
    if course:
        return course

    course = await catalog.get_course_by_slug(db, course_ref)
    if course:
        return course

    for candidate in await catalog.list_courses(db):
        title = candidate.get("title")
        if isinstance(title, str) and slugify(title) == course_ref:
            return {**candidate, "slug": candidate.get("slug") or slugify(title)}
    return None


async def build_section_context(
    db, course_ref: str, subject_id: str, section_id: str
) -> Optional[SectionContext]:
    """Collect topic context for a section, or None if any catalog row is missing."""
    course = await resolve_course(db, course_ref)
    if not course:
        logger.warning("Course context not found for identifier %s", course_ref)
        return None

    subject = await catalog.get_subject(db, subject_id)
    if not subject:
        logger.warning("Subject context not found for identifier %s", subject_id)
        return None

    section = await catalog.get_section(db, section_id)
    if not section:
        logger.warning("Section context not found for identifier %s", section_id)
        return None

    module = await catalog.get_module(db, section["module_id"])
    if not module:
        logger.warning("Module %s of section %s not found", section["module_id"], section_id)
        return None

    own_topics = await catalog.get_section_topics(
        db,
        section_id,
        descending=settings.section_topic_order.lower() == "desc",
        limit=1,
    )

    context = SectionContext(
        course_id=course["id"],
        course_title=course["title"],
        subject_id=subject["id"],
        subject_title=subject["title"],
        section_id=section["id"],
        section_title=section["title"],
        section_overview=section.get("overview"),
        current_section_topics=unique_topics(t.get("topic_name") for t in own_topics),
        topic_hierarchy_values=unique_topics(t.get("topic_hierarchy") for t in own_topics),
        future_topic_values=unique_topics(t.get("future_topic") for t in own_topics),
    )

    context.all_previous_topics = await _collect_previous_topics(db, subject_id, module, section)
    context.all_future_sections = await _collect_future_sections(db, subject_id, module, section)

    logger.debug(
        "Section %s context: hierarchy=%s future=%s",
        section_id,
        context.topic_hierarchy_values,
        context.future_topic_values,
    )
    return context


async def _collect_previous_topics(db, subject_id: str, module: dict, section: dict) -> List[str]:
    """Topics of every section up to the current one, in module then section order."""
    topics: List[str] = []
    for previous_module in await catalog.get_modules_up_to(db, subject_id, module["order_index"]):
        for module_section in await catalog.get_module_sections(db, previous_module["id"]):
            if (
                previous_module["id"] == module["id"]
                and module_section["order_index"] > section["order_index"]
            ):
                continue
            for topic in await catalog.get_section_topics(db, module_section["id"]):
                value = normalize_topic(topic.get("topic_hierarchy")) or normalize_topic(
                    topic.get("topic_name")
                )
                if value:
                    topics.append(value)
    return unique_topics(topics)


async def _collect_future_sections(db, subject_id: str, module: dict, section: dict) -> List[Dict[str, Any]]:
    """Sections after the current one in its module, then sections of later modules."""
    future = [
        s
        for s in await catalog.get_module_sections(db, module["id"])
        if s["order_index"] > section["order_index"]
    ]
    for later_module in await catalog.get_modules_after(db, subject_id, module["order_index"]):
        future.extend(await catalog.get_module_sections(db, later_module["id"]))
    return future


async def build_future_topics(db, context: SectionContext) -> str:
    """future_topic string for the generator.

    Uses the section's own future_topic values; when there are none, falls back
    to the upcoming sections (title, overview and first topic of each).
    """
    if context.future_topic_values:
        return join_topics(context.future_topic_values)

    values: List[str] = []
    for future_section in context.all_future_sections:
        values.append(future_section.get("title"))
        values.append(future_section.get("overview"))
        first_topic = await catalog.get_section_topics(db, future_section["id"], limit=1)
        for topic in first_topic:
            values.append(normalize_topic(topic.get("future_topic")) or topic.get("topic_name"))
    return join_topics(values)
