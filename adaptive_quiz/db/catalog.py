"""
catalog.py - Read-only queries against the course catalog

Courses, subjects, modules, sections and section topics are owned by the
wider platform; the adaptive quiz engine only reads them to build the
pedagogical context for a session.
"""

from typing import Optional, List, Dict, Any

from adaptive_quiz.db.database import fetch_one, fetch_all


# ══════════════════════════════════════════════════════════════════════════════
# COURSES / SUBJECTS
# ══════════════════════════════════════════════════════════════════════════════

async def get_course_by_id(db, course_id: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(db, "SELECT id, title, slug FROM courses WHERE id = ?", (course_id,))
    return dict(row) if row else None


async def get_course_by_slug(db, slug: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(
        db, "SELECT id, title, slug FROM courses WHERE slug = ? LIMIT 1", (slug,)
    )
    return dict(row) if row else None


async def list_courses(db) -> List[Dict[str, Any]]:
    rows = await fetch_all(db, "SELECT id, title, slug FROM courses ORDER BY title")
    return [dict(r) for r in rows]


async def get_subject(db, subject_id: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(db, "SELECT id, title FROM subjects WHERE id = ?", (subject_id,))
    return dict(row) if row else None


# ══════════════════════════════════════════════════════════════════════════════
# MODULES / SECTIONS
# ══════════════════════════════════════════════════════════════════════════════

async def get_section(db, section_id: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(
        db,
        "SELECT id, module_id, title, overview, order_index FROM sections WHERE id = ?",
        (section_id,),
    )
    return dict(row) if row else None


async def get_module(db, module_id: str) -> Optional[Dict[str, Any]]:
    row = await fetch_one(
        db, "SELECT id, subject_id, order_index FROM modules WHERE id = ?", (module_id,)
    )
    return dict(row) if row else None


async def get_modules_up_to(db, subject_id: str, order_index: int) -> List[Dict[str, Any]]:
    """Modules of a subject with order_index <= the given one, in module order."""
    rows = await fetch_all(
        db,
        """SELECT id, order_index FROM modules
           WHERE subject_id = ? AND order_index <= ?
           ORDER BY order_index ASC""",
        (subject_id, order_index),
    )
    return [dict(r) for r in rows]


async def get_modules_after(db, subject_id: str, order_index: int) -> List[Dict[str, Any]]:
    rows = await fetch_all(
        db,
        """SELECT id, order_index FROM modules
           WHERE subject_id = ? AND order_index > ?
           ORDER BY order_index ASC""",
        (subject_id, order_index),
    )
    return [dict(r) for r in rows]


async def get_module_sections(db, module_id: str) -> List[Dict[str, Any]]:
    rows = await fetch_all(
        db,
        """SELECT id, module_id, title, overview, order_index FROM sections
           WHERE module_id = ?
           ORDER BY order_index ASC""",
        (module_id,),
    )
    return [dict(r) for r in rows]


# ══════════════════════════════════════════════════════════════════════════════
# SECTION TOPICS
# ══════════════════════════════════════════════════════════════════════════════

async def get_section_topics(
    db,
    section_id: str,
    descending: bool = False,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Topic rows for a section ordered by order_index."""
    sql = f"""SELECT topic_name, topic_hierarchy, future_topic, order_index
              FROM section_topics
              WHERE section_id = ?
              ORDER BY order_index {'DESC' if descending else 'ASC'}"""
    params: tuple = (section_id,)
    if limit is not None:
        sql += " LIMIT ?"
        params = (section_id, limit)
    rows = await fetch_all(db, sql, params)
    return [dict(r) for r in rows]
