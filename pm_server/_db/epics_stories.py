from __future__ import annotations

import sqlite3
import time
from typing import Any

from .connection import dump_json, update_columns


_EPIC_COLUMNS = {
    "title",
    "description",
    "status",
    "priority",
    "story_points",
    "tags_json",
    "assigned_to",
    "archived",
    "completed_at",
}

_STORY_COLUMNS = {
    "title",
    "description",
    "epic_id",
    "sprint_id",
    "acceptance_criteria_json",
    "status",
    "priority",
    "story_points",
    "assigned_to",
    "archived",
    "completed_at",
}


def create_epic(
    conn: sqlite3.Connection,
    *,
    organization_id: int,
    project_id: int,
    title: str,
    created_by: int,
    description: str = "",
    status: str = "backlog",
    priority: str = "medium",
    story_points: float | None = None,
    tags: list[str] | None = None,
    assigned_to: int | None = None,
) -> int:
    now = int(time.time())
    cur = conn.execute(
        """
        INSERT INTO epics(
          organization_id,project_id,title,description,status,priority,story_points,tags_json,assigned_to,
          created_by,created_at,updated_at
        )
        VALUES(?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            organization_id,
            project_id,
            title,
            description,
            status,
            priority,
            story_points,
            dump_json(list(tags or [])),
            assigned_to,
            created_by,
            now,
            now,
        ),
    )
    return int(cur.lastrowid)


def get_epic(conn: sqlite3.Connection, epic_id: int):
    return conn.execute("SELECT * FROM epics WHERE id = ?", (epic_id,)).fetchone()


def list_epics(conn: sqlite3.Connection, organization_id: int, *, project_id: int | None = None, include_archived: bool = False):
    sql = "SELECT * FROM epics WHERE organization_id = ?"
    params: list[object] = [organization_id]
    if project_id is not None:
        sql += " AND project_id = ?"
        params.append(project_id)
    if not include_archived:
        sql += " AND archived = 0"
    return conn.execute(sql + " ORDER BY id ASC", tuple(params)).fetchall()


def update_epic(conn: sqlite3.Connection, epic_id: int, fields: dict[str, Any]) -> None:
    if not fields:
        return
    values = dict(fields)
    values["updated_at"] = int(time.time())
    update_columns(conn, "epics", epic_id, values, allowed=_EPIC_COLUMNS | {"updated_at"})


def delete_epic(conn: sqlite3.Connection, epic_id: int) -> None:
    conn.execute("DELETE FROM epics WHERE id = ?", (epic_id,))


def create_story(
    conn: sqlite3.Connection,
    *,
    organization_id: int,
    project_id: int,
    title: str,
    created_by: int,
    description: str = "",
    epic_id: int | None = None,
    sprint_id: int | None = None,
    acceptance_criteria: list[str] | None = None,
    status: str = "backlog",
    priority: str = "medium",
    story_points: float | None = None,
    assigned_to: int | None = None,
) -> int:
    now = int(time.time())
    cur = conn.execute(
        """
        INSERT INTO stories(
          organization_id,project_id,epic_id,sprint_id,title,description,acceptance_criteria_json,status,priority,
          story_points,assigned_to,created_by,created_at,updated_at
        )
        VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            organization_id,
            project_id,
            epic_id,
            sprint_id,
            title,
            description,
            dump_json(list(acceptance_criteria or [])),
            status,
            priority,
            story_points,
            assigned_to,
            created_by,
            now,
            now,
        ),
    )
    return int(cur.lastrowid)


def get_story(conn: sqlite3.Connection, story_id: int):
    return conn.execute("SELECT * FROM stories WHERE id = ?", (story_id,)).fetchone()


def list_stories(
    conn: sqlite3.Connection,
    organization_id: int,
    *,
    project_id: int | None = None,
    epic_id: int | None = None,
    sprint_id: int | None = None,
    include_archived: bool = False,
):
    sql = "SELECT * FROM stories WHERE organization_id = ?"
    params: list[object] = [organization_id]
    if project_id is not None:
        sql += " AND project_id = ?"
        params.append(project_id)
    if epic_id is not None:
        sql += " AND epic_id = ?"
        params.append(epic_id)
    if sprint_id is not None:
        sql += " AND sprint_id = ?"
        params.append(sprint_id)
    if not include_archived:
        sql += " AND archived = 0"
    return conn.execute(sql + " ORDER BY id ASC", tuple(params)).fetchall()


def update_story(conn: sqlite3.Connection, story_id: int, fields: dict[str, Any]) -> None:
    if not fields:
        return
    values = dict(fields)
    values["updated_at"] = int(time.time())
    update_columns(conn, "stories", story_id, values, allowed=_STORY_COLUMNS | {"updated_at"})


def delete_story(conn: sqlite3.Connection, story_id: int) -> None:
    conn.execute("DELETE FROM stories WHERE id = ?", (story_id,))
