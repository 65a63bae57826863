from __future__ import annotations

import sqlite3
import time
from typing import Any

from .connection import dump_json, update_columns


_TASK_COLUMNS = {
    "title",
    "description",
    "status",
    "priority",
    "type",
    "story_id",
    "epic_id",
    "sprint_id",
    "moved_from_sprint_id",
    "assigned_to_json",
    "story_points",
    "estimated_hours",
    "due_date",
    "start_date",
    "labels_json",
    "archived",
    "position",
    "completed_at",
}

_SELECT_TASK = """
    SELECT t.*, p.project_number, p.name AS project_name
    FROM tasks t
    JOIN projects p ON p.id = t.project_id
"""


def create_task(
    conn: sqlite3.Connection,
    *,
    organization_id: int,
    project_id: int,
    title: str,
    created_by: int,
    description: str = "",
    status: str = "backlog",
    priority: str = "medium",
    task_type: str = "task",
    story_id: int | None = None,
    epic_id: int | None = None,
    sprint_id: int | None = None,
    assigned_to: list[int] | None = None,
    story_points: float | None = None,
    estimated_hours: float | None = None,
    due_date: str | None = None,
    labels: list[str] | None = None,
) -> int:
    now = int(time.time())
    number = conn.execute(
        "SELECT COALESCE(MAX(task_number), 0) + 1 AS n FROM tasks WHERE project_id = ?",
        (project_id,),
    ).fetchone()["n"]
    position = conn.execute(
        "SELECT COUNT(1) AS c FROM tasks WHERE project_id = ? AND status = ?",
        (project_id, status),
    ).fetchone()["c"]
    cur = conn.execute(
        """
        INSERT INTO tasks(
          organization_id,project_id,task_number,title,description,status,priority,type,story_id,epic_id,sprint_id,
          assigned_to_json,story_points,estimated_hours,due_date,labels_json,position,created_by,created_at,updated_at
        )
        VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            organization_id,
            project_id,
            int(number),
            title,
            description,
            status,
            priority,
            task_type,
            story_id,
            epic_id,
            sprint_id,
            dump_json(list(assigned_to or [])),
            story_points,
            estimated_hours,
            due_date,
            dump_json(list(labels or [])),
            int(position),
            created_by,
            now,
            now,
        ),
    )
    return int(cur.lastrowid)


def get_task(conn: sqlite3.Connection, task_id: int):
    return conn.execute(_SELECT_TASK + " WHERE t.id = ?", (task_id,)).fetchone()


def get_task_by_display_id(conn: sqlite3.Connection, organization_id: int, project_number: int, task_number: int):
    return conn.execute(
        _SELECT_TASK + " WHERE t.organization_id = ? AND p.project_number = ? AND t.task_number = ?",
        (organization_id, project_number, task_number),
    ).fetchone()


def list_tasks(
    conn: sqlite3.Connection,
    organization_id: int,
    *,
    project_ids: list[int] | None = None,
    sprint_id: int | None = None,
    story_id: int | None = None,
    epic_id: int | None = None,
    status: str | None = None,
    include_archived: bool = False,
):
    where = ["t.organization_id = ?"]
    params: list[object] = [organization_id]
    if project_ids is not None:
        if not project_ids:
            return []
        where.append(f"t.project_id IN ({','.join('?' for _ in project_ids)})")
        params.extend(project_ids)
    if sprint_id is not None:
        where.append("t.sprint_id = ?")
        params.append(sprint_id)
    if story_id is not None:
        where.append("t.story_id = ?")
        params.append(story_id)
    if epic_id is not None:
        where.append("t.epic_id = ?")
        params.append(epic_id)
    if status is not None:
        where.append("t.status = ?")
        params.append(status)
    if not include_archived:
        where.append("t.archived = 0")
    sql = _SELECT_TASK + " WHERE " + " AND ".join(where) + " ORDER BY t.position ASC, t.id ASC"
    return conn.execute(sql, tuple(params)).fetchall()


def update_task(conn: sqlite3.Connection, task_id: int, fields: dict[str, Any]) -> None:
    if not fields:
        return
    values = dict(fields)
    values["updated_at"] = int(time.time())
    update_columns(conn, "tasks", task_id, values, allowed=_TASK_COLUMNS | {"updated_at"})


def delete_task(conn: sqlite3.Connection, task_id: int) -> None:
    conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))


def add_task_comment(conn: sqlite3.Connection, task_id: int, *, user_id: int, content: str) -> int:
    now = int(time.time())
    cur = conn.execute(
        "INSERT INTO task_comments(task_id,user_id,content,created_at) VALUES(?,?,?,?)",
        (task_id, user_id, content, now),
    )
    return int(cur.lastrowid)


def list_task_comments(conn: sqlite3.Connection, task_id: int):
    return conn.execute(
        """
        SELECT c.*, u.username
        FROM task_comments c
        JOIN users u ON u.id = c.user_id
        WHERE c.task_id = ?
        ORDER BY c.id ASC
        """,
        (task_id,),
    ).fetchall()
