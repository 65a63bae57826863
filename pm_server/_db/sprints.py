from __future__ import annotations

import sqlite3
import time
from typing import Any

from .connection import update_columns


_SPRINT_COLUMNS = {
    "name",
    "description",
    "goal",
    "status",
    "start_date",
    "end_date",
    "actual_start_date",
    "actual_end_date",
    "capacity",
    "archived",
}


def create_sprint(
    conn: sqlite3.Connection,
    *,
    organization_id: int,
    project_id: int,
    name: str,
    created_by: int,
    description: str = "",
    goal: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    capacity: float = 0,
) -> int:
    now = int(time.time())
    cur = conn.execute(
        """
        INSERT INTO sprints(
          organization_id,project_id,name,description,goal,status,start_date,end_date,capacity,created_by,created_at,updated_at
        )
        VALUES(?,?,?,?,?,'planning',?,?,?,?,?,?)
        """,
        (organization_id, project_id, name, description, goal, start_date, end_date, capacity, created_by, now, now),
    )
    return int(cur.lastrowid)


def get_sprint(conn: sqlite3.Connection, sprint_id: int):
    return conn.execute("SELECT * FROM sprints WHERE id = ?", (sprint_id,)).fetchone()


def list_sprints(
    conn: sqlite3.Connection,
    organization_id: int,
    *,
    project_ids: list[int] | None = None,
    include_archived: bool = False,
):
    sql = "SELECT * FROM sprints WHERE organization_id = ?"
    params: list[object] = [organization_id]
    if project_ids is not None:
        if not project_ids:
            return []
        sql += f" AND project_id IN ({','.join('?' for _ in project_ids)})"
        params.extend(project_ids)
    if not include_archived:
        sql += " AND archived = 0"
    return conn.execute(sql + " ORDER BY id DESC", tuple(params)).fetchall()


def update_sprint(conn: sqlite3.Connection, sprint_id: int, fields: dict[str, Any]) -> None:
    if not fields:
        return
    values = dict(fields)
    values["updated_at"] = int(time.time())
    update_columns(conn, "sprints", sprint_id, values, allowed=_SPRINT_COLUMNS | {"updated_at"})


def delete_sprint(conn: sqlite3.Connection, sprint_id: int) -> None:
    conn.execute("UPDATE tasks SET sprint_id = NULL WHERE sprint_id = ?", (sprint_id,))
    conn.execute("DELETE FROM sprints WHERE id = ?", (sprint_id,))
