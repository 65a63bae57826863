from __future__ import annotations

import sqlite3
import time
from typing import Any

from .connection import update_columns


_PROJECT_COLUMNS = {
    "name",
    "description",
    "status",
    "priority",
    "client_id",
    "start_date",
    "end_date",
    "archived",
    "allow_time_tracking",
    "allow_manual_time_submission",
    "require_approval",
}


def create_project(
    conn: sqlite3.Connection,
    *,
    organization_id: int,
    name: str,
    created_by: int,
    description: str = "",
    status: str = "planning",
    priority: str = "medium",
    client_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    allow_time_tracking: bool = True,
    allow_manual_time_submission: bool = True,
    require_approval: bool = False,
) -> int:
    now = int(time.time())
    number = conn.execute(
        "SELECT COALESCE(MAX(project_number), 0) + 1 AS n FROM projects WHERE organization_id = ?",
        (organization_id,),
    ).fetchone()["n"]
    cur = conn.execute(
        """
        INSERT INTO projects(
          organization_id,project_number,name,description,status,priority,created_by,client_id,
          start_date,end_date,allow_time_tracking,allow_manual_time_submission,require_approval,created_at,updated_at
        )
        VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            organization_id,
            int(number),
            name,
            description,
            status,
            priority,
            created_by,
            client_id,
            start_date,
            end_date,
            1 if allow_time_tracking else 0,
            1 if allow_manual_time_submission else 0,
            1 if require_approval else 0,
            now,
            now,
        ),
    )
    project_id = int(cur.lastrowid)
    set_project_member(conn, project_id, created_by, "project_manager")
    return project_id


def get_project(conn: sqlite3.Connection, project_id: int):
    return conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()


def get_org_project(conn: sqlite3.Connection, organization_id: int, project_id: int):
    return conn.execute(
        "SELECT * FROM projects WHERE id = ? AND organization_id = ?",
        (project_id, organization_id),
    ).fetchone()


def get_project_by_number(conn: sqlite3.Connection, organization_id: int, project_number: int):
    return conn.execute(
        "SELECT * FROM projects WHERE organization_id = ? AND project_number = ?",
        (organization_id, project_number),
    ).fetchone()


def list_projects(conn: sqlite3.Connection, organization_id: int, *, include_archived: bool = False):
    sql = "SELECT * FROM projects WHERE organization_id = ?"
    if not include_archived:
        sql += " AND archived = 0"
    return conn.execute(sql + " ORDER BY project_number ASC", (organization_id,)).fetchall()


def list_member_project_ids(conn: sqlite3.Connection, organization_id: int, user_id: int) -> list[int]:
    rows = conn.execute(
        """
        SELECT p.id
        FROM projects p
        LEFT JOIN project_members pm ON pm.project_id = p.id AND pm.user_id = ?
        WHERE p.organization_id = ?
          AND (pm.user_id IS NOT NULL OR p.created_by = ? OR p.client_id = ?)
        ORDER BY p.id ASC
        """,
        (user_id, organization_id, user_id, user_id),
    ).fetchall()
    return [int(r["id"]) for r in rows]


def update_project(conn: sqlite3.Connection, project_id: int, fields: dict[str, Any]) -> None:
    if not fields:
        return
    values = dict(fields)
    values["updated_at"] = int(time.time())
    update_columns(conn, "projects", project_id, values, allowed=_PROJECT_COLUMNS | {"updated_at"})


def set_project_member(conn: sqlite3.Connection, project_id: int, user_id: int, project_role: str) -> None:
    now = int(time.time())
    conn.execute(
        """
        INSERT INTO project_members(project_id,user_id,project_role,created_at) VALUES(?,?,?,?)
        ON CONFLICT(project_id,user_id) DO UPDATE SET project_role=excluded.project_role
        """,
        (project_id, user_id, project_role, now),
    )


def remove_project_member(conn: sqlite3.Connection, project_id: int, user_id: int) -> bool:
    cur = conn.execute("DELETE FROM project_members WHERE project_id = ? AND user_id = ?", (project_id, user_id))
    return bool(cur.rowcount)


def get_project_member(conn: sqlite3.Connection, project_id: int, user_id: int):
    return conn.execute(
        "SELECT * FROM project_members WHERE project_id = ? AND user_id = ?",
        (project_id, user_id),
    ).fetchone()


def list_project_members(conn: sqlite3.Connection, project_id: int):
    return conn.execute(
        """
        SELECT pm.*, u.username, u.display_name, u.role
        FROM project_members pm
        JOIN users u ON u.id = pm.user_id
        WHERE pm.project_id = ?
        ORDER BY pm.created_at ASC, pm.user_id ASC
        """,
        (project_id,),
    ).fetchall()
