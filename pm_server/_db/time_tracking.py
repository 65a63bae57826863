from __future__ import annotations

import sqlite3
import time
from typing import Any

from .connection import dump_json, load_json, update_columns


_ENTRY_COLUMNS = {
    "project_id",
    "task_id",
    "description",
    "start_time",
    "end_time",
    "duration",
    "is_billable",
    "hourly_rate",
    "status",
    "category",
    "tags_json",
    "notes",
}

_TIMER_COLUMNS = {
    "description",
    "paused_at",
    "total_paused_minutes",
    "category",
    "tags_json",
    "last_activity",
}


def get_settings_record(conn: sqlite3.Connection, organization_id: int, project_id: int | None) -> dict | None:
    if project_id is None:
        row = conn.execute(
            "SELECT settings_json FROM time_tracking_settings WHERE organization_id = ? AND project_id IS NULL",
            (organization_id,),
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT settings_json FROM time_tracking_settings WHERE organization_id = ? AND project_id = ?",
            (organization_id, project_id),
        ).fetchone()
    if not row:
        return None
    return load_json(row["settings_json"], {})


def save_settings_record(conn: sqlite3.Connection, organization_id: int, project_id: int | None, values: dict) -> None:
    now = int(time.time())
    raw = dump_json(values)
    if project_id is None:
        cur = conn.execute(
            "UPDATE time_tracking_settings SET settings_json = ?, updated_at = ? WHERE organization_id = ? AND project_id IS NULL",
            (raw, now, organization_id),
        )
    else:
        cur = conn.execute(
            "UPDATE time_tracking_settings SET settings_json = ?, updated_at = ? WHERE organization_id = ? AND project_id = ?",
            (raw, now, organization_id, project_id),
        )
    if cur.rowcount:
        return
    conn.execute(
        """
        INSERT INTO time_tracking_settings(organization_id,project_id,settings_json,created_at,updated_at)
        VALUES(?,?,?,?,?)
        """,
        (organization_id, project_id, raw, now, now),
    )


def create_timer(
    conn: sqlite3.Connection,
    *,
    user_id: int,
    organization_id: int,
    project_id: int,
    task_id: int | None,
    description: str,
    start_time: int,
    category: str | None,
    tags: list[str],
    is_billable: bool,
    hourly_rate: float | None,
    max_session_hours: float,
) -> int:
    try:
        cur = conn.execute(
            """
            INSERT INTO active_timers(
              user_id,organization_id,project_id,task_id,description,start_time,category,tags_json,
              is_billable,hourly_rate,max_session_hours,last_activity,created_at
            )
            VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?)
            """,
            (
                user_id,
                organization_id,
                project_id,
                task_id,
                description,
                start_time,
                category,
                dump_json(tags),
                1 if is_billable else 0,
                hourly_rate,
                max_session_hours,
                start_time,
                start_time,
            ),
        )
    except sqlite3.IntegrityError as e:
        raise ValueError("timer_already_active") from e
    return int(cur.lastrowid)


_SELECT_TIMER = """
    SELECT at.*, p.name AS project_name, t.title AS task_title, u.username, u.role, u.display_name
    FROM active_timers at
    JOIN projects p ON p.id = at.project_id
    JOIN users u ON u.id = at.user_id
    LEFT JOIN tasks t ON t.id = at.task_id
"""


def get_active_timer(conn: sqlite3.Connection, user_id: int, organization_id: int):
    return conn.execute(
        _SELECT_TIMER + " WHERE at.user_id = ? AND at.organization_id = ?",
        (user_id, organization_id),
    ).fetchone()


def list_active_timers(conn: sqlite3.Connection, organization_id: int | None = None):
    if organization_id is None:
        return conn.execute(_SELECT_TIMER + " ORDER BY at.start_time ASC").fetchall()
    return conn.execute(
        _SELECT_TIMER + " WHERE at.organization_id = ? ORDER BY at.start_time ASC",
        (organization_id,),
    ).fetchall()


def update_timer(conn: sqlite3.Connection, timer_id: int, fields: dict[str, Any]) -> None:
    update_columns(conn, "active_timers", timer_id, fields, allowed=_TIMER_COLUMNS)


def delete_timer(conn: sqlite3.Connection, timer_id: int) -> None:
    conn.execute("DELETE FROM active_timers WHERE id = ?", (timer_id,))


def create_time_entry(
    conn: sqlite3.Connection,
    *,
    user_id: int,
    organization_id: int,
    project_id: int,
    task_id: int | None,
    description: str,
    start_time: int,
    end_time: int | None,
    duration: float,
    is_billable: bool,
    hourly_rate: float | None,
    status: str,
    category: str | None = None,
    tags: list[str] | None = None,
    notes: str | None = None,
    is_approved: bool = False,
) -> int:
    now = int(time.time())
    cur = conn.execute(
        """
        INSERT INTO time_entries(
          user_id,organization_id,project_id,task_id,description,start_time,end_time,duration,is_billable,
          hourly_rate,status,category,tags_json,notes,is_approved,created_at,updated_at
        )
        VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            user_id,
            organization_id,
            project_id,
            task_id,
            description,
            start_time,
            end_time,
            duration,
            1 if is_billable else 0,
            hourly_rate,
            status,
            category,
            dump_json(list(tags or [])),
            notes,
            1 if is_approved else 0,
            now,
            now,
        ),
    )
    return int(cur.lastrowid)


_SELECT_ENTRY = """
    SELECT te.*, p.name AS project_name, t.title AS task_title, u.username
    FROM time_entries te
    JOIN projects p ON p.id = te.project_id
    JOIN users u ON u.id = te.user_id
    LEFT JOIN tasks t ON t.id = te.task_id
"""


def get_time_entry(conn: sqlite3.Connection, entry_id: int):
    return conn.execute(_SELECT_ENTRY + " WHERE te.id = ?", (entry_id,)).fetchone()


def _entry_filters(
    organization_id: int,
    *,
    user_id: int | None,
    project_id: int | None,
    task_id: int | None,
    status: str | None,
    is_billable: bool | None,
    is_approved: bool | None,
    start_from: int | None,
    start_to: int | None,
) -> tuple[str, list[object]]:
    where = ["te.organization_id = ?"]
    params: list[object] = [organization_id]
    for column, value in (
        ("te.user_id", user_id),
        ("te.project_id", project_id),
        ("te.task_id", task_id),
        ("te.status", status),
    ):
        if value is not None:
            where.append(f"{column} = ?")
            params.append(value)
    if is_billable is not None:
        where.append("te.is_billable = ?")
        params.append(1 if is_billable else 0)
    if is_approved is not None:
        where.append("te.is_approved = ?")
        params.append(1 if is_approved else 0)
    if start_from is not None:
        where.append("te.start_time >= ?")
        params.append(start_from)
    if start_to is not None:
        where.append("te.start_time <= ?")
        params.append(start_to)
    return " WHERE " + " AND ".join(where), params


def list_time_entries(
    conn: sqlite3.Connection,
    organization_id: int,
    *,
    user_id: int | None = None,
    project_id: int | None = None,
    task_id: int | None = None,
    status: str | None = None,
    is_billable: bool | None = None,
    is_approved: bool | None = None,
    start_from: int | None = None,
    start_to: int | None = None,
    limit: int = 50,
    offset: int = 0,
):
    where, params = _entry_filters(
        organization_id,
        user_id=user_id,
        project_id=project_id,
        task_id=task_id,
        status=status,
        is_billable=is_billable,
        is_approved=is_approved,
        start_from=start_from,
        start_to=start_to,
    )
    rows = conn.execute(
        _SELECT_ENTRY + where + " ORDER BY te.start_time DESC, te.id DESC LIMIT ? OFFSET ?",
        tuple(params + [limit, offset]),
    ).fetchall()
    totals = conn.execute(
        """
        SELECT
          COUNT(1) AS total,
          COALESCE(SUM(te.duration), 0) AS total_duration,
          COALESCE(SUM(CASE WHEN te.is_billable = 1 THEN te.duration * COALESCE(te.hourly_rate, 0) / 60.0 ELSE 0 END), 0)
            AS total_cost
        FROM time_entries te
        """
        + where,
        tuple(params),
    ).fetchone()
    return rows, totals


def update_time_entry(conn: sqlite3.Connection, entry_id: int, fields: dict[str, Any]) -> None:
    if not fields:
        return
    values = dict(fields)
    values["updated_at"] = int(time.time())
    update_columns(conn, "time_entries", entry_id, values, allowed=_ENTRY_COLUMNS | {"updated_at"})


def delete_time_entry(conn: sqlite3.Connection, entry_id: int) -> None:
    conn.execute("DELETE FROM time_entries WHERE id = ?", (entry_id,))


def set_entries_approval(
    conn: sqlite3.Connection,
    organization_id: int,
    entry_ids: list[int],
    *,
    approved: bool,
    approved_by: int,
) -> int:
    if not entry_ids:
        return 0
    now = int(time.time())
    placeholders = ",".join("?" for _ in entry_ids)
    cur = conn.execute(
        f"""
        UPDATE time_entries
        SET is_approved = ?, is_rejected = ?, approved_by = ?, approved_at = ?, updated_at = ?
        WHERE organization_id = ? AND id IN ({placeholders})
        """,
        (1 if approved else 0, 0 if approved else 1, approved_by, now, now, organization_id, *entry_ids),
    )
    return int(cur.rowcount or 0)


def list_entry_owners(conn: sqlite3.Connection, organization_id: int, entry_ids: list[int]) -> list[int]:
    if not entry_ids:
        return []
    placeholders = ",".join("?" for _ in entry_ids)
    rows = conn.execute(
        f"SELECT DISTINCT user_id FROM time_entries WHERE organization_id = ? AND id IN ({placeholders})",
        (organization_id, *entry_ids),
    ).fetchall()
    return [int(r["user_id"]) for r in rows]
