from __future__ import annotations

import sqlite3
import time

from .connection import dump_json, load_json


def create_organization(conn: sqlite3.Connection, *, name: str, currency: str = "USD", timezone: str = "UTC") -> int:
    now = int(time.time())
    cur = conn.execute(
        "INSERT INTO organizations(name,currency,timezone,created_at) VALUES(?,?,?,?)",
        (name, currency, timezone, now),
    )
    return int(cur.lastrowid)


def get_organization(conn: sqlite3.Connection, organization_id: int):
    return conn.execute("SELECT * FROM organizations WHERE id = ?", (organization_id,)).fetchone()


def update_organization(
    conn: sqlite3.Connection,
    organization_id: int,
    *,
    name: str | None = None,
    currency: str | None = None,
    timezone: str | None = None,
) -> None:
    sets: list[str] = []
    params: list[object] = []
    for column, value in (("name", name), ("currency", currency), ("timezone", timezone)):
        if value is None:
            continue
        sets.append(f"{column} = ?")
        params.append(value)
    if not sets:
        return
    params.append(organization_id)
    conn.execute(f"UPDATE organizations SET {', '.join(sets)} WHERE id = ?", tuple(params))


def get_org_time_tracking_defaults(conn: sqlite3.Connection, organization_id: int) -> dict | None:
    row = conn.execute("SELECT time_tracking_json FROM organizations WHERE id = ?", (organization_id,)).fetchone()
    if not row:
        return None
    return load_json(row["time_tracking_json"])


def set_org_time_tracking_defaults(conn: sqlite3.Connection, organization_id: int, values: dict) -> None:
    conn.execute(
        "UPDATE organizations SET time_tracking_json = ? WHERE id = ?",
        (dump_json(values), organization_id),
    )
