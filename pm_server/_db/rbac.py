from __future__ import annotations

import sqlite3
import time

from ..permission_defs import ROLE_PERMISSIONS


def ensure_default_roles(conn: sqlite3.Connection) -> None:
    now = int(time.time())
    for role_name, permissions in ROLE_PERMISSIONS.items():
        conn.execute("INSERT OR IGNORE INTO roles(name,created_at) VALUES(?,?)", (role_name, now))
        seeded = conn.execute(
            "SELECT 1 FROM role_permissions WHERE role_name=? LIMIT 1",
            (role_name,),
        ).fetchone()
        if seeded is None:
            _insert_permissions(conn, role_name, permissions, now)


def _insert_permissions(conn: sqlite3.Connection, role_name: str, permissions: list[str], now: int) -> None:
    conn.executemany(
        "INSERT OR IGNORE INTO role_permissions(role_name,permission_key,created_at) VALUES(?,?,?)",
        [(role_name, p, now) for p in dict.fromkeys(permissions)],
    )


def save_role(conn: sqlite3.Connection, role_name: str, permissions: list[str]) -> None:
    now = int(time.time())
    conn.execute("INSERT OR IGNORE INTO roles(name,created_at) VALUES(?,?)", (role_name, now))
    conn.execute("DELETE FROM role_permissions WHERE role_name=?", (role_name,))
    _insert_permissions(conn, role_name, permissions, now)


def list_roles(conn: sqlite3.Connection):
    return conn.execute(
        """
        SELECT r.name, r.created_at, COUNT(rp.permission_key) AS permission_count
        FROM roles r
        LEFT JOIN role_permissions rp ON rp.role_name = r.name
        GROUP BY r.name
        ORDER BY r.name ASC
        """
    ).fetchall()


def role_permission_set(conn: sqlite3.Connection, role_name: str) -> set[str]:
    rows = conn.execute(
        "SELECT permission_key FROM role_permissions WHERE role_name=?",
        (role_name,),
    ).fetchall()
    return {str(r["permission_key"]) for r in rows}


def role_exists(conn: sqlite3.Connection, role_name: str) -> bool:
    row = conn.execute("SELECT 1 FROM roles WHERE name=? LIMIT 1", (role_name,)).fetchone()
    return row is not None
