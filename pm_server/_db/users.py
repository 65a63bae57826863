from __future__ import annotations

import sqlite3
import time


def get_user_by_username(conn: sqlite3.Connection, username: str):
    return conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()


def get_user_by_id(conn: sqlite3.Connection, user_id: int):
    return conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()


def get_org_user(conn: sqlite3.Connection, organization_id: int, user_id: int):
    return conn.execute(
        "SELECT * FROM users WHERE id = ? AND organization_id = ?",
        (user_id, organization_id),
    ).fetchone()


def list_users(conn: sqlite3.Connection, organization_id: int):
    return conn.execute(
        "SELECT * FROM users WHERE organization_id = ? ORDER BY id ASC",
        (organization_id,),
    ).fetchall()


def create_user(
    conn: sqlite3.Connection,
    *,
    organization_id: int,
    username: str,
    password_hash: str,
    role: str,
    display_name: str | None = None,
    email: str | None = None,
    billing_rate: float | None = None,
) -> int:
    now = int(time.time())
    try:
        cur = conn.execute(
            """
            INSERT INTO users(organization_id,username,password_hash,role,display_name,email,billing_rate,created_at)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            (organization_id, username, password_hash, role, display_name, email, billing_rate, now),
        )
    except sqlite3.IntegrityError as e:
        raise RuntimeError("username_taken") from e
    return int(cur.lastrowid)


_UNSET = object()


def update_user(
    conn: sqlite3.Connection,
    user_id: int,
    *,
    role=_UNSET,
    display_name=_UNSET,
    email=_UNSET,
    billing_rate=_UNSET,
    is_active=_UNSET,
) -> None:
    sets: list[str] = []
    params: list[object] = []
    if role is not _UNSET:
        sets.append("role = ?")
        params.append(role)
    if display_name is not _UNSET:
        sets.append("display_name = ?")
        params.append(display_name)
    if email is not _UNSET:
        sets.append("email = ?")
        params.append(email)
    if billing_rate is not _UNSET:
        sets.append("billing_rate = ?")
        params.append(billing_rate)
    if is_active is not _UNSET:
        sets.append("is_active = ?")
        params.append(1 if is_active else 0)
    if not sets:
        return
    params.append(user_id)
    conn.execute(f"UPDATE users SET {', '.join(sets)} WHERE id = ?", tuple(params))
    if is_active is not _UNSET and not is_active:
        conn.execute("DELETE FROM sessions WHERE user_id = ?", (user_id,))


def set_password_hash(conn: sqlite3.Connection, user_id: int, password_hash: str) -> None:
    conn.execute("UPDATE users SET password_hash = ? WHERE id = ?", (password_hash, user_id))


def create_session(conn: sqlite3.Connection, token: str, user_id: int, expires_at: int) -> None:
    conn.execute("INSERT INTO sessions(token,user_id,expires_at) VALUES(?,?,?)", (token, user_id, expires_at))


def delete_session(conn: sqlite3.Connection, token: str) -> None:
    conn.execute("DELETE FROM sessions WHERE token = ?", (token,))


def get_session_with_user(conn: sqlite3.Connection, token: str):
    return conn.execute(
        """
        SELECT s.*, u.username, u.role, u.organization_id, u.display_name, u.is_active
        FROM sessions s
        JOIN users u ON u.id = s.user_id
        WHERE s.token = ?
        """,
        (token,),
    ).fetchone()
