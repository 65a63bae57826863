from __future__ import annotations

import sqlite3
import time

from .connection import dump_json


def create_notifications(
    conn: sqlite3.Connection,
    *,
    recipient_user_ids: list[int],
    organization_id: int,
    type: str,
    title: str,
    message: str,
    data: dict | None = None,
) -> int:
    recipients = list(dict.fromkeys(int(uid) for uid in recipient_user_ids))
    if not recipients:
        return 0
    now = int(time.time())
    raw = dump_json(data or {})
    conn.executemany(
        """
        INSERT INTO notifications(user_id,organization_id,type,title,message,data_json,created_at)
        VALUES(?,?,?,?,?,?,?)
        """,
        [(uid, organization_id, type, title, message, raw, now) for uid in recipients],
    )
    return len(recipients)


def list_notifications(conn: sqlite3.Connection, *, user_id: int, unread_only: bool = False, limit: int = 200):
    sql = "SELECT * FROM notifications WHERE user_id = ?"
    if unread_only:
        sql += " AND read_at IS NULL"
    return conn.execute(sql + " ORDER BY id DESC LIMIT ?", (user_id, limit)).fetchall()


def count_unread_notifications(conn: sqlite3.Connection, *, user_id: int) -> int:
    row = conn.execute(
        "SELECT COUNT(1) AS c FROM notifications WHERE user_id = ? AND read_at IS NULL",
        (user_id,),
    ).fetchone()
    return int(row["c"])


def mark_notification_read(conn: sqlite3.Connection, notification_id: int, *, user_id: int) -> bool:
    now = int(time.time())
    cur = conn.execute(
        "UPDATE notifications SET read_at=? WHERE id=? AND user_id=? AND read_at IS NULL",
        (now, notification_id, user_id),
    )
    if cur.rowcount and int(cur.rowcount) > 0:
        return True
    row = conn.execute("SELECT 1 FROM notifications WHERE id=? AND user_id=?", (notification_id, user_id)).fetchone()
    return row is not None


def mark_all_notifications_read(conn: sqlite3.Connection, *, user_id: int) -> int:
    now = int(time.time())
    cur = conn.execute(
        "UPDATE notifications SET read_at=? WHERE user_id=? AND read_at IS NULL",
        (now, user_id),
    )
    return int(cur.rowcount or 0)
