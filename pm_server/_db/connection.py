from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator


def _connect_raw(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def connect(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = _connect_raw(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def load_json(raw: str | None, default: Any = None) -> Any:
    if raw is None or raw == "":
        return default
    return json.loads(raw)


def update_columns(conn: sqlite3.Connection, table: str, row_id: int, fields: dict[str, Any], *, allowed: set[str]) -> None:
    sets: list[str] = []
    params: list[object] = []
    for column, value in fields.items():
        if column not in allowed:
            raise ValueError(f"unknown_field_{column}")
        sets.append(f"{column} = ?")
        params.append(value)
    if not sets:
        return
    params.append(row_id)
    conn.execute(f"UPDATE {table} SET {', '.join(sets)} WHERE id = ?", tuple(params))
