from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

from ..auth import hash_password
from .connection import connect
from .rbac import ensure_default_roles


logger = logging.getLogger(__name__)


def _column_names(conn: sqlite3.Connection, table: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {str(r["name"]) for r in rows}


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, ddl: str) -> None:
    if column in _column_names(conn, table):
        return
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")


def init_db(db_path: Path) -> None:
    with connect(db_path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS organizations (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              name TEXT NOT NULL,
              currency TEXT NOT NULL DEFAULT 'USD',
              timezone TEXT NOT NULL DEFAULT 'UTC',
              time_tracking_json TEXT,
              created_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS users (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              username TEXT NOT NULL UNIQUE,
              password_hash TEXT NOT NULL,
              role TEXT NOT NULL,
              display_name TEXT,
              email TEXT,
              billing_rate REAL,
              is_active INTEGER NOT NULL DEFAULT 1,
              created_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS sessions (
              token TEXT PRIMARY KEY,
              user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
              expires_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS roles (
              name TEXT PRIMARY KEY,
              created_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS role_permissions (
              role_name TEXT NOT NULL REFERENCES roles(name) ON DELETE CASCADE,
              permission_key TEXT NOT NULL,
              created_at INTEGER NOT NULL,
              UNIQUE(role_name, permission_key)
            );

            CREATE TABLE IF NOT EXISTS projects (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              project_number INTEGER NOT NULL,
              name TEXT NOT NULL,
              description TEXT NOT NULL DEFAULT '',
              status TEXT NOT NULL DEFAULT 'planning',
              priority TEXT NOT NULL DEFAULT 'medium',
              created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
              client_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
              start_date TEXT,
              end_date TEXT,
              archived INTEGER NOT NULL DEFAULT 0,
              allow_time_tracking INTEGER NOT NULL DEFAULT 1,
              allow_manual_time_submission INTEGER NOT NULL DEFAULT 1,
              require_approval INTEGER NOT NULL DEFAULT 0,
              created_at INTEGER NOT NULL,
              updated_at INTEGER,
              UNIQUE(organization_id, project_number)
            );

            CREATE TABLE IF NOT EXISTS project_members (
              project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
              user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
              project_role TEXT NOT NULL,
              created_at INTEGER NOT NULL,
              PRIMARY KEY(project_id, user_id)
            );

            CREATE TABLE IF NOT EXISTS sprints (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
              name TEXT NOT NULL,
              description TEXT NOT NULL DEFAULT '',
              goal TEXT,
              status TEXT NOT NULL DEFAULT 'planning',
              start_date TEXT,
              end_date TEXT,
              actual_start_date INTEGER,
              actual_end_date INTEGER,
              capacity REAL NOT NULL DEFAULT 0,
              archived INTEGER NOT NULL DEFAULT 0,
              created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
              created_at INTEGER NOT NULL,
              updated_at INTEGER
            );

            CREATE TABLE IF NOT EXISTS epics (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
              title TEXT NOT NULL,
              description TEXT NOT NULL DEFAULT '',
              status TEXT NOT NULL DEFAULT 'backlog',
              priority TEXT NOT NULL DEFAULT 'medium',
              story_points REAL,
              tags_json TEXT,
              assigned_to INTEGER REFERENCES users(id) ON DELETE SET NULL,
              created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
              archived INTEGER NOT NULL DEFAULT 0,
              completed_at INTEGER,
              created_at INTEGER NOT NULL,
              updated_at INTEGER
            );

            CREATE TABLE IF NOT EXISTS stories (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
              epic_id INTEGER REFERENCES epics(id) ON DELETE SET NULL,
              sprint_id INTEGER REFERENCES sprints(id) ON DELETE SET NULL,
              title TEXT NOT NULL,
              description TEXT NOT NULL DEFAULT '',
              acceptance_criteria_json TEXT,
              status TEXT NOT NULL DEFAULT 'backlog',
              priority TEXT NOT NULL DEFAULT 'medium',
              story_points REAL,
              assigned_to INTEGER REFERENCES users(id) ON DELETE SET NULL,
              created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
              archived INTEGER NOT NULL DEFAULT 0,
              completed_at INTEGER,
              created_at INTEGER NOT NULL,
              updated_at INTEGER
            );

            CREATE TABLE IF NOT EXISTS tasks (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
              task_number INTEGER NOT NULL,
              title TEXT NOT NULL,
              description TEXT NOT NULL DEFAULT '',
              status TEXT NOT NULL DEFAULT 'backlog',
              priority TEXT NOT NULL DEFAULT 'medium',
              type TEXT NOT NULL DEFAULT 'task',
              story_id INTEGER REFERENCES stories(id) ON DELETE SET NULL,
              epic_id INTEGER REFERENCES epics(id) ON DELETE SET NULL,
              sprint_id INTEGER REFERENCES sprints(id) ON DELETE SET NULL,
              moved_from_sprint_id INTEGER REFERENCES sprints(id) ON DELETE SET NULL,
              assigned_to_json TEXT,
              story_points REAL,
              estimated_hours REAL,
              due_date TEXT,
              start_date INTEGER,
              labels_json TEXT,
              archived INTEGER NOT NULL DEFAULT 0,
              position INTEGER NOT NULL DEFAULT 0,
              created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
              completed_at INTEGER,
              created_at INTEGER NOT NULL,
              updated_at INTEGER,
              UNIQUE(project_id, task_number)
            );

            CREATE TABLE IF NOT EXISTS task_comments (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
              user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
              content TEXT NOT NULL,
              created_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS time_tracking_settings (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              project_id INTEGER REFERENCES projects(id) ON DELETE CASCADE,
              settings_json TEXT NOT NULL,
              created_at INTEGER NOT NULL,
              updated_at INTEGER
            );

            CREATE UNIQUE INDEX IF NOT EXISTS ux_time_tracking_settings_scope
              ON time_tracking_settings(organization_id, IFNULL(project_id, 0));

            CREATE TABLE IF NOT EXISTS active_timers (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
              task_id INTEGER REFERENCES tasks(id) ON DELETE SET NULL,
              description TEXT NOT NULL DEFAULT '',
              start_time INTEGER NOT NULL,
              paused_at INTEGER,
              total_paused_minutes REAL NOT NULL DEFAULT 0,
              category TEXT,
              tags_json TEXT,
              is_billable INTEGER NOT NULL DEFAULT 1,
              hourly_rate REAL,
              max_session_hours REAL NOT NULL DEFAULT 8,
              last_activity INTEGER NOT NULL,
              created_at INTEGER NOT NULL,
              UNIQUE(user_id, organization_id)
            );

            CREATE TABLE IF NOT EXISTS time_entries (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              project_id INTEGER NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
              task_id INTEGER REFERENCES tasks(id) ON DELETE SET NULL,
              description TEXT NOT NULL DEFAULT '',
              start_time INTEGER NOT NULL,
              end_time INTEGER,
              duration REAL NOT NULL DEFAULT 0,
              is_billable INTEGER NOT NULL DEFAULT 1,
              hourly_rate REAL,
              status TEXT NOT NULL DEFAULT 'completed',
              category TEXT,
              tags_json TEXT,
              notes TEXT,
              is_approved INTEGER NOT NULL DEFAULT 0,
              is_rejected INTEGER NOT NULL DEFAULT 0,
              approved_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
              approved_at INTEGER,
              created_at INTEGER NOT NULL,
              updated_at INTEGER
            );

            CREATE INDEX IF NOT EXISTS ix_time_entries_user_start ON time_entries(user_id, start_time);

            CREATE TABLE IF NOT EXISTS notifications (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
              organization_id INTEGER NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
              type TEXT NOT NULL,
              title TEXT NOT NULL,
              message TEXT NOT NULL,
              data_json TEXT,
              created_at INTEGER NOT NULL,
              read_at INTEGER
            );
            """
        )

        _ensure_column(conn, "users", "email", "TEXT")
        _ensure_column(conn, "tasks", "start_date", "INTEGER")

        ensure_default_roles(conn)

        existing = conn.execute("SELECT COUNT(1) AS c FROM users").fetchone()["c"]
        if existing == 0:
            now = int(time.time())
            cur = conn.execute(
                "INSERT INTO organizations(name,currency,timezone,created_at) VALUES(?,?,?,?)",
                ("Default Organization", "USD", "UTC", now),
            )
            org_id = int(cur.lastrowid)
            conn.execute(
                """
                INSERT INTO users(organization_id,username,password_hash,role,display_name,created_at)
                VALUES(?,?,?,?,?,?)
                """,
                (org_id, "admin", hash_password("admin"), "admin", "Administrator", now),
            )
            conn.execute(
                """
                INSERT INTO users(organization_id,username,password_hash,role,display_name,created_at)
                VALUES(?,?,?,?,?,?)
                """,
                (org_id, "user", hash_password("user"), "team_member", "Team Member", now),
            )
            logger.info("Seeded default organization id=%s with admin and user accounts", org_id)
