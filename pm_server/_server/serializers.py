from __future__ import annotations

from typing import Any

from .. import db


def _opt_int(row, key: str) -> int | None:
    return None if row[key] is None else int(row[key])


def _opt_float(row, key: str) -> float | None:
    return None if row[key] is None else float(row[key])


def _opt_str(row, key: str) -> str | None:
    return None if row[key] is None else str(row[key])


def row_to_user(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "username": str(row["username"]),
        "role": str(row["role"]),
        "organization_id": int(row["organization_id"]),
        "display_name": _opt_str(row, "display_name"),
        "email": _opt_str(row, "email"),
        "billing_rate": _opt_float(row, "billing_rate"),
        "is_active": bool(row["is_active"]),
        "created_at": int(row["created_at"]),
    }


def row_to_organization(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "name": str(row["name"]),
        "currency": str(row["currency"]),
        "timezone": str(row["timezone"]),
        "created_at": int(row["created_at"]),
    }


def row_to_role(row, permissions: list[str]) -> dict[str, Any]:
    return {
        "name": str(row["name"]),
        "permissions": permissions,
        "created_at": int(row["created_at"]),
    }


def row_to_project(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "organization_id": int(row["organization_id"]),
        "project_number": int(row["project_number"]),
        "name": str(row["name"]),
        "description": str(row["description"]),
        "status": str(row["status"]),
        "priority": str(row["priority"]),
        "created_by": _opt_int(row, "created_by"),
        "client_id": _opt_int(row, "client_id"),
        "start_date": _opt_str(row, "start_date"),
        "end_date": _opt_str(row, "end_date"),
        "archived": bool(row["archived"]),
        "settings": {
            "allow_time_tracking": bool(row["allow_time_tracking"]),
            "allow_manual_time_submission": bool(row["allow_manual_time_submission"]),
            "require_approval": bool(row["require_approval"]),
        },
        "created_at": int(row["created_at"]),
        "updated_at": _opt_int(row, "updated_at"),
    }


def row_to_member(row) -> dict[str, Any]:
    return {
        "user_id": int(row["user_id"]),
        "username": str(row["username"]),
        "display_name": _opt_str(row, "display_name"),
        "role": str(row["role"]),
        "project_role": str(row["project_role"]),
    }


def row_to_epic(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "project_id": int(row["project_id"]),
        "title": str(row["title"]),
        "description": str(row["description"]),
        "status": str(row["status"]),
        "priority": str(row["priority"]),
        "story_points": _opt_float(row, "story_points"),
        "tags": db.load_json(row["tags_json"], []),
        "assigned_to": _opt_int(row, "assigned_to"),
        "created_by": _opt_int(row, "created_by"),
        "archived": bool(row["archived"]),
        "completed_at": _opt_int(row, "completed_at"),
        "created_at": int(row["created_at"]),
        "updated_at": _opt_int(row, "updated_at"),
    }


def row_to_story(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "project_id": int(row["project_id"]),
        "epic_id": _opt_int(row, "epic_id"),
        "sprint_id": _opt_int(row, "sprint_id"),
        "title": str(row["title"]),
        "description": str(row["description"]),
        "acceptance_criteria": db.load_json(row["acceptance_criteria_json"], []),
        "status": str(row["status"]),
        "priority": str(row["priority"]),
        "story_points": _opt_float(row, "story_points"),
        "assigned_to": _opt_int(row, "assigned_to"),
        "created_by": _opt_int(row, "created_by"),
        "archived": bool(row["archived"]),
        "completed_at": _opt_int(row, "completed_at"),
        "created_at": int(row["created_at"]),
        "updated_at": _opt_int(row, "updated_at"),
    }


def task_display_id(row) -> str:
    return f"{int(row['project_number'])}.{int(row['task_number'])}"


def row_to_task(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "project_id": int(row["project_id"]),
        "project_name": str(row["project_name"]),
        "task_number": int(row["task_number"]),
        "display_id": task_display_id(row),
        "title": str(row["title"]),
        "description": str(row["description"]),
        "status": str(row["status"]),
        "priority": str(row["priority"]),
        "type": str(row["type"]),
        "story_id": _opt_int(row, "story_id"),
        "epic_id": _opt_int(row, "epic_id"),
        "sprint_id": _opt_int(row, "sprint_id"),
        "moved_from_sprint_id": _opt_int(row, "moved_from_sprint_id"),
        "assigned_to": [int(x) for x in db.load_json(row["assigned_to_json"], [])],
        "story_points": _opt_float(row, "story_points"),
        "estimated_hours": _opt_float(row, "estimated_hours"),
        "due_date": _opt_str(row, "due_date"),
        "start_date": _opt_int(row, "start_date"),
        "labels": db.load_json(row["labels_json"], []),
        "archived": bool(row["archived"]),
        "position": int(row["position"]),
        "created_by": _opt_int(row, "created_by"),
        "completed_at": _opt_int(row, "completed_at"),
        "created_at": int(row["created_at"]),
        "updated_at": _opt_int(row, "updated_at"),
    }


def row_to_comment(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "task_id": int(row["task_id"]),
        "user": {"id": int(row["user_id"]), "username": str(row["username"])},
        "content": str(row["content"]),
        "created_at": int(row["created_at"]),
    }


def row_to_sprint(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "project_id": int(row["project_id"]),
        "name": str(row["name"]),
        "description": str(row["description"]),
        "goal": _opt_str(row, "goal"),
        "status": str(row["status"]),
        "start_date": _opt_str(row, "start_date"),
        "end_date": _opt_str(row, "end_date"),
        "actual_start_date": _opt_int(row, "actual_start_date"),
        "actual_end_date": _opt_int(row, "actual_end_date"),
        "capacity": float(row["capacity"]),
        "archived": bool(row["archived"]),
        "created_by": _opt_int(row, "created_by"),
        "created_at": int(row["created_at"]),
        "updated_at": _opt_int(row, "updated_at"),
    }


def row_to_timer(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "user": {"id": int(row["user_id"]), "username": str(row["username"])},
        "project": {"id": int(row["project_id"]), "name": str(row["project_name"])},
        "task": None if row["task_id"] is None else {"id": int(row["task_id"]), "title": _opt_str(row, "task_title")},
        "description": str(row["description"]),
        "start_time": int(row["start_time"]),
        "paused_at": _opt_int(row, "paused_at"),
        "total_paused_duration": float(row["total_paused_minutes"]),
        "category": _opt_str(row, "category"),
        "tags": db.load_json(row["tags_json"], []),
        "is_billable": bool(row["is_billable"]),
        "hourly_rate": _opt_float(row, "hourly_rate"),
        "max_session_hours": float(row["max_session_hours"]),
        "last_activity": int(row["last_activity"]),
    }


def row_to_time_entry(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "user": {"id": int(row["user_id"]), "username": str(row["username"])},
        "project": {"id": int(row["project_id"]), "name": str(row["project_name"])},
        "task": None if row["task_id"] is None else {"id": int(row["task_id"]), "title": _opt_str(row, "task_title")},
        "description": str(row["description"]),
        "start_time": int(row["start_time"]),
        "end_time": _opt_int(row, "end_time"),
        "duration": float(row["duration"]),
        "is_billable": bool(row["is_billable"]),
        "hourly_rate": _opt_float(row, "hourly_rate"),
        "status": str(row["status"]),
        "category": _opt_str(row, "category"),
        "tags": db.load_json(row["tags_json"], []),
        "notes": _opt_str(row, "notes"),
        "is_approved": bool(row["is_approved"]),
        "is_rejected": bool(row["is_rejected"]),
        "approved_by": _opt_int(row, "approved_by"),
        "approved_at": _opt_int(row, "approved_at"),
        "created_at": int(row["created_at"]),
        "updated_at": _opt_int(row, "updated_at"),
    }


def row_to_notification(row) -> dict[str, Any]:
    return {
        "id": int(row["id"]),
        "type": str(row["type"]),
        "title": str(row["title"]),
        "message": str(row["message"]),
        "data": db.load_json(row["data_json"], {}),
        "created_at": int(row["created_at"]),
        "read_at": _opt_int(row, "read_at"),
    }
