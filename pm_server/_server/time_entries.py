from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any

from .. import db
from ..auth import AuthenticatedUser
from ..permission_defs import TIME_TRACKING_APPROVE, TIME_TRACKING_VIEW_ALL
from .notify import notify
from .params import optional_int, parse_timestamp
from .permissions import has_permission
from .time_settings import resolve_settings
from .timer_engine import apply_rounding_rules, resolve_hourly_rate


logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60


def create_manual_entry(conn, user: AuthenticatedUser, payload: dict[str, Any], *, now: int | None = None) -> int:
    now = int(time.time()) if now is None else now
    project_id = optional_int(payload.get("projectId"))
    start_time = parse_timestamp(payload.get("startTime"))
    end_time = parse_timestamp(payload.get("endTime"))
    if project_id is None or start_time is None or end_time is None:
        raise ValueError("missing_fields")

    project = db.get_org_project(conn, user.organization_id, project_id)
    if not project:
        raise FileNotFoundError("project_not_found")
    if not bool(project["allow_time_tracking"]):
        raise PermissionError("time_tracking_not_allowed")

    settings = resolve_settings(conn, user.organization_id, project_id)
    if not settings.get("allow_time_tracking"):
        raise PermissionError("time_tracking_disabled")
    if not settings.get("allow_manual_time_submission") or not bool(project["allow_manual_time_submission"]):
        raise PermissionError("manual_submission_not_allowed")

    description = str(payload.get("description") or "").strip()
    category = payload.get("category") or None
    if settings.get("require_description") and not description:
        raise ValueError("description_required")
    if settings.get("require_category") and not category:
        raise ValueError("category_required")

    if start_time > end_time:
        raise ValueError("invalid_time_range")
    if start_time > now and not settings.get("allow_future_time"):
        raise ValueError("future_time_not_allowed")
    days_back = math.ceil((now - start_time) / DAY_SECONDS)
    if days_back > int(settings.get("past_time_limit_days") or 30) and not settings.get("allow_past_time"):
        raise ValueError("past_time_not_allowed")

    task_id = optional_int(payload.get("taskId"))
    if task_id is not None:
        task = db.get_task(conn, task_id)
        if not task or int(task["project_id"]) != project_id:
            raise FileNotFoundError("task_not_found")

    raw_duration = payload.get("duration")
    if raw_duration not in (None, ""):
        duration = float(raw_duration)
        if duration < 0:
            raise ValueError("invalid_duration")
    else:
        duration = float(round((end_time - start_time) / 60))
    duration = apply_rounding_rules(duration, settings.get("rounding_rules"))

    tags = payload.get("tags") or []
    if not isinstance(tags, list):
        raise ValueError("invalid_tags")

    hourly_rate = payload.get("hourlyRate")
    requires_approval = bool(settings.get("require_approval"))
    entry_id = db.create_time_entry(
        conn,
        user_id=user.id,
        organization_id=user.organization_id,
        project_id=project_id,
        task_id=task_id,
        description=description,
        start_time=start_time,
        end_time=end_time,
        duration=duration,
        is_billable=bool(payload.get("isBillable", True)) and bool(settings.get("allow_billable_time", True)),
        hourly_rate=resolve_hourly_rate(conn, user, None if hourly_rate in (None, "") else float(hourly_rate), settings),
        status="completed",
        category=category,
        tags=[str(t) for t in tags],
        notes=payload.get("notes") or None,
        is_approved=not requires_approval,
    )
    logger.info("Manual time entry %s created by user %s (%.2f min)", entry_id, user.id, duration)
    return entry_id


def can_view_entry(conn, user: AuthenticatedUser, entry) -> bool:
    if int(entry["organization_id"]) != user.organization_id:
        return False
    if int(entry["user_id"]) == user.id:
        return True
    return has_permission(conn, user, TIME_TRACKING_VIEW_ALL)


def _require_editable(conn, user: AuthenticatedUser, entry_id: int, now: int):
    entry = db.get_time_entry(conn, entry_id)
    if not entry or int(entry["organization_id"]) != user.organization_id:
        raise FileNotFoundError("time_entry_not_found")
    if int(entry["user_id"]) != user.id and not has_permission(conn, user, TIME_TRACKING_APPROVE):
        raise PermissionError("not_authorized")
    if bool(entry["is_approved"]):
        raise ValueError("entry_already_approved")

    settings = resolve_settings(conn, user.organization_id, int(entry["project_id"]))
    if not edit_window_open(settings, int(entry["created_at"]), now):
        raise ValueError("edit_window_closed")
    return entry, settings


def edit_window_open(settings: dict[str, Any], created_at: int, now: int) -> bool:
    mode = settings.get("time_log_edit_mode")
    if mode == "days":
        days_since = math.floor((now - created_at) / DAY_SECONDS)
        return days_since <= int(settings.get("time_log_edit_days") or 30)
    if mode == "dayOfMonth":
        created_day = datetime.fromtimestamp(created_at, tz=timezone.utc).day
        return created_day > int(settings.get("time_log_edit_day_of_month") or 15)
    return True


def update_entry(conn, user: AuthenticatedUser, entry_id: int, payload: dict[str, Any], *, now: int | None = None) -> None:
    now = int(time.time()) if now is None else now
    entry, settings = _require_editable(conn, user, entry_id, now)

    fields: dict[str, Any] = {}
    if "description" in payload:
        description = str(payload.get("description") or "").strip()
        if settings.get("require_description") and not description:
            raise ValueError("description_required")
        fields["description"] = description
    if "category" in payload:
        fields["category"] = payload.get("category") or None
    if "tags" in payload:
        tags = payload.get("tags") or []
        if not isinstance(tags, list):
            raise ValueError("invalid_tags")
        fields["tags_json"] = db.dump_json([str(t) for t in tags])
    if "notes" in payload:
        fields["notes"] = payload.get("notes") or None
    if "isBillable" in payload:
        fields["is_billable"] = 1 if payload.get("isBillable") else 0
    if "hourlyRate" in payload:
        rate = payload.get("hourlyRate")
        fields["hourly_rate"] = None if rate in (None, "") else float(rate)

    start_time = int(entry["start_time"])
    end_time = None if entry["end_time"] is None else int(entry["end_time"])
    times_changed = False
    if "startTime" in payload:
        start_time = parse_timestamp(payload.get("startTime"))
        times_changed = True
    if "endTime" in payload:
        end_time = parse_timestamp(payload.get("endTime"))
        times_changed = True
    if times_changed:
        if start_time is None or end_time is None:
            raise ValueError("missing_fields")
        if start_time > end_time:
            raise ValueError("invalid_time_range")
        fields["start_time"] = start_time
        fields["end_time"] = end_time
        fields["duration"] = apply_rounding_rules(float(round((end_time - start_time) / 60)), settings.get("rounding_rules"))
    elif "duration" in payload:
        duration = float(payload.get("duration"))
        if duration < 0:
            raise ValueError("invalid_duration")
        fields["duration"] = duration

    db.update_time_entry(conn, entry_id, fields)


def delete_entry(conn, user: AuthenticatedUser, entry_id: int, *, now: int | None = None) -> None:
    now = int(time.time()) if now is None else now
    _require_editable(conn, user, entry_id, now)
    db.delete_time_entry(conn, entry_id)
    logger.info("Time entry %s deleted by user %s", entry_id, user.id)


def approve_entries(conn, user: AuthenticatedUser, entry_ids: list[int], action: str) -> int:
    if not entry_ids:
        raise ValueError("missing_fields")
    if not has_permission(conn, user, TIME_TRACKING_APPROVE):
        raise PermissionError("not_authorized")
    if action not in ("approve", "reject"):
        raise ValueError("invalid_action")

    approved = action == "approve"
    modified = db.set_entries_approval(conn, user.organization_id, entry_ids, approved=approved, approved_by=user.id)
    owners = db.list_entry_owners(conn, user.organization_id, entry_ids)
    if modified:
        notify(
            conn,
            recipients=owners,
            organization_id=user.organization_id,
            type="time_tracking",
            title="Time Entries Approved" if approved else "Time Entries Rejected",
            message=f"{user.username} {'approved' if approved else 'rejected'} your time entries",
            entity_type="time_entry",
            action="updated",
            priority="medium",
            url="/time-tracking/logs",
            exclude_user_id=user.id,
        )
    logger.info("User %s %sd %d time entries", user.id, action, modified)
    return modified


def period_start(period: str, now: int) -> int:
    today = datetime.fromtimestamp(now, tz=timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "today":
        return int(today.timestamp())
    if period == "week":
        return int(today.timestamp()) - today.weekday() * DAY_SECONDS
    if period == "month":
        return int(today.replace(day=1).timestamp())
    raise ValueError("invalid_period")


def user_stats(conn, user: AuthenticatedUser, period: str, *, now: int | None = None) -> dict[str, Any]:
    now = int(time.time()) if now is None else now
    since = period_start(period, now)
    rows = conn.execute(
        """
        SELECT te.project_id, p.name AS project_name,
               COUNT(1) AS entry_count,
               SUM(te.duration) AS total_minutes,
               SUM(CASE WHEN te.is_billable = 1 THEN te.duration ELSE 0 END) AS billable_minutes,
               SUM(CASE WHEN te.is_billable = 1 THEN te.duration * COALESCE(te.hourly_rate, 0) / 60.0 ELSE 0 END) AS cost
        FROM time_entries te
        JOIN projects p ON p.id = te.project_id
        WHERE te.user_id = ? AND te.organization_id = ? AND te.start_time >= ? AND te.start_time <= ?
        GROUP BY te.project_id
        ORDER BY total_minutes DESC
        """,
        (user.id, user.organization_id, since, now),
    ).fetchall()
    by_project = [
        {
            "project_id": int(r["project_id"]),
            "project_name": str(r["project_name"]),
            "entryCount": int(r["entry_count"]),
            "totalMinutes": float(r["total_minutes"] or 0),
            "billableMinutes": float(r["billable_minutes"] or 0),
            "totalCost": round(float(r["cost"] or 0), 2),
        }
        for r in rows
    ]
    return {
        "period": period,
        "since": since,
        "totalMinutes": sum(p["totalMinutes"] for p in by_project),
        "billableMinutes": sum(p["billableMinutes"] for p in by_project),
        "totalCost": round(sum(p["totalCost"] for p in by_project), 2),
        "entryCount": sum(p["entryCount"] for p in by_project),
        "byProject": by_project,
    }
