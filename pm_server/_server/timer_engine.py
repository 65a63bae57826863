"""Active timer lifecycle: start, pause, resume, update, stop.

Times are epoch seconds. Durations are minutes.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any

from .. import db
from ..auth import AuthenticatedUser
from .notify import notify
from .serializers import row_to_time_entry, row_to_timer
from .time_settings import notification_enabled, resolve_settings


logger = logging.getLogger(__name__)


def apply_rounding_rules(duration: float, rules: dict[str, Any] | None) -> float:
    if not rules or not rules.get("enabled") or duration <= 0:
        return duration
    increment = rules.get("increment") or 15
    if rules.get("round_up", True):
        return math.ceil(duration / increment) * increment
    return math.floor(duration / increment) * increment


def format_hours(minutes: float) -> str:
    hours = minutes / 60
    whole = math.floor(hours)
    return f"{whole}h {round((hours - whole) * 60)}m"


def paused_minutes(timer, now: int) -> float:
    total = float(timer["total_paused_minutes"])
    if timer["paused_at"] is not None:
        total += max(0, now - int(timer["paused_at"])) / 60
    return total


def current_duration(timer, now: int) -> float:
    elapsed = (now - int(timer["start_time"])) / 60
    return max(0.0, elapsed - paused_minutes(timer, now))


def timer_cost(timer, duration: float) -> float:
    rate = 0.0 if timer["hourly_rate"] is None else float(timer["hourly_rate"])
    return rate * duration / 60


def timer_state(timer, now: int) -> dict[str, Any]:
    duration = current_duration(timer, now)
    out = row_to_timer(timer)
    out["currentDuration"] = round(duration, 2)
    out["currentCost"] = round(timer_cost(timer, duration), 2)
    out["isPaused"] = timer["paused_at"] is not None
    return out


def _project_for_time(conn, user: AuthenticatedUser, project_id: int):
    project = db.get_org_project(conn, user.organization_id, project_id)
    if not project:
        raise FileNotFoundError("project_not_found")
    if not bool(project["allow_time_tracking"]):
        raise PermissionError("time_tracking_not_allowed")
    return project


def _check_required_fields(settings: dict[str, Any], description: str, category: str | None) -> None:
    if settings.get("require_description") and not description.strip():
        raise ValueError("description_required")
    if settings.get("require_category") and not (category or "").strip():
        raise ValueError("category_required")


def resolve_hourly_rate(conn, user: AuthenticatedUser, explicit: float | None, settings: dict[str, Any]) -> float:
    if explicit is not None:
        return float(explicit)
    row = db.get_user_by_id(conn, user.id)
    if row and row["billing_rate"] is not None:
        return float(row["billing_rate"])
    return float(settings.get("default_hourly_rate") or 0)


def start_timer(
    conn,
    user: AuthenticatedUser,
    *,
    project_id: int,
    task_id: int | None = None,
    description: str = "",
    category: str | None = None,
    tags: list[str] | None = None,
    is_billable: bool = True,
    hourly_rate: float | None = None,
    now: int | None = None,
) -> dict[str, Any]:
    now = int(time.time()) if now is None else now
    if db.get_active_timer(conn, user.id, user.organization_id):
        raise ValueError("timer_already_active")

    project = _project_for_time(conn, user, project_id)
    settings = resolve_settings(conn, user.organization_id, project_id)
    if not settings.get("allow_time_tracking"):
        raise PermissionError("time_tracking_disabled")
    _check_required_fields(settings, description, category)

    if task_id is not None:
        task = db.get_task(conn, task_id)
        if not task or int(task["project_id"]) != project_id:
            raise FileNotFoundError("task_not_found")

    billable = bool(is_billable) and bool(settings.get("allow_billable_time", True))
    db.create_timer(
        conn,
        user_id=user.id,
        organization_id=user.organization_id,
        project_id=project_id,
        task_id=task_id,
        description=description.strip(),
        start_time=now,
        category=category,
        tags=list(tags or []),
        is_billable=billable,
        hourly_rate=resolve_hourly_rate(conn, user, hourly_rate, settings),
        max_session_hours=float(settings.get("max_session_hours") or 8),
    )
    timer = db.get_active_timer(conn, user.id, user.organization_id)
    logger.info("Timer started user=%s project=%s", user.id, project_id)

    sent = False
    if notification_enabled(settings, "on_timer_start"):
        notify(
            conn,
            recipients=[user.id],
            organization_id=user.organization_id,
            type="time_tracking",
            title="Timer Started",
            message=f"Timer started for {project['name']}",
            entity_type="time_tracking",
            entity_id=int(timer["id"]),
            action="created",
            priority="low",
            url="/time-tracking",
        )
        sent = True
    return {"activeTimer": timer_state(timer, now), "notificationSent": sent}


def _require_timer(conn, user: AuthenticatedUser):
    timer = db.get_active_timer(conn, user.id, user.organization_id)
    if not timer:
        raise FileNotFoundError("no_active_timer")
    return timer


def pause_timer(conn, user: AuthenticatedUser, *, now: int | None = None) -> dict[str, Any]:
    now = int(time.time()) if now is None else now
    timer = _require_timer(conn, user)
    if timer["paused_at"] is not None:
        raise ValueError("timer_already_paused")
    db.update_timer(conn, int(timer["id"]), {"paused_at": now, "last_activity": now})
    return timer_state(db.get_active_timer(conn, user.id, user.organization_id), now)


def resume_timer(conn, user: AuthenticatedUser, *, now: int | None = None) -> dict[str, Any]:
    now = int(time.time()) if now is None else now
    timer = _require_timer(conn, user)
    if timer["paused_at"] is None:
        raise ValueError("timer_not_paused")
    db.update_timer(
        conn,
        int(timer["id"]),
        {"paused_at": None, "total_paused_minutes": paused_minutes(timer, now), "last_activity": now},
    )
    return timer_state(db.get_active_timer(conn, user.id, user.organization_id), now)


def update_timer(
    conn,
    user: AuthenticatedUser,
    changes: dict[str, Any],
    *,
    now: int | None = None,
) -> dict[str, Any]:
    now = int(time.time()) if now is None else now
    timer = _require_timer(conn, user)
    fields: dict[str, Any] = {"last_activity": now}
    if "description" in changes:
        fields["description"] = str(changes["description"] or "").strip()
    if "category" in changes:
        fields["category"] = changes["category"] or None
    if "tags" in changes:
        if not isinstance(changes["tags"], list):
            raise ValueError("invalid_tags")
        fields["tags_json"] = db.dump_json([str(t) for t in changes["tags"]])
    db.update_timer(conn, int(timer["id"]), fields)
    return timer_state(db.get_active_timer(conn, user.id, user.organization_id), now)


def stop_timer(
    conn,
    user: AuthenticatedUser,
    *,
    description: str | None = None,
    category: str | None = None,
    tags: list[str] | None = None,
    now: int | None = None,
) -> dict[str, Any]:
    now = int(time.time()) if now is None else now
    timer = _require_timer(conn, user)
    project_id = int(timer["project_id"])
    final_category = category or (None if timer["category"] is None else str(timer["category"]))
    final_tags = tags if tags is not None else db.load_json(timer["tags_json"], [])
    settings = resolve_settings(conn, user.organization_id, project_id)

    final_description = (description if description is not None else str(timer["description"])).strip()
    if settings.get("require_description") and not final_description:
        raise ValueError("description_required")

    duration = current_duration(timer, now)
    rounding = settings.get("rounding_rules") or {}
    if rounding.get("enabled"):
        duration = apply_rounding_rules(duration, rounding)

    notifications_sent = {
        "timerStop": False,
        "overtime": False,
        "approvalNeeded": False,
        "timeSubmitted": False,
    }
    if duration <= 0:
        db.delete_timer(conn, int(timer["id"]))
        logger.info("Timer discarded with no time logged user=%s", user.id)
        return {"timeEntry": None, "hasTimeLogged": False, "duration": 0, "notificationsSent": notifications_sent}

    hours = duration / 60
    requires_approval = bool(settings.get("require_approval"))
    is_overtime = not settings.get("allow_overtime") and (
        hours > float(settings.get("max_daily_hours") or 8) or hours > float(settings.get("max_weekly_hours") or 40)
    )
    paused = paused_minutes(timer, now)
    entry_id = db.create_time_entry(
        conn,
        user_id=user.id,
        organization_id=user.organization_id,
        project_id=project_id,
        task_id=None if timer["task_id"] is None else int(timer["task_id"]),
        description=final_description,
        start_time=int(timer["start_time"]),
        end_time=now,
        duration=duration,
        is_billable=bool(timer["is_billable"]),
        hourly_rate=None if timer["hourly_rate"] is None else float(timer["hourly_rate"]),
        status="pending" if requires_approval else "completed",
        category=final_category,
        tags=final_tags,
        notes=f"paused {round(paused, 2)} minutes" if paused > 0 else None,
        is_approved=not requires_approval,
    )
    db.delete_timer(conn, int(timer["id"]))

    formatted = format_hours(duration)
    project_name = str(timer["project_name"])
    url = "/time-tracking/logs"

    def _send(kind: str, title: str, message: str, priority: str, recipients: list[int], action: str = "updated") -> None:
        notify(
            conn,
            recipients=recipients,
            organization_id=user.organization_id,
            type="time_tracking",
            title=title,
            message=message,
            entity_type="time_entry",
            entity_id=entry_id,
            action=action,
            priority=priority,
            url=url,
        )
        notifications_sent[kind] = True

    if notification_enabled(settings, "on_timer_stop"):
        _send("timerStop", "Timer Stopped", f"Logged {formatted} on {project_name}", "low", [user.id])
    if is_overtime and notification_enabled(settings, "on_overtime"):
        _send(
            "overtime",
            "Overtime Alert",
            f"Session of {formatted} on {project_name} exceeds the configured working hours",
            "high",
            [user.id],
        )
    if requires_approval and notification_enabled(settings, "on_approval_needed"):
        _send(
            "approvalNeeded",
            "Time Entry Needs Approval",
            f"{user.username} logged {formatted} on {project_name}",
            "medium",
            approver_ids(conn, user, project_id),
            action="created",
        )
    if not requires_approval and notification_enabled(settings, "on_time_submitted"):
        _send("timeSubmitted", "Time Submitted", f"{formatted} on {project_name} was submitted", "low", [user.id])

    logger.info("Timer stopped user=%s entry=%s duration=%.2f overtime=%s", user.id, entry_id, duration, is_overtime)
    return {
        "timeEntry": row_to_time_entry(db.get_time_entry(conn, entry_id)),
        "hasTimeLogged": True,
        "duration": duration,
        "isOvertime": is_overtime,
        "notificationsSent": notifications_sent,
    }


def approver_ids(conn, user: AuthenticatedUser, project_id: int) -> list[int]:
    """Project managers of the project, falling back to organization admins."""
    out: list[int] = []
    for member in db.list_project_members(conn, project_id):
        if str(member["project_role"]) == "project_manager" and int(member["user_id"]) != user.id:
            out.append(int(member["user_id"]))
    if out:
        return out
    for row in db.list_users(conn, user.organization_id):
        if str(row["role"]) in ("admin", "super_admin") and bool(row["is_active"]) and int(row["id"]) != user.id:
            out.append(int(row["id"]))
    return out


def list_org_timers(conn, user: AuthenticatedUser, *, now: int | None = None) -> list[dict[str, Any]]:
    now = int(time.time()) if now is None else now
    return [timer_state(t, now) for t in db.list_active_timers(conn, user.organization_id)]
