"""Auto-stop timers that ran past the session limit."""

from __future__ import annotations

import logging
import time
from typing import Any

from .. import db
from ..auth import AuthenticatedUser
from .notify import notify
from .time_settings import notification_enabled, resolve_settings
from .timer_engine import apply_rounding_rules, current_duration, format_hours, paused_minutes


logger = logging.getLogger(__name__)


def _stop_expired(conn, timer, settings: dict[str, Any], now: int) -> dict[str, Any]:
    max_hours = float(settings["max_session_hours"])
    duration = current_duration(timer, now)
    if duration < max_hours * 60:
        return {"timer_id": int(timer["id"]), "status": "skipped", "reason": "timer_under_limit"}

    start = int(timer["start_time"])
    end_time = start + int(max_hours * 3600 + paused_minutes(timer, now) * 60)
    logged = max_hours * 60
    rounding = settings.get("rounding_rules") or {}
    if rounding.get("enabled"):
        logged = apply_rounding_rules(logged, rounding)

    project_id = int(timer["project_id"])
    project = db.get_project(conn, project_id)
    requires_approval = bool(settings.get("require_approval")) or bool(project and project["require_approval"])
    entry_id = db.create_time_entry(
        conn,
        user_id=int(timer["user_id"]),
        organization_id=int(timer["organization_id"]),
        project_id=project_id,
        task_id=None if timer["task_id"] is None else int(timer["task_id"]),
        description=str(timer["description"]).strip() or "Auto-stopped timer",
        start_time=start,
        end_time=end_time,
        duration=logged,
        is_billable=bool(timer["is_billable"]),
        hourly_rate=None if timer["hourly_rate"] is None else float(timer["hourly_rate"]),
        status="completed",
        category=None if timer["category"] is None else str(timer["category"]),
        tags=db.load_json(timer["tags_json"], []),
        notes=f"Automatically stopped after reaching the {max_hours:g}h session limit",
        is_approved=not requires_approval,
    )
    db.delete_timer(conn, int(timer["id"]))

    formatted = format_hours(logged)
    owner = AuthenticatedUser.from_row(timer, id_column="user_id")
    if formatted != "0h 0m":
        if notification_enabled(settings, "on_timer_stop"):
            notify(
                conn,
                recipients=[owner.id],
                organization_id=owner.organization_id,
                type="time_tracking",
                title="Timer Auto-Stopped",
                message=f"Your timer on {timer['project_name']} was stopped after {formatted}",
                entity_type="time_entry",
                entity_id=entry_id,
                action="updated",
                priority="medium",
                url="/time-tracking/logs",
            )
        if requires_approval and notification_enabled(settings, "on_approval_needed"):
            notify(
                conn,
                recipients=[owner.id],
                organization_id=owner.organization_id,
                type="time_tracking",
                title="Time Entry Requires Approval",
                message=f"Your time entry for {timer['project_name']} ({formatted}) requires approval",
                entity_type="time_entry",
                entity_id=entry_id,
                action="updated",
                priority="medium",
                url="/time-tracking/logs",
            )
    logger.info("Auto-stopped timer %s for user %s after %s", timer["id"], owner.id, formatted)
    return {"timer_id": int(timer["id"]), "status": "stopped", "time_entry_id": entry_id, "duration": logged}


def cleanup_expired_timers(db_path, *, now: int | None = None) -> dict[str, Any]:
    """Each timer is handled in its own transaction so one failure does not abort the run."""
    now = int(time.time()) if now is None else now
    with db.connect(db_path) as conn:
        timer_ids = [(int(t["id"]), int(t["organization_id"]), int(t["project_id"])) for t in db.list_active_timers(conn)]

    results: list[dict[str, Any]] = []
    for timer_id, org_id, project_id in timer_ids:
        try:
            with db.connect(db_path) as conn:
                timer = conn.execute(
                    """
                    SELECT at.*, p.name AS project_name, u.username
                    FROM active_timers at
                    JOIN projects p ON p.id = at.project_id
                    JOIN users u ON u.id = at.user_id
                    WHERE at.id = ?
                    """,
                    (timer_id,),
                ).fetchone()
                if not timer:
                    continue
                settings = resolve_settings(conn, org_id, project_id)
                if settings.get("allow_overtime") or not settings.get("max_session_hours"):
                    results.append(
                        {"timer_id": timer_id, "status": "skipped", "reason": "timer_does_not_require_enforcement"}
                    )
                    continue
                results.append(_stop_expired(conn, timer, settings, now))
        except Exception as e:
            logger.exception("Failed to clean up timer %s", timer_id)
            results.append({"timer_id": timer_id, "status": "failed", "error": str(e)})

    summary = {
        "total": len(results),
        "stopped": sum(1 for r in results if r["status"] == "stopped"),
        "skipped": sum(1 for r in results if r["status"] == "skipped"),
        "failed": sum(1 for r in results if r["status"] == "failed"),
    }
    logger.info("Timer cleanup finished: %s", summary)
    return {"success": True, "summary": summary, "results": results}
