"""Time-tracking settings: defaults, validation and scope resolution.

Resolution order is project record, then organization record. When an
organization has no record yet, one is materialized from the organization's
stored defaults and saved.
"""

from __future__ import annotations

import copy
import logging
import math
from typing import Any

from .. import db


logger = logging.getLogger(__name__)


DEFAULT_SETTINGS: dict[str, Any] = {
    "allow_time_tracking": True,
    "allow_manual_time_submission": True,
    "require_approval": False,
    "allow_billable_time": True,
    "default_hourly_rate": 0,
    "max_daily_hours": 12,
    "max_weekly_hours": 60,
    "max_session_hours": 8,
    "allow_overtime": False,
    "require_description": False,
    "require_category": False,
    "allow_future_time": False,
    "allow_past_time": True,
    "past_time_limit_days": 30,
    "time_log_edit_mode": None,
    "time_log_edit_days": 30,
    "time_log_edit_day_of_month": 15,
    "categories": [],
    "tags": [],
    "rounding_rules": {"enabled": False, "increment": 15, "round_up": True},
    "notifications": {
        "on_timer_start": False,
        "on_timer_stop": True,
        "on_overtime": True,
        "on_approval_needed": True,
        "on_time_submitted": True,
    },
}

_BOOL_FIELDS = {
    "allow_time_tracking",
    "allow_manual_time_submission",
    "require_approval",
    "allow_billable_time",
    "allow_overtime",
    "require_description",
    "require_category",
    "allow_future_time",
    "allow_past_time",
}

_NUMBER_RANGES: dict[str, tuple[float, float]] = {
    "default_hourly_rate": (0, math.inf),
    "max_daily_hours": (1, 24),
    "max_weekly_hours": (1, 168),
    "max_session_hours": (1, 24),
    "past_time_limit_days": (1, 365),
    "time_log_edit_days": (1, 365),
    "time_log_edit_day_of_month": (1, 31),
}

EDIT_MODES = (None, "days", "dayOfMonth")


def merge_settings(base: dict[str, Any], overrides: dict[str, Any] | None) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if key in ("rounding_rules", "notifications") and isinstance(value, dict):
            out[key] = {**out.get(key, {}), **value}
        else:
            out[key] = copy.deepcopy(value)
    return out


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ValueError("invalid_settings")
    try:
        num = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError("invalid_settings") from e
    lo, hi = _NUMBER_RANGES[key]
    if not (lo <= num <= hi):
        raise ValueError("invalid_settings")
    return int(num) if num.is_integer() else num


def validate_settings(values: dict[str, Any]) -> dict[str, Any]:
    """Normalize a partial settings update. Unknown keys are rejected."""
    if not isinstance(values, dict):
        raise ValueError("invalid_settings")
    out: dict[str, Any] = {}
    for key, value in values.items():
        if key in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValueError("invalid_settings")
            out[key] = value
        elif key in _NUMBER_RANGES:
            out[key] = _number(value, key)
        elif key == "time_log_edit_mode":
            if value not in EDIT_MODES:
                raise ValueError("invalid_settings")
            out[key] = value
        elif key in ("categories", "tags"):
            if not isinstance(value, list):
                raise ValueError("invalid_settings")
            out[key] = [str(v).strip() for v in value if str(v).strip()]
        elif key == "rounding_rules":
            out[key] = _validate_rounding(value)
        elif key == "notifications":
            if not isinstance(value, dict):
                raise ValueError("invalid_settings")
            unknown = set(value) - set(DEFAULT_SETTINGS["notifications"])
            if unknown or not all(isinstance(v, bool) for v in value.values()):
                raise ValueError("invalid_settings")
            out[key] = dict(value)
        else:
            raise ValueError("invalid_settings")
    return out


def _validate_rounding(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError("invalid_settings")
    out: dict[str, Any] = {}
    if "enabled" in value:
        if not isinstance(value["enabled"], bool):
            raise ValueError("invalid_settings")
        out["enabled"] = value["enabled"]
    if "round_up" in value:
        if not isinstance(value["round_up"], bool):
            raise ValueError("invalid_settings")
        out["round_up"] = value["round_up"]
    if "increment" in value:
        inc = value["increment"]
        if isinstance(inc, bool) or not isinstance(inc, (int, float)) or not (1 <= inc <= 60):
            raise ValueError("invalid_settings")
        out["increment"] = inc
    return out


def organization_settings(conn, organization_id: int) -> dict[str, Any]:
    record = db.get_settings_record(conn, organization_id, None)
    if record is not None:
        return merge_settings(DEFAULT_SETTINGS, record)

    defaults = db.get_org_time_tracking_defaults(conn, organization_id) or {}
    settings = merge_settings(DEFAULT_SETTINGS, defaults)
    db.save_settings_record(conn, organization_id, None, settings)
    logger.info("Created organization-level time tracking settings for organization %s", organization_id)
    return settings


def resolve_settings(conn, organization_id: int, project_id: int | None = None) -> dict[str, Any]:
    settings = organization_settings(conn, organization_id)
    if project_id is None:
        return settings

    record = db.get_settings_record(conn, organization_id, project_id)
    settings = merge_settings(settings, record)
    if record is None or "require_approval" not in record:
        project = db.get_project(conn, project_id)
        if project and bool(project["require_approval"]):
            settings["require_approval"] = True
    return settings


def notification_enabled(settings: dict[str, Any], kind: str) -> bool:
    toggles = settings.get("notifications") or {}
    if kind in toggles:
        return bool(toggles[kind])
    return bool(DEFAULT_SETTINGS["notifications"].get(kind, False))


def update_settings(conn, organization_id: int, project_id: int | None, changes: dict[str, Any]) -> dict[str, Any]:
    clean = validate_settings(changes)
    if project_id is None:
        current = organization_settings(conn, organization_id)
        merged = merge_settings(current, clean)
        db.save_settings_record(conn, organization_id, None, merged)
        db.set_org_time_tracking_defaults(conn, organization_id, merged)
    else:
        record = db.get_settings_record(conn, organization_id, project_id) or {}
        db.save_settings_record(conn, organization_id, project_id, merge_settings(record, clean))
    return resolve_settings(conn, organization_id, project_id)
