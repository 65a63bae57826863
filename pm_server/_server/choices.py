from __future__ import annotations

from typing import Any


PROJECT_STATUSES = ("planning", "active", "on_hold", "completed", "cancelled")
PRIORITIES = ("low", "medium", "high", "critical")
EPIC_STATUSES = ("backlog", "in_progress", "completed", "done", "cancelled")
STORY_STATUSES = EPIC_STATUSES
TASK_STATUSES = ("backlog", "todo", "in_progress", "review", "testing", "done", "cancelled")
TASK_TYPES = ("bug", "feature", "improvement", "task", "subtask")
SPRINT_STATUSES = ("planning", "active", "completed", "cancelled")


def choice(value: Any, allowed: tuple[str, ...], code: str) -> str:
    text = str(value or "").strip()
    if text not in allowed:
        raise ValueError(code)
    return text


def string_list(value: Any, code: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(code)
    return [str(v).strip() for v in value if str(v).strip()]


def optional_number(value: Any, code: str) -> float | None:
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(code) from e
    if number < 0:
        raise ValueError(code)
    return number
