from __future__ import annotations

import math
from typing import Any

from .. import db
from ..auth import AuthenticatedUser
from .permissions import accessible_project_ids
from .serializers import row_to_epic, row_to_story, row_to_task


ITEM_TYPES = ("task", "story", "epic")


def _matches(item: dict[str, Any], needle: str | None) -> bool:
    if not needle:
        return True
    return needle in item["title"].lower() or needle in (item.get("description") or "").lower()


def _normalize_assignees(value: Any) -> list[int]:
    if value is None:
        return []
    if isinstance(value, list):
        return [int(v) for v in value]
    return [int(value)]


def collect_backlog_items(
    conn,
    user: AuthenticatedUser,
    *,
    search: str | None = None,
    item_type: str | None = None,
) -> list[dict[str, Any]]:
    if item_type is not None and item_type not in ITEM_TYPES:
        raise ValueError("invalid_type")
    project_ids = accessible_project_ids(conn, user, include_archived=False)
    if not project_ids:
        return []
    allowed = set(project_ids)
    needle = search.strip().lower() if search else None

    items: list[dict[str, Any]] = []
    if item_type in (None, "task"):
        for row in db.list_tasks(conn, user.organization_id, project_ids=project_ids):
            items.append({**row_to_task(row), "task_type": str(row["type"]), "type": "task"})
    if item_type in (None, "story"):
        for row in db.list_stories(conn, user.organization_id):
            if int(row["project_id"]) in allowed:
                items.append({**row_to_story(row), "type": "story"})
    if item_type in (None, "epic"):
        for row in db.list_epics(conn, user.organization_id):
            if int(row["project_id"]) in allowed:
                items.append({**row_to_epic(row), "type": "epic"})

    out = []
    for item in items:
        if not _matches(item, needle):
            continue
        item["assigned_to"] = _normalize_assignees(item.get("assigned_to"))
        out.append(item)
    out.sort(key=lambda it: (it["created_at"], it["id"]), reverse=True)
    return out


def backlog_page(
    conn,
    user: AuthenticatedUser,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    item_type: str | None = None,
) -> dict[str, Any]:
    items = collect_backlog_items(conn, user, search=search, item_type=item_type)
    if not items and not accessible_project_ids(conn, user, include_archived=False):
        return {"success": True, "data": []}
    page = max(1, page)
    limit = max(1, limit)
    total = len(items)
    start = (page - 1) * limit
    return {
        "success": True,
        "data": items[start : start + limit],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit),
        },
    }
