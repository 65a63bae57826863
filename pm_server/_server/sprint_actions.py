from __future__ import annotations

import logging
import time
from typing import Any

from .. import db
from ..auth import AuthenticatedUser
from ..permission_defs import SPRINT_COMPLETE, SPRINT_START
from . import completion
from .permissions import require_permission


logger = logging.getLogger(__name__)

CLOSED_TASK_STATES = ("done", "cancelled", "completed")
CLOSED_SPRINT_STATES = ("completed", "cancelled")


def _org_sprint(conn, user: AuthenticatedUser, sprint_id: int):
    sprint = db.get_sprint(conn, sprint_id)
    if not sprint:
        raise FileNotFoundError("sprint_not_found")
    if int(sprint["organization_id"]) != user.organization_id:
        raise PermissionError("not_authorized")
    return sprint


def start_sprint(conn, user: AuthenticatedUser, sprint_id: int, *, now: int | None = None) -> None:
    now = int(time.time()) if now is None else now
    sprint = _org_sprint(conn, user, sprint_id)
    require_permission(conn, user, SPRINT_START, int(sprint["project_id"]))
    if str(sprint["status"]) != "planning":
        raise ValueError("sprint_not_planning")

    db.update_sprint(conn, sprint_id, {"status": "active", "actual_start_date": now})
    tasks = db.list_tasks(conn, user.organization_id, sprint_id=sprint_id)
    for task in tasks:
        db.update_task(conn, int(task["id"]), {"status": "todo", "start_date": now})
    logger.info("Sprint %s started by user %s with %d task(s)", sprint_id, user.id, len(tasks))


def complete_sprint(
    conn,
    user: AuthenticatedUser,
    sprint_id: int,
    *,
    target_sprint_id: int | None = None,
    selected_task_ids: list[int] | None = None,
    now: int | None = None,
) -> dict[str, Any]:
    now = int(time.time()) if now is None else now
    sprint = _org_sprint(conn, user, sprint_id)
    require_permission(conn, user, SPRINT_COMPLETE, int(sprint["project_id"]))
    if str(sprint["status"]) != "active":
        raise ValueError("sprint_not_active")

    tasks = db.list_tasks(conn, user.organization_id, sprint_id=sprint_id)
    if not tasks:
        raise ValueError("sprint_has_no_tasks")

    if target_sprint_id == sprint_id:
        target_sprint_id = None
    if target_sprint_id is not None:
        target = _org_sprint(conn, user, target_sprint_id)
        if str(target["status"]) in CLOSED_SPRINT_STATES:
            raise ValueError("invalid_target_sprint")

    incomplete = [t for t in tasks if str(t["status"]) not in CLOSED_TASK_STATES]
    done = [t for t in tasks if str(t["status"]) == "done"]
    # an empty selection means no selection
    selected = {int(x) for x in selected_task_ids} if selected_task_ids else None

    moved_to_sprint: list[int] = []
    moved_to_backlog: list[int] = []
    for task in incomplete:
        task_id = int(task["id"])
        to_target = target_sprint_id is not None and (selected is None or task_id in selected)
        if to_target:
            db.update_task(conn, task_id, {"sprint_id": target_sprint_id, "status": "todo"})
            completion.handle_task_added_to_sprint(conn, task_id)
            moved_to_sprint.append(task_id)
        else:
            db.update_task(
                conn,
                task_id,
                {"sprint_id": None, "status": "backlog", "moved_from_sprint_id": sprint_id},
            )
            moved_to_backlog.append(task_id)

    story_ids = {int(t["story_id"]) for t in done if t["story_id"] is not None}
    epic_ids = {int(t["epic_id"]) for t in done if t["epic_id"] is not None}
    for story in db.list_stories(conn, user.organization_id, sprint_id=sprint_id):
        if str(story["status"]) == "done" and story["epic_id"] is not None:
            epic_ids.add(int(story["epic_id"]))

    # completion checks only count non-archived tasks, so they run before archiving
    for story_id in story_ids:
        completion.check_story_completion(conn, story_id, now=now)
        story = db.get_story(conn, story_id)
        if story and str(story["status"]) == "done" and story["epic_id"] is not None:
            epic_ids.add(int(story["epic_id"]))
    for epic_id in epic_ids:
        completion.check_epic_completion(conn, epic_id, now=now)

    for task in done:
        db.update_task(conn, int(task["id"]), {"archived": 1})
    db.update_sprint(conn, sprint_id, {"status": "completed", "actual_end_date": now})

    logger.info(
        "Sprint %s completed by user %s: %d archived, %d moved to sprint %s, %d moved to backlog",
        sprint_id,
        user.id,
        len(done),
        len(moved_to_sprint),
        target_sprint_id,
        len(moved_to_backlog),
    )
    return {
        "sprint_id": sprint_id,
        "completedTasks": len(done),
        "movedToSprint": moved_to_sprint,
        "movedToBacklog": moved_to_backlog,
        "targetSprintId": target_sprint_id,
    }
