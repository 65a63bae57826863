"""Epics, stories and tasks: payload validation and update side effects."""

from __future__ import annotations

import logging
import time
from typing import Any

from .. import db
from ..auth import AuthenticatedUser
from ..permission_defs import (
    EPIC_CREATE,
    EPIC_DELETE,
    EPIC_UPDATE,
    STORY_CREATE,
    STORY_DELETE,
    STORY_UPDATE,
    TASK_CREATE,
    TASK_DELETE,
    TASK_UPDATE,
)
from . import completion
from .choices import (
    EPIC_STATUSES,
    PRIORITIES,
    STORY_STATUSES,
    TASK_STATUSES,
    TASK_TYPES,
    choice,
    optional_number,
    string_list,
)
from .notify import notify
from .params import is_iso_date, optional_int
from .permissions import require_permission


logger = logging.getLogger(__name__)

DONE = "done"


def _org_row(row, user: AuthenticatedUser, code: str):
    if not row or int(row["organization_id"]) != user.organization_id:
        raise FileNotFoundError(code)
    return row


def get_org_epic(conn, user: AuthenticatedUser, epic_id: int):
    return _org_row(db.get_epic(conn, epic_id), user, "epic_not_found")


def get_org_story(conn, user: AuthenticatedUser, story_id: int):
    return _org_row(db.get_story(conn, story_id), user, "story_not_found")


def get_org_task(conn, user: AuthenticatedUser, task_id: int):
    return _org_row(db.get_task(conn, task_id), user, "task_not_found")


def _project_id(conn, user: AuthenticatedUser, payload: dict[str, Any]) -> int:
    project_id = optional_int(payload.get("projectId", payload.get("project_id")))
    if project_id is None:
        raise ValueError("missing_fields")
    if not db.get_org_project(conn, user.organization_id, project_id):
        raise FileNotFoundError("project_not_found")
    return project_id


def _reference(conn, getter, value: Any, project_id: int, code: str) -> int | None:
    ref_id = optional_int(value)
    if ref_id is None:
        return None
    row = getter(conn, ref_id)
    if not row or int(row["project_id"]) != project_id:
        raise ValueError(code)
    return ref_id


def _org_user_id(conn, user: AuthenticatedUser, value: Any) -> int | None:
    user_id = optional_int(value)
    if user_id is not None and not db.get_org_user(conn, user.organization_id, user_id):
        raise ValueError("invalid_assignee")
    return user_id


def _assignees(conn, user: AuthenticatedUser, value: Any) -> list[int]:
    if value in (None, ""):
        return []
    if not isinstance(value, list):
        value = [value]
    out: list[int] = []
    for raw in value:
        user_id = _org_user_id(conn, user, raw)
        if user_id is not None and user_id not in out:
            out.append(user_id)
    return out


def _title(payload: dict[str, Any]) -> str:
    title = str(payload.get("title") or "").strip()
    if not title:
        raise ValueError("missing_fields")
    return title


def _common_fields(payload: dict[str, Any], statuses: tuple[str, ...]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if "title" in payload:
        fields["title"] = _title(payload)
    if "description" in payload:
        fields["description"] = str(payload.get("description") or "")
    if "status" in payload:
        fields["status"] = choice(payload.get("status"), statuses, "invalid_status")
    if "priority" in payload:
        fields["priority"] = choice(payload.get("priority"), PRIORITIES, "invalid_priority")
    if "story_points" in payload:
        fields["story_points"] = optional_number(payload.get("story_points"), "invalid_story_points")
    return fields


def _completion_stamp(fields: dict[str, Any], previous_status: str | None, now: int) -> None:
    status = fields.get("status")
    if status is None or status == previous_status:
        return
    fields["completed_at"] = now if status == DONE else None


def _notify_assignees(conn, user: AuthenticatedUser, task_id: int, title: str, user_ids: list[int]) -> None:
    if not user_ids:
        return
    notify(
        conn,
        recipients=user_ids,
        organization_id=user.organization_id,
        type="task",
        title="Task Assigned",
        message=f"{user.username} assigned you to {title}",
        entity_type="task",
        entity_id=task_id,
        action="assigned",
        url=f"/tasks/{task_id}",
        exclude_user_id=user.id,
    )


def create_epic(conn, user: AuthenticatedUser, payload: dict[str, Any]) -> int:
    project_id = _project_id(conn, user, payload)
    require_permission(conn, user, EPIC_CREATE, project_id)
    fields = _common_fields(payload, EPIC_STATUSES)
    epic_id = db.create_epic(
        conn,
        organization_id=user.organization_id,
        project_id=project_id,
        title=_title(payload),
        created_by=user.id,
        description=fields.get("description", ""),
        status=fields.get("status", "backlog"),
        priority=fields.get("priority", "medium"),
        story_points=fields.get("story_points"),
        tags=string_list(payload.get("tags"), "invalid_tags"),
        assigned_to=_org_user_id(conn, user, payload.get("assigned_to")),
    )
    logger.info("Epic %s created in project %s by user %s", epic_id, project_id, user.id)
    return epic_id


def update_epic(conn, user: AuthenticatedUser, epic_id: int, payload: dict[str, Any], *, now: int | None = None) -> None:
    now = int(time.time()) if now is None else now
    epic = get_org_epic(conn, user, epic_id)
    require_permission(conn, user, EPIC_UPDATE, int(epic["project_id"]))
    fields = _common_fields(payload, EPIC_STATUSES)
    if "tags" in payload:
        fields["tags_json"] = db.dump_json(string_list(payload.get("tags"), "invalid_tags"))
    if "assigned_to" in payload:
        fields["assigned_to"] = _org_user_id(conn, user, payload.get("assigned_to"))
    if "archived" in payload:
        fields["archived"] = 1 if payload.get("archived") else 0
    _completion_stamp(fields, str(epic["status"]), now)
    db.update_epic(conn, epic_id, fields)


def delete_epic(conn, user: AuthenticatedUser, epic_id: int) -> None:
    epic = get_org_epic(conn, user, epic_id)
    require_permission(conn, user, EPIC_DELETE, int(epic["project_id"]))
    db.delete_epic(conn, epic_id)
    logger.info("Epic %s deleted by user %s", epic_id, user.id)


def _story_refs(conn, payload: dict[str, Any], project_id: int) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if "epic_id" in payload:
        fields["epic_id"] = _reference(conn, db.get_epic, payload.get("epic_id"), project_id, "invalid_epic_id")
    if "sprint_id" in payload:
        fields["sprint_id"] = _reference(conn, db.get_sprint, payload.get("sprint_id"), project_id, "invalid_sprint_id")
    return fields


def create_story(conn, user: AuthenticatedUser, payload: dict[str, Any]) -> int:
    project_id = _project_id(conn, user, payload)
    require_permission(conn, user, STORY_CREATE, project_id)
    fields = _common_fields(payload, STORY_STATUSES)
    refs = _story_refs(conn, payload, project_id)
    story_id = db.create_story(
        conn,
        organization_id=user.organization_id,
        project_id=project_id,
        title=_title(payload),
        created_by=user.id,
        description=fields.get("description", ""),
        epic_id=refs.get("epic_id"),
        sprint_id=refs.get("sprint_id"),
        acceptance_criteria=string_list(payload.get("acceptance_criteria"), "invalid_acceptance_criteria"),
        status=fields.get("status", "backlog"),
        priority=fields.get("priority", "medium"),
        story_points=fields.get("story_points"),
        assigned_to=_org_user_id(conn, user, payload.get("assigned_to")),
    )
    logger.info("Story %s created in project %s by user %s", story_id, project_id, user.id)
    return story_id


def update_story(conn, user: AuthenticatedUser, story_id: int, payload: dict[str, Any], *, now: int | None = None) -> None:
    now = int(time.time()) if now is None else now
    story = get_org_story(conn, user, story_id)
    project_id = int(story["project_id"])
    require_permission(conn, user, STORY_UPDATE, project_id)
    fields = _common_fields(payload, STORY_STATUSES)
    fields.update(_story_refs(conn, payload, project_id))
    if "acceptance_criteria" in payload:
        fields["acceptance_criteria_json"] = db.dump_json(
            string_list(payload.get("acceptance_criteria"), "invalid_acceptance_criteria")
        )
    if "assigned_to" in payload:
        fields["assigned_to"] = _org_user_id(conn, user, payload.get("assigned_to"))
    if "archived" in payload:
        fields["archived"] = 1 if payload.get("archived") else 0
    _completion_stamp(fields, str(story["status"]), now)
    db.update_story(conn, story_id, fields)

    if fields.get("status") == DONE and str(story["status"]) != DONE:
        updated = db.get_story(conn, story_id)
        if updated["sprint_id"] is not None:
            completion.check_sprint_completion(conn, int(updated["sprint_id"]), now=now)
        if updated["epic_id"] is not None:
            completion.check_epic_completion(conn, int(updated["epic_id"]), now=now)


def delete_story(conn, user: AuthenticatedUser, story_id: int) -> None:
    story = get_org_story(conn, user, story_id)
    require_permission(conn, user, STORY_DELETE, int(story["project_id"]))
    db.delete_story(conn, story_id)
    logger.info("Story %s deleted by user %s", story_id, user.id)


def _task_fields(conn, payload: dict[str, Any], project_id: int) -> dict[str, Any]:
    fields = _common_fields(payload, TASK_STATUSES)
    if "type" in payload:
        fields["type"] = choice(payload.get("type"), TASK_TYPES, "invalid_type")
    if "story_id" in payload:
        fields["story_id"] = _reference(conn, db.get_story, payload.get("story_id"), project_id, "invalid_story_id")
    fields.update(_story_refs(conn, payload, project_id))
    if "estimated_hours" in payload:
        fields["estimated_hours"] = optional_number(payload.get("estimated_hours"), "invalid_estimated_hours")
    if "due_date" in payload:
        due = payload.get("due_date")
        if due in (None, ""):
            fields["due_date"] = None
        elif is_iso_date(str(due)[:10]):
            fields["due_date"] = str(due)[:10]
        else:
            raise ValueError("invalid_date")
    if "position" in payload:
        fields["position"] = int(payload.get("position"))
    return fields


def create_task(conn, user: AuthenticatedUser, payload: dict[str, Any], *, now: int | None = None) -> int:
    now = int(time.time()) if now is None else now
    project_id = _project_id(conn, user, payload)
    require_permission(conn, user, TASK_CREATE, project_id)
    fields = _task_fields(conn, payload, project_id)
    assignees = _assignees(conn, user, payload.get("assigned_to"))
    title = _title(payload)
    task_id = db.create_task(
        conn,
        organization_id=user.organization_id,
        project_id=project_id,
        title=title,
        created_by=user.id,
        description=fields.get("description", ""),
        status=fields.get("status", "backlog"),
        priority=fields.get("priority", "medium"),
        task_type=fields.get("type", "task"),
        story_id=fields.get("story_id"),
        epic_id=fields.get("epic_id"),
        sprint_id=fields.get("sprint_id"),
        assigned_to=assignees,
        story_points=fields.get("story_points"),
        estimated_hours=fields.get("estimated_hours"),
        due_date=fields.get("due_date"),
        labels=string_list(payload.get("labels"), "invalid_labels"),
    )
    if fields.get("status") == DONE:
        db.update_task(conn, task_id, {"completed_at": now})
    if fields.get("sprint_id") is not None:
        completion.handle_task_added_to_sprint(conn, task_id)
    _notify_assignees(conn, user, task_id, title, assignees)
    logger.info("Task %s created in project %s by user %s", task_id, project_id, user.id)
    return task_id


def update_task(conn, user: AuthenticatedUser, task_id: int, payload: dict[str, Any], *, now: int | None = None) -> None:
    now = int(time.time()) if now is None else now
    task = get_org_task(conn, user, task_id)
    project_id = int(task["project_id"])
    require_permission(conn, user, TASK_UPDATE, project_id)
    fields = _task_fields(conn, payload, project_id)
    if "labels" in payload:
        fields["labels_json"] = db.dump_json(string_list(payload.get("labels"), "invalid_labels"))
    if "archived" in payload:
        fields["archived"] = 1 if payload.get("archived") else 0

    new_assignees: list[int] = []
    if "assigned_to" in payload:
        assignees = _assignees(conn, user, payload.get("assigned_to"))
        previous = {int(x) for x in db.load_json(task["assigned_to_json"], [])}
        new_assignees = [uid for uid in assignees if uid not in previous]
        fields["assigned_to_json"] = db.dump_json(assignees)

    previous_status = str(task["status"])
    _completion_stamp(fields, previous_status, now)
    db.update_task(conn, task_id, fields)

    if fields.get("status") == DONE and previous_status != DONE:
        completion.handle_task_status_change(conn, task_id, now=now)
    new_sprint = fields.get("sprint_id")
    if new_sprint is not None and new_sprint != task["sprint_id"]:
        completion.handle_task_added_to_sprint(conn, task_id)
    _notify_assignees(conn, user, task_id, str(fields.get("title", task["title"])), new_assignees)


def delete_task(conn, user: AuthenticatedUser, task_id: int) -> None:
    task = get_org_task(conn, user, task_id)
    require_permission(conn, user, TASK_DELETE, int(task["project_id"]))
    db.delete_task(conn, task_id)
    logger.info("Task %s deleted by user %s", task_id, user.id)
