"""Cascade of automatic completion: task -> story -> sprint/epic."""

from __future__ import annotations

import logging
import time

from .. import db


logger = logging.getLogger(__name__)

DONE = "done"
STARTED_EPIC_STATES = ("in_progress", "done")


def check_story_completion(conn, story_id: int, *, now: int | None = None) -> bool:
    now = int(time.time()) if now is None else now
    story = db.get_story(conn, story_id)
    if not story or str(story["status"]) == DONE:
        return False
    tasks = db.list_tasks(conn, int(story["organization_id"]), story_id=story_id)
    if not tasks or any(str(t["status"]) != DONE for t in tasks):
        return False

    db.update_story(conn, story_id, {"status": DONE, "completed_at": now})
    logger.info("Story %s completed: all tasks done", story_id)
    if story["sprint_id"] is not None:
        check_sprint_completion(conn, int(story["sprint_id"]), now=now)
    if story["epic_id"] is not None:
        check_epic_completion(conn, int(story["epic_id"]), now=now)
    return True


def check_sprint_completion(conn, sprint_id: int, *, now: int | None = None) -> bool:
    now = int(time.time()) if now is None else now
    sprint = db.get_sprint(conn, sprint_id)
    if not sprint or str(sprint["status"]) == "completed":
        return False
    stories = db.list_stories(conn, int(sprint["organization_id"]), sprint_id=sprint_id)
    if not stories or any(str(s["status"]) != DONE for s in stories):
        return False

    db.update_sprint(conn, sprint_id, {"status": "completed", "actual_end_date": now})
    logger.info("Sprint %s completed: all stories done", sprint_id)
    for epic_id in {int(s["epic_id"]) for s in stories if s["epic_id"] is not None}:
        check_epic_completion(conn, epic_id, now=now)
    return True


def check_epic_completion(conn, epic_id: int, *, now: int | None = None) -> bool:
    now = int(time.time()) if now is None else now
    epic = db.get_epic(conn, epic_id)
    if not epic or str(epic["status"]) == DONE:
        return False
    org_id = int(epic["organization_id"])

    stories = db.list_stories(conn, org_id, epic_id=epic_id)
    if any(str(s["status"]) != DONE for s in stories):
        return False

    tasks = list(db.list_tasks(conn, org_id, epic_id=epic_id))
    seen = {int(t["id"]) for t in tasks}
    for story in stories:
        for task in db.list_tasks(conn, org_id, story_id=int(story["id"])):
            if int(task["id"]) not in seen:
                seen.add(int(task["id"]))
                tasks.append(task)
    if any(str(t["status"]) != DONE for t in tasks):
        return False

    db.update_epic(conn, epic_id, {"status": DONE, "completed_at": now})
    logger.info("Epic %s completed", epic_id)
    return True


def handle_task_status_change(conn, task_id: int, *, now: int | None = None) -> None:
    task = db.get_task(conn, task_id)
    if not task or str(task["status"]) != DONE:
        return
    if task["story_id"] is not None:
        check_story_completion(conn, int(task["story_id"]), now=now)
    if task["epic_id"] is not None:
        check_epic_completion(conn, int(task["epic_id"]), now=now)


def handle_task_added_to_sprint(conn, task_id: int) -> None:
    task = db.get_task(conn, task_id)
    if not task or task["epic_id"] is None or task["sprint_id"] is None:
        return
    epic = db.get_epic(conn, int(task["epic_id"]))
    if epic and str(epic["status"]) not in STARTED_EPIC_STATES:
        db.update_epic(conn, int(epic["id"]), {"status": "in_progress"})
        logger.info("Epic %s moved to in_progress: task %s added to a sprint", epic["id"], task_id)
