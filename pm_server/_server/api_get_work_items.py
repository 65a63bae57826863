from __future__ import annotations

from http import HTTPStatus

from .. import db
from ..permission_defs import EPIC_READ, STORY_READ, TASK_READ
from .ids import match_item_path, parse_path_id
from .params import parse_query, query_bool, query_int, query_str
from .permissions import accessible_project_ids, has_permission, require_project
from .serializers import row_to_comment, row_to_epic, row_to_story, row_to_task
from .work_items import get_org_epic, get_org_story, get_org_task


def _readable(conn, user, project_id: int, permission: str) -> None:
    require_project(conn, user, project_id)
    if not has_permission(conn, user, permission, project_id):
        raise PermissionError("not_authorized")


def _visible_projects(conn, user, project_id: int | None, permission: str) -> set[int]:
    if project_id is not None:
        _readable(conn, user, project_id, permission)
        return {project_id}
    return {
        pid for pid in accessible_project_ids(conn, user) if has_permission(conn, user, permission, pid)
    }


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/epics":
        user = handler._require_user()
        params = parse_query(query)
        project_id = query_int(params, "projectId")
        with db.connect(handler.server.db_path) as conn:
            visible = _visible_projects(conn, user, project_id, EPIC_READ)
            rows = db.list_epics(
                conn,
                user.organization_id,
                project_id=project_id,
                include_archived=bool(query_bool(params, "includeArchived")),
            )
        items = [row_to_epic(r) for r in rows if int(r["project_id"]) in visible]
        handler._send_json(HTTPStatus.OK, {"items": items})
        return True

    if match_item_path(path, "/api/epics/"):
        user = handler._require_user()
        epic_id = parse_path_id(path)
        with db.connect(handler.server.db_path) as conn:
            epic = get_org_epic(conn, user, epic_id)
            _readable(conn, user, int(epic["project_id"]), EPIC_READ)
            stories = db.list_stories(conn, user.organization_id, epic_id=epic_id)
        out = row_to_epic(epic)
        out["stories"] = [row_to_story(s) for s in stories]
        handler._send_json(HTTPStatus.OK, out)
        return True

    if path == "/api/stories":
        user = handler._require_user()
        params = parse_query(query)
        project_id = query_int(params, "projectId")
        with db.connect(handler.server.db_path) as conn:
            visible = _visible_projects(conn, user, project_id, STORY_READ)
            rows = db.list_stories(
                conn,
                user.organization_id,
                project_id=project_id,
                epic_id=query_int(params, "epicId"),
                sprint_id=query_int(params, "sprintId"),
                include_archived=bool(query_bool(params, "includeArchived")),
            )
        items = [row_to_story(r) for r in rows if int(r["project_id"]) in visible]
        handler._send_json(HTTPStatus.OK, {"items": items})
        return True

    if match_item_path(path, "/api/stories/"):
        user = handler._require_user()
        story_id = parse_path_id(path)
        with db.connect(handler.server.db_path) as conn:
            story = get_org_story(conn, user, story_id)
            _readable(conn, user, int(story["project_id"]), STORY_READ)
            tasks = db.list_tasks(conn, user.organization_id, story_id=story_id)
        out = row_to_story(story)
        out["tasks"] = [row_to_task(t) for t in tasks]
        handler._send_json(HTTPStatus.OK, out)
        return True

    if path == "/api/tasks":
        user = handler._require_user()
        params = parse_query(query)
        project_id = query_int(params, "projectId")
        with db.connect(handler.server.db_path) as conn:
            visible = _visible_projects(conn, user, project_id, TASK_READ)
            rows = db.list_tasks(
                conn,
                user.organization_id,
                project_ids=sorted(visible),
                sprint_id=query_int(params, "sprintId"),
                story_id=query_int(params, "storyId"),
                epic_id=query_int(params, "epicId"),
                status=query_str(params, "status"),
                include_archived=bool(query_bool(params, "includeArchived")),
            )
        handler._send_json(HTTPStatus.OK, {"items": [row_to_task(r) for r in rows]})
        return True

    if match_item_path(path, "/api/tasks/"):
        user = handler._require_user()
        task_id = parse_path_id(path)
        with db.connect(handler.server.db_path) as conn:
            task = get_org_task(conn, user, task_id)
            _readable(conn, user, int(task["project_id"]), TASK_READ)
        handler._send_json(HTTPStatus.OK, row_to_task(task))
        return True

    if match_item_path(path, "/api/tasks/", "/comments"):
        user = handler._require_user()
        task_id = parse_path_id(path, suffix="/comments")
        with db.connect(handler.server.db_path) as conn:
            task = get_org_task(conn, user, task_id)
            _readable(conn, user, int(task["project_id"]), TASK_READ)
            rows = db.list_task_comments(conn, task_id)
        handler._send_json(HTTPStatus.OK, {"items": [row_to_comment(r) for r in rows]})
        return True

    return False
