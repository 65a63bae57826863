from __future__ import annotations

from http import HTTPStatus

from .. import db
from ..permission_defs import TASK_MANAGE_COMMENTS
from . import work_items
from .ids import match_item_path, parse_path_id
from .jsonutil import read_json_object
from .notify import notify
from .permissions import require_permission
from .serializers import row_to_comment, row_to_epic, row_to_story, row_to_task


_KINDS = (
    ("/api/epics", work_items.create_epic, work_items.update_epic, work_items.delete_epic, db.get_epic, row_to_epic),
    ("/api/stories", work_items.create_story, work_items.update_story, work_items.delete_story, db.get_story, row_to_story),
    ("/api/tasks", work_items.create_task, work_items.update_task, work_items.delete_task, db.get_task, row_to_task),
)


def try_handle(handler, path: str, query: str) -> bool:
    for base, create, update, delete, get, serialize in _KINDS:
        if path == base:
            user = handler._require_user()
            payload = read_json_object(handler)
            with db.connect(handler.server.db_path) as conn:
                item_id = create(conn, user, payload)
                row = get(conn, item_id)
            handler._send_json(HTTPStatus.CREATED, serialize(row))
            return True

        if match_item_path(path, base + "/"):
            user = handler._require_user()
            item_id = parse_path_id(path)
            payload = read_json_object(handler)
            with db.connect(handler.server.db_path) as conn:
                update(conn, user, item_id, payload)
                row = get(conn, item_id)
            handler._send_json(HTTPStatus.OK, serialize(row))
            return True

        if match_item_path(path, base + "/", "/delete"):
            user = handler._require_user()
            item_id = parse_path_id(path, suffix="/delete")
            with db.connect(handler.server.db_path) as conn:
                delete(conn, user, item_id)
            handler._send_empty(HTTPStatus.NO_CONTENT)
            return True

    if match_item_path(path, "/api/tasks/", "/comments"):
        user = handler._require_user()
        task_id = parse_path_id(path, suffix="/comments")
        payload = read_json_object(handler)
        content = str(payload.get("content") or "").strip()
        if not content:
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        with db.connect(handler.server.db_path) as conn:
            task = work_items.get_org_task(conn, user, task_id)
            require_permission(conn, user, TASK_MANAGE_COMMENTS, int(task["project_id"]))
            comment_id = db.add_task_comment(conn, task_id, user_id=user.id, content=content)
            notify(
                conn,
                recipients=[int(x) for x in db.load_json(task["assigned_to_json"], [])],
                organization_id=user.organization_id,
                type="task",
                title="New Comment",
                message=f"{user.username} commented on {task['title']}",
                entity_type="task",
                entity_id=task_id,
                action="commented",
                priority="low",
                url=f"/tasks/{task_id}",
                exclude_user_id=user.id,
            )
            row = next(r for r in db.list_task_comments(conn, task_id) if int(r["id"]) == comment_id)
        handler._send_json(HTTPStatus.CREATED, row_to_comment(row))
        return True

    return False
