from __future__ import annotations

from http import HTTPStatus

from .. import db
from ..permission_defs import SPRINT_READ
from .ids import match_item_path, parse_path_id
from .params import parse_query, query_bool, query_int
from .permissions import accessible_project_ids, require_permission, require_project
from .serializers import row_to_sprint, row_to_story, row_to_task


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/sprints":
        user = handler._require_permission(SPRINT_READ)
        params = parse_query(query)
        project_id = query_int(params, "projectId")
        with db.connect(handler.server.db_path) as conn:
            if project_id is not None:
                require_project(conn, user, project_id)
                project_ids = [project_id]
            else:
                project_ids = accessible_project_ids(conn, user)
            rows = db.list_sprints(
                conn,
                user.organization_id,
                project_ids=project_ids,
                include_archived=bool(query_bool(params, "includeArchived")),
            )
        handler._send_json(HTTPStatus.OK, {"items": [row_to_sprint(r) for r in rows]})
        return True

    if match_item_path(path, "/api/sprints/"):
        user = handler._require_user()
        sprint_id = parse_path_id(path)
        with db.connect(handler.server.db_path) as conn:
            sprint = db.get_sprint(conn, sprint_id)
            if not sprint or int(sprint["organization_id"]) != user.organization_id:
                raise FileNotFoundError("sprint_not_found")
            require_project(conn, user, int(sprint["project_id"]))
            require_permission(conn, user, SPRINT_READ, int(sprint["project_id"]))
            tasks = db.list_tasks(conn, user.organization_id, sprint_id=sprint_id)
            stories = db.list_stories(conn, user.organization_id, sprint_id=sprint_id)
        out = row_to_sprint(sprint)
        out["tasks"] = [row_to_task(t) for t in tasks]
        out["stories"] = [row_to_story(s) for s in stories]
        handler._send_json(HTTPStatus.OK, out)
        return True

    return False
