from __future__ import annotations

from http import HTTPStatus

from .. import db
from ..permission_defs import PROJECT_READ
from .ids import match_item_path, parse_path_id
from .params import parse_query, query_bool
from .permissions import accessible_project_ids, has_permission, require_project
from .serializers import row_to_member, row_to_project


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/projects":
        user = handler._require_user()
        include_archived = bool(query_bool(parse_query(query), "includeArchived"))
        with db.connect(handler.server.db_path) as conn:
            allowed = set(accessible_project_ids(conn, user, include_archived=include_archived))
            rows = [
                r
                for r in db.list_projects(conn, user.organization_id, include_archived=include_archived)
                if int(r["id"]) in allowed
            ]
        handler._send_json(HTTPStatus.OK, {"items": [row_to_project(r) for r in rows]})
        return True

    if match_item_path(path, "/api/projects/"):
        user = handler._require_user()
        project_id = parse_path_id(path)
        with db.connect(handler.server.db_path) as conn:
            project = require_project(conn, user, project_id)
            if not has_permission(conn, user, PROJECT_READ, project_id):
                raise PermissionError("not_authorized")
            members = db.list_project_members(conn, project_id)
        out = row_to_project(project)
        out["team"] = [row_to_member(m) for m in members]
        handler._send_json(HTTPStatus.OK, out)
        return True

    return False
