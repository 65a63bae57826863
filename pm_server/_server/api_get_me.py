from __future__ import annotations

from http import HTTPStatus

from .. import db
from .params import parse_query, query_int
from .permissions import global_permissions, project_permissions, project_role, require_project


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/me":
        user = handler._require_user()
        with db.connect(handler.server.db_path) as conn:
            permissions = ["*"] if user.is_admin else sorted(global_permissions(conn, user))
        handler._send_json(
            HTTPStatus.OK,
            {
                "id": user.id,
                "username": user.username,
                "role": user.role,
                "organization_id": user.organization_id,
                "display_name": user.display_name,
                "permissions": permissions,
            },
        )
        return True

    if path == "/api/auth/permissions":
        user = handler._require_user()
        project_id = query_int(parse_query(query), "projectId")
        with db.connect(handler.server.db_path) as conn:
            out = {
                "role": user.role,
                "globalPermissions": sorted(global_permissions(conn, user)),
                "projectPermissions": [],
                "projectRole": None,
            }
            if project_id is not None:
                project = require_project(conn, user, project_id)
                out["projectRole"] = project_role(conn, user, project)
                out["projectPermissions"] = sorted(project_permissions(conn, user, project))
        handler._send_json(HTTPStatus.OK, out)
        return True

    return False
