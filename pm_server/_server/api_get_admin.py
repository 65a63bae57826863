from __future__ import annotations

from http import HTTPStatus

from .. import db
from ..permission_defs import ORGANIZATION_READ, USER_MANAGE_ROLES, USER_READ
from .ids import match_item_path, parse_path_id
from .serializers import row_to_organization, row_to_role, row_to_user
from .time_settings import organization_settings


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/organization":
        user = handler._require_permission(ORGANIZATION_READ)
        with db.connect(handler.server.db_path) as conn:
            row = db.get_organization(conn, user.organization_id)
            if not row:
                raise FileNotFoundError("organization_not_found")
            out = row_to_organization(row)
            out["time_tracking"] = organization_settings(conn, user.organization_id)
        handler._send_json(HTTPStatus.OK, out)
        return True

    if path == "/api/admin/roles":
        handler._require_permission(USER_MANAGE_ROLES)
        with db.connect(handler.server.db_path) as conn:
            items = [row_to_role(r, sorted(db.role_permission_set(conn, str(r["name"])))) for r in db.list_roles(conn)]
        handler._send_json(HTTPStatus.OK, {"items": items})
        return True

    if path == "/api/users":
        user = handler._require_permission(USER_READ)
        with db.connect(handler.server.db_path) as conn:
            rows = db.list_users(conn, user.organization_id)
        handler._send_json(HTTPStatus.OK, {"items": [row_to_user(r) for r in rows]})
        return True

    if match_item_path(path, "/api/users/"):
        user = handler._require_permission(USER_READ)
        user_id = parse_path_id(path)
        with db.connect(handler.server.db_path) as conn:
            row = db.get_org_user(conn, user.organization_id, user_id)
        if not row:
            raise FileNotFoundError("user_not_found")
        handler._send_json(HTTPStatus.OK, row_to_user(row))
        return True

    return False
