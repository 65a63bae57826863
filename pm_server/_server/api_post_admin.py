from __future__ import annotations

import logging
from http import HTTPStatus

from .. import db
from ..auth import hash_password
from ..permission_defs import (
    ALL_PERMISSIONS,
    ORGANIZATION_UPDATE,
    USER_CREATE,
    USER_MANAGE_ROLES,
    USER_UPDATE,
)
from .ids import match_item_path, parse_path_id
from .jsonutil import read_json_object
from .permissions import global_permissions
from .serializers import row_to_organization, row_to_user


logger = logging.getLogger(__name__)


def _optional_rate(value) -> float | None:
    if value in (None, ""):
        return None
    rate = float(value)
    if rate < 0:
        raise ValueError("invalid_billing_rate")
    return rate


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/organization":
        user = handler._require_permission(ORGANIZATION_UPDATE)
        payload = read_json_object(handler)
        updates: dict[str, str] = {}
        for key in ("name", "currency", "timezone"):
            if key in payload:
                value = str(payload.get(key) or "").strip()
                if not value:
                    raise ValueError("missing_fields")
                updates[key] = value
        with db.connect(handler.server.db_path) as conn:
            db.update_organization(conn, user.organization_id, **updates)
            row = db.get_organization(conn, user.organization_id)
        handler._send_json(HTTPStatus.OK, row_to_organization(row))
        return True

    if path == "/api/admin/roles":
        handler._require_permission(USER_MANAGE_ROLES)
        payload = read_json_object(handler)
        role_name = str(payload.get("role", "")).strip()
        permissions = payload.get("permissions", None)
        if not role_name or not isinstance(permissions, list):
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        perms = [str(p).strip() for p in permissions if p not in (None, "")]
        unknown = [p for p in perms if p not in ALL_PERMISSIONS]
        if unknown:
            handler._send_error(HTTPStatus.BAD_REQUEST, "invalid_permission")
            return True
        with db.connect(handler.server.db_path) as conn:
            db.save_role(conn, role_name, perms)
        logger.info("Role %r saved with %d permission(s)", role_name, len(perms))
        handler._send_json(HTTPStatus.CREATED, {"ok": True})
        return True

    if path == "/api/users":
        user = handler._require_permission(USER_CREATE)
        payload = read_json_object(handler)
        username = str(payload.get("username", "")).strip()
        password = str(payload.get("password", ""))
        role = str(payload.get("role", "")).strip() or "team_member"
        if not username or not password:
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        display_name = str(payload.get("display_name") or "").strip() or None
        email = str(payload.get("email") or "").strip() or None
        billing_rate = _optional_rate(payload.get("billing_rate"))
        with db.connect(handler.server.db_path) as conn:
            if not db.role_exists(conn, role):
                handler._send_error(HTTPStatus.BAD_REQUEST, "invalid_role")
                return True
            user_id = db.create_user(
                conn,
                organization_id=user.organization_id,
                username=username,
                password_hash=hash_password(password),
                role=role,
                display_name=display_name,
                email=email,
                billing_rate=billing_rate,
            )
            row = db.get_user_by_id(conn, user_id)
        logger.info("User %s (%s) created by user %s", user_id, username, user.id)
        handler._send_json(HTTPStatus.CREATED, row_to_user(row))
        return True

    if match_item_path(path, "/api/users/"):
        user = handler._require_user()
        user_id = parse_path_id(path)
        payload = read_json_object(handler)
        updates: dict[str, object] = {}
        if "display_name" in payload:
            updates["display_name"] = str(payload.get("display_name") or "").strip() or None
        if "email" in payload:
            updates["email"] = str(payload.get("email") or "").strip() or None
        if "billing_rate" in payload:
            updates["billing_rate"] = _optional_rate(payload.get("billing_rate"))
        if "role" in payload:
            updates["role"] = str(payload.get("role") or "").strip()
        if "is_active" in payload:
            updates["is_active"] = bool(payload.get("is_active"))

        with db.connect(handler.server.db_path) as conn:
            if not db.get_org_user(conn, user.organization_id, user_id):
                raise FileNotFoundError("user_not_found")
            granted = global_permissions(conn, user)
            privileged = {"billing_rate", "role", "is_active"} & set(updates)
            if (user_id != user.id or privileged) and USER_UPDATE not in granted:
                raise PermissionError("not_authorized")
            if "role" in updates:
                if USER_MANAGE_ROLES not in granted:
                    raise PermissionError("not_authorized")
                if not updates["role"] or not db.role_exists(conn, str(updates["role"])):
                    handler._send_error(HTTPStatus.BAD_REQUEST, "invalid_role")
                    return True
            if user_id == user.id and updates.get("is_active") is False:
                handler._send_error(HTTPStatus.BAD_REQUEST, "cannot_deactivate_self")
                return True
            db.update_user(conn, user_id, **updates)
            row = db.get_user_by_id(conn, user_id)
        handler._send_json(HTTPStatus.OK, row_to_user(row))
        return True

    return False
