from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from .. import db
from ..permission_defs import (
    PROJECT_ARCHIVE,
    PROJECT_CREATE,
    PROJECT_MANAGE_TEAM,
    PROJECT_RESTORE,
    PROJECT_ROLE_PERMISSIONS,
    PROJECT_UPDATE,
)
from .choices import PRIORITIES, PROJECT_STATUSES, choice
from .ids import match_item_path, parse_path_id
from .jsonutil import read_json_object
from .notify import notify
from .params import is_iso_date, optional_int
from .permissions import require_permission
from .serializers import row_to_member, row_to_project


logger = logging.getLogger(__name__)

_SETTING_KEYS = ("allow_time_tracking", "allow_manual_time_submission", "require_approval")


def _optional_date(value: Any) -> str | None:
    if value in (None, ""):
        return None
    text = str(value)[:10]
    if not is_iso_date(text):
        raise ValueError("invalid_date")
    return text


def _project_fields(conn, organization_id: int, payload: dict[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValueError("missing_fields")
        fields["name"] = name
    if "description" in payload:
        fields["description"] = str(payload.get("description") or "")
    if "status" in payload:
        fields["status"] = choice(payload.get("status"), PROJECT_STATUSES, "invalid_status")
    if "priority" in payload:
        fields["priority"] = choice(payload.get("priority"), PRIORITIES, "invalid_priority")
    if "client_id" in payload:
        client_id = optional_int(payload.get("client_id"))
        if client_id is not None and not db.get_org_user(conn, organization_id, client_id):
            raise ValueError("invalid_client_id")
        fields["client_id"] = client_id
    for key in ("start_date", "end_date"):
        if key in payload:
            fields[key] = _optional_date(payload.get(key))

    settings = payload.get("settings")
    settings = settings if isinstance(settings, dict) else {}
    for key in _SETTING_KEYS:
        if key in settings:
            fields[key] = 1 if settings.get(key) else 0
        elif key in payload:
            fields[key] = 1 if payload.get(key) else 0
    return fields


def _org_project(conn, user, project_id: int):
    project = db.get_org_project(conn, user.organization_id, project_id)
    if not project:
        raise FileNotFoundError("project_not_found")
    return project


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/projects":
        user = handler._require_permission(PROJECT_CREATE)
        payload = read_json_object(handler)
        if not str(payload.get("name") or "").strip():
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        with db.connect(handler.server.db_path) as conn:
            fields = _project_fields(conn, user.organization_id, payload)
            for key in _SETTING_KEYS:
                if key in fields:
                    fields[key] = bool(fields[key])
            project_id = db.create_project(conn, organization_id=user.organization_id, created_by=user.id, **fields)
            row = db.get_project(conn, project_id)
        logger.info("Project %s created by user %s", project_id, user.id)
        handler._send_json(HTTPStatus.CREATED, row_to_project(row))
        return True

    if match_item_path(path, "/api/projects/"):
        user = handler._require_user()
        project_id = parse_path_id(path)
        payload = read_json_object(handler)
        with db.connect(handler.server.db_path) as conn:
            _org_project(conn, user, project_id)
            require_permission(conn, user, PROJECT_UPDATE, project_id)
            fields = _project_fields(conn, user.organization_id, payload)
            db.update_project(conn, project_id, fields)
            row = db.get_project(conn, project_id)
        handler._send_json(HTTPStatus.OK, row_to_project(row))
        return True

    if match_item_path(path, "/api/projects/", "/team"):
        user = handler._require_user()
        project_id = parse_path_id(path, suffix="/team")
        payload = read_json_object(handler)
        member_id = optional_int(payload.get("user_id"))
        project_role = str(payload.get("project_role") or "project_member").strip()
        if member_id is None:
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        if project_role not in PROJECT_ROLE_PERMISSIONS:
            handler._send_error(HTTPStatus.BAD_REQUEST, "invalid_project_role")
            return True
        with db.connect(handler.server.db_path) as conn:
            project = _org_project(conn, user, project_id)
            require_permission(conn, user, PROJECT_MANAGE_TEAM, project_id)
            if not db.get_org_user(conn, user.organization_id, member_id):
                raise FileNotFoundError("user_not_found")
            is_new = db.get_project_member(conn, project_id, member_id) is None
            db.set_project_member(conn, project_id, member_id, project_role)
            if is_new:
                notify(
                    conn,
                    recipients=[member_id],
                    organization_id=user.organization_id,
                    type="team",
                    title="Added to Project",
                    message=f"{user.username} added you to {project['name']}",
                    entity_type="project",
                    entity_id=project_id,
                    action="assigned",
                    url=f"/projects/{project_id}",
                    exclude_user_id=user.id,
                )
            members = db.list_project_members(conn, project_id)
        handler._send_json(HTTPStatus.OK, {"team": [row_to_member(m) for m in members]})
        return True

    if match_item_path(path, "/api/projects/", "/team/remove"):
        user = handler._require_user()
        project_id = parse_path_id(path, suffix="/team/remove")
        payload = read_json_object(handler)
        member_id = optional_int(payload.get("user_id"))
        if member_id is None:
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        with db.connect(handler.server.db_path) as conn:
            _org_project(conn, user, project_id)
            require_permission(conn, user, PROJECT_MANAGE_TEAM, project_id)
            if not db.remove_project_member(conn, project_id, member_id):
                raise FileNotFoundError("member_not_found")
        handler._send_empty(HTTPStatus.NO_CONTENT)
        return True

    for suffix, permission, archived in (("/archive", PROJECT_ARCHIVE, 1), ("/restore", PROJECT_RESTORE, 0)):
        if match_item_path(path, "/api/projects/", suffix):
            user = handler._require_user()
            project_id = parse_path_id(path, suffix=suffix)
            with db.connect(handler.server.db_path) as conn:
                _org_project(conn, user, project_id)
                require_permission(conn, user, permission, project_id)
                db.update_project(conn, project_id, {"archived": archived})
                row = db.get_project(conn, project_id)
            logger.info("Project %s %s by user %s", project_id, suffix.lstrip("/") + "d", user.id)
            handler._send_json(HTTPStatus.OK, row_to_project(row))
            return True

    return False
