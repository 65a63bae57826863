from __future__ import annotations

from http import HTTPStatus

from .. import db
from ..permission_defs import ORGANIZATION_UPDATE, PROJECT_UPDATE
from . import timer_engine
from .choices import optional_number, string_list
from .ids import match_item_path, parse_path_id
from .jsonutil import read_json_object
from .params import optional_int
from .permissions import require_permission
from .serializers import row_to_time_entry
from .time_entries import approve_entries, create_manual_entry, delete_entry, update_entry
from .time_settings import update_settings


_TIMER_ACTIONS = ("pause", "resume", "stop", "update")


def _timer_action(handler, action: str) -> None:
    user = handler._require_user()
    payload = read_json_object(handler)
    with db.connect(handler.server.db_path) as conn:
        if action == "pause":
            out = {"activeTimer": timer_engine.pause_timer(conn, user)}
        elif action == "resume":
            out = {"activeTimer": timer_engine.resume_timer(conn, user)}
        elif action == "update":
            out = {"activeTimer": timer_engine.update_timer(conn, user, payload)}
        else:
            description = payload.get("description")
            category = payload.get("category")
            out = timer_engine.stop_timer(
                conn,
                user,
                description=None if description is None else str(description),
                category=str(category).strip() if category else None,
                tags=string_list(payload["tags"], "invalid_tags") if "tags" in payload else None,
            )
    handler._send_json(HTTPStatus.OK, out)


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/time-tracking/settings":
        user = handler._require_user()
        payload = read_json_object(handler)
        changes = payload.get("settings")
        if not isinstance(changes, dict):
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        project_id = optional_int(payload.get("projectId"))
        with db.connect(handler.server.db_path) as conn:
            if project_id is None:
                require_permission(conn, user, ORGANIZATION_UPDATE)
            else:
                if not db.get_org_project(conn, user.organization_id, project_id):
                    raise FileNotFoundError("project_not_found")
                require_permission(conn, user, PROJECT_UPDATE, project_id)
            settings = update_settings(conn, user.organization_id, project_id, changes)
        handler._send_json(HTTPStatus.OK, {"projectId": project_id, "settings": settings})
        return True

    if path == "/api/time-tracking/timer":
        user = handler._require_user()
        payload = read_json_object(handler)
        project_id = optional_int(payload.get("projectId"))
        if project_id is None:
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        category = payload.get("category")
        with db.connect(handler.server.db_path) as conn:
            out = timer_engine.start_timer(
                conn,
                user,
                project_id=project_id,
                task_id=optional_int(payload.get("taskId")),
                description=str(payload.get("description") or ""),
                category=None if category in (None, "") else str(category),
                tags=string_list(payload.get("tags"), "invalid_tags"),
                is_billable=bool(payload.get("isBillable", True)),
                hourly_rate=optional_number(payload.get("hourlyRate"), "invalid_hourly_rate"),
            )
        handler._send_json(HTTPStatus.CREATED, out)
        return True

    for action in _TIMER_ACTIONS:
        if path == f"/api/time-tracking/timer/{action}":
            _timer_action(handler, action)
            return True

    if path == "/api/time-tracking/entries":
        user = handler._require_user()
        payload = read_json_object(handler)
        with db.connect(handler.server.db_path) as conn:
            entry_id = create_manual_entry(conn, user, payload)
            row = db.get_time_entry(conn, entry_id)
        handler._send_json(HTTPStatus.CREATED, row_to_time_entry(row))
        return True

    if match_item_path(path, "/api/time-tracking/entries/"):
        user = handler._require_user()
        entry_id = parse_path_id(path)
        payload = read_json_object(handler)
        with db.connect(handler.server.db_path) as conn:
            update_entry(conn, user, entry_id, payload)
            row = db.get_time_entry(conn, entry_id)
        handler._send_json(HTTPStatus.OK, row_to_time_entry(row))
        return True

    if match_item_path(path, "/api/time-tracking/entries/", "/delete"):
        user = handler._require_user()
        entry_id = parse_path_id(path, suffix="/delete")
        with db.connect(handler.server.db_path) as conn:
            delete_entry(conn, user, entry_id)
        handler._send_empty(HTTPStatus.NO_CONTENT)
        return True

    if path == "/api/time-tracking/approve":
        user = handler._require_user()
        payload = read_json_object(handler)
        raw_ids = payload.get("timeEntryIds")
        if raw_ids is not None and not isinstance(raw_ids, list):
            raise ValueError("missing_fields")
        entry_ids = [int(x) for x in raw_ids or []]
        with db.connect(handler.server.db_path) as conn:
            modified = approve_entries(conn, user, entry_ids, str(payload.get("action") or ""))
        handler._send_json(HTTPStatus.OK, {"success": True, "modifiedCount": modified})
        return True

    return False
