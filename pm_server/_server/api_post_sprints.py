from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from .. import db
from ..permission_defs import SPRINT_CREATE, SPRINT_DELETE, SPRINT_UPDATE
from . import sprint_actions
from .choices import SPRINT_STATUSES, choice, optional_number
from .ids import match_item_path, parse_path_id
from .jsonutil import read_json_object
from .params import is_iso_date, optional_int
from .permissions import require_permission
from .serializers import row_to_sprint


logger = logging.getLogger(__name__)


def _sprint_fields(payload: dict[str, Any]) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if "name" in payload:
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValueError("missing_fields")
        fields["name"] = name
    for key in ("description", "goal"):
        if key in payload:
            fields[key] = str(payload.get(key) or "")
    for key in ("start_date", "end_date"):
        if key in payload:
            value = payload.get(key)
            if value in (None, ""):
                fields[key] = None
            elif is_iso_date(str(value)[:10]):
                fields[key] = str(value)[:10]
            else:
                raise ValueError("invalid_date")
    if "capacity" in payload:
        fields["capacity"] = optional_number(payload.get("capacity"), "invalid_capacity") or 0
    if "status" in payload:
        fields["status"] = choice(payload.get("status"), SPRINT_STATUSES, "invalid_status")
    if "archived" in payload:
        fields["archived"] = 1 if payload.get("archived") else 0
    return fields


def _check_dates(start: str | None, end: str | None) -> None:
    if start and end and end < start:
        raise ValueError("invalid_dates")


def _org_sprint(conn, user, sprint_id: int):
    sprint = db.get_sprint(conn, sprint_id)
    if not sprint or int(sprint["organization_id"]) != user.organization_id:
        raise FileNotFoundError("sprint_not_found")
    return sprint


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/sprints":
        user = handler._require_user()
        payload = read_json_object(handler)
        project_id = optional_int(payload.get("projectId", payload.get("project_id")))
        fields = _sprint_fields(payload)
        if project_id is None or not fields.get("name"):
            handler._send_error(HTTPStatus.BAD_REQUEST, "missing_fields")
            return True
        _check_dates(fields.get("start_date"), fields.get("end_date"))
        with db.connect(handler.server.db_path) as conn:
            if not db.get_org_project(conn, user.organization_id, project_id):
                raise FileNotFoundError("project_not_found")
            require_permission(conn, user, SPRINT_CREATE, project_id)
            sprint_id = db.create_sprint(
                conn,
                organization_id=user.organization_id,
                project_id=project_id,
                name=fields["name"],
                created_by=user.id,
                description=fields.get("description", ""),
                goal=fields.get("goal"),
                start_date=fields.get("start_date"),
                end_date=fields.get("end_date"),
                capacity=fields.get("capacity", 0),
            )
            row = db.get_sprint(conn, sprint_id)
        logger.info("Sprint %s created in project %s by user %s", sprint_id, project_id, user.id)
        handler._send_json(HTTPStatus.CREATED, row_to_sprint(row))
        return True

    if match_item_path(path, "/api/sprints/"):
        user = handler._require_user()
        sprint_id = parse_path_id(path)
        fields = _sprint_fields(read_json_object(handler))
        with db.connect(handler.server.db_path) as conn:
            sprint = _org_sprint(conn, user, sprint_id)
            require_permission(conn, user, SPRINT_UPDATE, int(sprint["project_id"]))
            _check_dates(fields.get("start_date", sprint["start_date"]), fields.get("end_date", sprint["end_date"]))
            db.update_sprint(conn, sprint_id, fields)
            row = db.get_sprint(conn, sprint_id)
        handler._send_json(HTTPStatus.OK, row_to_sprint(row))
        return True

    if match_item_path(path, "/api/sprints/", "/delete"):
        user = handler._require_user()
        sprint_id = parse_path_id(path, suffix="/delete")
        with db.connect(handler.server.db_path) as conn:
            sprint = _org_sprint(conn, user, sprint_id)
            require_permission(conn, user, SPRINT_DELETE, int(sprint["project_id"]))
            db.delete_sprint(conn, sprint_id)
        logger.info("Sprint %s deleted by user %s", sprint_id, user.id)
        handler._send_empty(HTTPStatus.NO_CONTENT)
        return True

    if match_item_path(path, "/api/sprints/", "/start"):
        user = handler._require_user()
        sprint_id = parse_path_id(path, suffix="/start")
        with db.connect(handler.server.db_path) as conn:
            sprint_actions.start_sprint(conn, user, sprint_id)
            row = db.get_sprint(conn, sprint_id)
        handler._send_json(HTTPStatus.OK, row_to_sprint(row))
        return True

    if match_item_path(path, "/api/sprints/", "/complete"):
        user = handler._require_user()
        sprint_id = parse_path_id(path, suffix="/complete")
        payload = read_json_object(handler)
        selected = payload.get("selectedTaskIds")
        if selected is not None and not isinstance(selected, list):
            raise ValueError("invalid_selection")
        with db.connect(handler.server.db_path) as conn:
            result = sprint_actions.complete_sprint(
                conn,
                user,
                sprint_id,
                target_sprint_id=optional_int(payload.get("targetSprintId")),
                selected_task_ids=None if selected is None else [int(x) for x in selected],
            )
            result["sprint"] = row_to_sprint(db.get_sprint(conn, sprint_id))
        handler._send_json(HTTPStatus.OK, result)
        return True

    return False
