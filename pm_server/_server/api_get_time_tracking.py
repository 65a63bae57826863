from __future__ import annotations

import math
import time
from http import HTTPStatus

from .. import db
from ..permission_defs import TIME_TRACKING_VIEW_ALL, TIME_TRACKING_VIEW_ALL_TIMER
from .ids import match_item_path, parse_path_id
from .params import day_end, day_start, parse_day, parse_query, query_bool, query_int, query_str
from .permissions import has_permission, require_project
from .serializers import row_to_time_entry
from .time_entries import can_view_entry, user_stats
from .time_settings import resolve_settings
from .timer_engine import list_org_timers, timer_state


def _list_entries(handler, query: str) -> None:
    user = handler._require_user()
    params = parse_query(query)
    page = query_int(params, "page", 1, minimum=1)
    limit = min(query_int(params, "limit", 50, minimum=1), 500)

    start_from = start_to = None
    start_raw = query_str(params, "startDate")
    end_raw = query_str(params, "endDate")
    if start_raw:
        start_from = day_start(parse_day(start_raw))
    if end_raw:
        start_to = day_end(parse_day(end_raw))
    if start_from is not None and start_to is not None and start_from > start_to:
        start_from, start_to = day_start(parse_day(end_raw)), day_end(parse_day(start_raw))

    with db.connect(handler.server.db_path) as conn:
        target_user = query_int(params, "userId", user.id)
        if target_user != user.id and not has_permission(conn, user, TIME_TRACKING_VIEW_ALL):
            raise PermissionError("not_authorized")
        rows, totals = db.list_time_entries(
            conn,
            user.organization_id,
            user_id=target_user,
            project_id=query_int(params, "projectId"),
            task_id=query_int(params, "taskId"),
            status=query_str(params, "status"),
            is_billable=query_bool(params, "isBillable"),
            is_approved=query_bool(params, "isApproved"),
            start_from=start_from,
            start_to=start_to,
            limit=limit,
            offset=(page - 1) * limit,
        )
    total = int(totals["total"])
    handler._send_json(
        HTTPStatus.OK,
        {
            "items": [row_to_time_entry(r) for r in rows],
            "pagination": {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit)},
            "totals": {
                "totalDuration": float(totals["total_duration"]),
                "totalCost": round(float(totals["total_cost"]), 2),
            },
        },
    )


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/time-tracking/settings":
        user = handler._require_user()
        project_id = query_int(parse_query(query), "projectId")
        with db.connect(handler.server.db_path) as conn:
            if project_id is not None:
                require_project(conn, user, project_id)
            settings = resolve_settings(conn, user.organization_id, project_id)
        handler._send_json(HTTPStatus.OK, {"projectId": project_id, "settings": settings})
        return True

    if path == "/api/time-tracking/timer":
        user = handler._require_user()
        with db.connect(handler.server.db_path) as conn:
            timer = db.get_active_timer(conn, user.id, user.organization_id)
        state = timer_state(timer, int(time.time())) if timer else None
        handler._send_json(HTTPStatus.OK, {"activeTimer": state})
        return True

    if path == "/api/time-tracking/timers/all":
        user = handler._require_permission(TIME_TRACKING_VIEW_ALL_TIMER)
        with db.connect(handler.server.db_path) as conn:
            items = list_org_timers(conn, user)
        handler._send_json(HTTPStatus.OK, {"items": items})
        return True

    if path == "/api/time-tracking/entries":
        _list_entries(handler, query)
        return True

    if match_item_path(path, "/api/time-tracking/entries/"):
        user = handler._require_user()
        entry_id = parse_path_id(path)
        with db.connect(handler.server.db_path) as conn:
            entry = db.get_time_entry(conn, entry_id)
            if not entry or int(entry["organization_id"]) != user.organization_id:
                raise FileNotFoundError("time_entry_not_found")
            if not can_view_entry(conn, user, entry):
                raise PermissionError("not_authorized")
        handler._send_json(HTTPStatus.OK, row_to_time_entry(entry))
        return True

    if path == "/api/time-tracking/stats":
        user = handler._require_user()
        period = query_str(parse_query(query), "period") or "week"
        with db.connect(handler.server.db_path) as conn:
            out = user_stats(conn, user, period)
        handler._send_json(HTTPStatus.OK, out)
        return True

    return False
