from __future__ import annotations

from http import HTTPStatus

from .. import db
from .params import parse_query, query_bool, query_int
from .serializers import row_to_notification


def try_handle(handler, path: str, query: str) -> bool:
    if path != "/api/notifications":
        return False
    user = handler._require_user()
    params = parse_query(query)
    with db.connect(handler.server.db_path) as conn:
        rows = db.list_notifications(
            conn,
            user_id=user.id,
            unread_only=bool(query_bool(params, "unread")),
            limit=min(query_int(params, "limit", 200, minimum=1), 500),
        )
        unread = db.count_unread_notifications(conn, user_id=user.id)
    handler._send_json(HTTPStatus.OK, {"items": [row_to_notification(r) for r in rows], "unreadCount": unread})
    return True
