from __future__ import annotations

from http import HTTPStatus

from .. import db
from .ids import match_item_path, parse_path_id


def try_handle(handler, path: str, query: str) -> bool:
    if path == "/api/notifications/read-all":
        user = handler._require_user()
        with db.connect(handler.server.db_path) as conn:
            updated = db.mark_all_notifications_read(conn, user_id=user.id)
        handler._send_json(HTTPStatus.OK, {"updated": updated})
        return True

    if not match_item_path(path, "/api/notifications/", "/read"):
        return False

    user = handler._require_user()
    notification_id = parse_path_id(path, suffix="/read")
    with db.connect(handler.server.db_path) as conn:
        ok = db.mark_notification_read(conn, notification_id, user_id=user.id)
    if not ok:
        handler._send_error(HTTPStatus.NOT_FOUND, "not_found")
        return True
    handler._send_empty(HTTPStatus.NO_CONTENT)
    return True
