from __future__ import annotations

from http import HTTPStatus

from .. import db
from ..permission_defs import BACKLOG_READ
from .backlog import backlog_page
from .params import parse_query, query_int, query_str


def try_handle(handler, path: str, query: str) -> bool:
    if path != "/api/backlog":
        return False

    user = handler._require_permission(BACKLOG_READ)
    params = parse_query(query)
    with db.connect(handler.server.db_path) as conn:
        out = backlog_page(
            conn,
            user,
            page=query_int(params, "page", 1, minimum=1),
            limit=query_int(params, "limit", 10, minimum=1),
            search=query_str(params, "search"),
            item_type=query_str(params, "type"),
        )
    handler._send_json(HTTPStatus.OK, out)
    return True
