from __future__ import annotations

from http import HTTPStatus

from .. import db
from .params import parse_query, query_bool, query_int
from .search import run_search


def try_handle(handler, path: str, query: str) -> bool:
    if path != "/api/search":
        return False

    user = handler._require_user()
    params = parse_query(query)
    with db.connect(handler.server.db_path) as conn:
        out = run_search(
            conn,
            user,
            params.get("q", ""),
            limit=min(query_int(params, "limit", 20, minimum=1), 100),
            offset=query_int(params, "offset", 0, minimum=0),
            sort_by=params.get("sortBy") or "score",
            sort_order=params.get("sortOrder") or "desc",
            include_archived=bool(query_bool(params, "includeArchived")),
        )
    handler._send_json(HTTPStatus.OK, out)
    return True
