from __future__ import annotations

import hmac
from http import HTTPStatus

from .timer_cleanup import cleanup_expired_timers


def try_handle(handler, path: str, query: str) -> bool:
    if path != "/api/cron/timer-cleanup":
        return False

    secret = handler.server.cron_secret
    if secret:
        supplied = handler.headers.get("Authorization", "")
        if not hmac.compare_digest(supplied.encode("utf-8"), f"Bearer {secret}".encode("utf-8")):
            raise PermissionError("not_authenticated")
    handler._send_json(HTTPStatus.OK, cleanup_expired_timers(handler.server.db_path))
    return True
