from __future__ import annotations

import json
import logging
import re
import time
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import urlparse

from .. import db
from ..auth import AuthenticatedUser, parse_cookie_header
from . import api_get, api_post
from .jsonutil import json_bytes
from .permissions import has_permission
from .session import SESSION_COOKIE


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("pm_server.http")

_ERROR_CODE = re.compile(r"^[a-z][a-z0-9_]*$")


def _code(exc: Exception, fallback: str) -> str:
    message = str(exc)
    return message if _ERROR_CODE.match(message) else fallback


class PMHTTPServer(ThreadingHTTPServer):
    def __init__(
        self,
        server_address,
        RequestHandlerClass,
        db_path: Path,
        *,
        cookie_secure: bool = False,
        cron_secret: str | None = None,
    ):
        super().__init__(server_address, RequestHandlerClass)
        self.db_path = db_path
        self.cookie_secure = cookie_secure
        self.cron_secret = cron_secret


class Handler(BaseHTTPRequestHandler):
    server: PMHTTPServer  # type: ignore[assignment]

    def log_message(self, format: str, *args) -> None:
        access_logger.info("%s - %s", self.address_string(), format % args)

    def _send_json(self, status: int, payload, headers: dict[str, str] | None = None) -> None:
        body = json_bytes(payload)
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        if headers:
            for k, v in headers.items():
                self.send_header(k, v)
        self.end_headers()
        self.wfile.write(body)

    def _send_empty(self, status: int, headers: dict[str, str] | None = None) -> None:
        self.send_response(status)
        self.send_header("Content-Length", "0")
        if headers:
            for k, v in headers.items():
                self.send_header(k, v)
        self.end_headers()

    def _send_error(self, status: int, message: str) -> None:
        self._send_json(status, {"error": message})

    def _get_current_user(self) -> AuthenticatedUser | None:
        cookies = parse_cookie_header(self.headers.get("Cookie"))
        token = cookies.get(SESSION_COOKIE)
        if not token:
            return None

        now = int(time.time())
        with db.connect(self.server.db_path) as conn:
            row = db.get_session_with_user(conn, token)
            if not row:
                return None
            if int(row["expires_at"]) <= now or not bool(row["is_active"]):
                db.delete_session(conn, token)
                return None
            return AuthenticatedUser.from_row(row, id_column="user_id")

    def _require_user(self) -> AuthenticatedUser:
        user = self._get_current_user()
        if not user:
            raise PermissionError("not_authenticated")
        return user

    def _require_permission(self, permission_key: str, project_id: int | None = None) -> AuthenticatedUser:
        user = self._require_user()
        with db.connect(self.server.db_path) as conn:
            if not has_permission(conn, user, permission_key, project_id):
                raise PermissionError("not_authorized")
        return user

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if not parsed.path.startswith("/api/"):
            self._send_error(HTTPStatus.NOT_FOUND, "not_found")
            return
        self._dispatch(api_get.handle, parsed.path, parsed.query)

    def do_POST(self) -> None:
        parsed = urlparse(self.path)
        if not parsed.path.startswith("/api/"):
            self._send_error(HTTPStatus.NOT_FOUND, "not_found")
            return
        self._dispatch(api_post.handle, parsed.path, parsed.query)

    def _dispatch(self, handle, path: str, query: str) -> None:
        try:
            if handle(self, path, query):
                return
            self._send_error(HTTPStatus.NOT_FOUND, "not_found")
        except json.JSONDecodeError:
            self._send_error(HTTPStatus.BAD_REQUEST, "invalid_json")
        except PermissionError as e:
            if str(e) == "not_authenticated":
                self._send_error(HTTPStatus.UNAUTHORIZED, "not_authenticated")
                return
            self._send_error(HTTPStatus.FORBIDDEN, _code(e, "not_authorized"))
        except FileNotFoundError as e:
            self._send_error(HTTPStatus.NOT_FOUND, _code(e, "not_found"))
        except RuntimeError as e:
            self._send_error(HTTPStatus.CONFLICT, _code(e, "conflict"))
        except ValueError as e:
            self._send_error(HTTPStatus.BAD_REQUEST, _code(e, "invalid_id"))
        except Exception:
            logger.exception("Unhandled error for %s %s", self.command, path)
            self._send_error(HTTPStatus.INTERNAL_SERVER_ERROR, "internal_error")
