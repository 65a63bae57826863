import json
import os
import sys
import threading
import time
import unittest
import uuid
from http.client import HTTPConnection
from pathlib import Path

sys.dont_write_bytecode = True
os.environ.setdefault("PYTHONDONTWRITEBYTECODE", "1")

from pm_server import db  # noqa: E402
from pm_server.auth import hash_password  # noqa: E402
from pm_server.server import Handler as BaseHandler  # noqa: E402
from pm_server.server import PMHTTPServer  # noqa: E402


class QuietHandler(BaseHandler):
    def log_message(self, fmt, *args):
        return


class BaseAPITestCase(unittest.TestCase):
    cron_secret = None

    @classmethod
    def setUpClass(cls):
        Path("data").mkdir(parents=True, exist_ok=True)
        cls.db_path = Path("data") / f"_test_{int(time.time())}_{os.getpid()}_{uuid.uuid4().hex}.sqlite3"
        db.init_db(cls.db_path)
        cls.httpd = PMHTTPServer(("127.0.0.1", 0), QuietHandler, db_path=cls.db_path, cron_secret=cls.cron_secret)
        cls.port = cls.httpd.server_address[1]
        cls.thread = threading.Thread(target=cls.httpd.serve_forever, daemon=True)
        cls.thread.start()
        with db.connect(cls.db_path) as conn:
            cls.org_id = int(db.get_user_by_username(conn, "admin")["organization_id"])

    @classmethod
    def tearDownClass(cls):
        cls.httpd.shutdown()
        cls.httpd.server_close()
        cls.thread.join(timeout=2)

    def http(self, method, path, *, json_body=None, body=None, cookie=None, headers=None, expect_json=True):
        conn = HTTPConnection("127.0.0.1", self.port, timeout=5)
        req_headers = dict(headers or {})
        if body is not None:
            req_headers["Content-Length"] = str(len(body))
        if cookie:
            req_headers["Cookie"] = cookie
        if json_body is not None:
            body = json.dumps(json_body).encode("utf-8")
            req_headers["Content-Type"] = "application/json"
            req_headers["Content-Length"] = str(len(body))
        conn.request(method, path, body=body, headers=req_headers)
        res = conn.getresponse()
        raw = res.read()
        resp_headers = dict(res.getheaders())
        conn.close()
        if not expect_json:
            return res.status, resp_headers, raw
        if not raw:
            return res.status, resp_headers, None
        return res.status, resp_headers, json.loads(raw)

    def login(self, username, password):
        status, headers, _ = self.http("POST", "/api/login", json_body={"username": username, "password": password})
        self.assertEqual(status, 200)
        cookie = headers.get("Set-Cookie", "").split(";", 1)[0]
        self.assertTrue(cookie.startswith("pm_session="))
        return cookie

    def make_user(self, role="team_member", *, organization_id=None, billing_rate=None):
        username = f"{role}_{uuid.uuid4().hex[:8]}"
        with db.connect(self.db_path) as conn:
            user_id = db.create_user(
                conn,
                organization_id=organization_id or self.org_id,
                username=username,
                password_hash=hash_password("pw"),
                role=role,
                billing_rate=billing_rate,
            )
        return user_id, self.login(username, "pw")

    def make_project(self, cookie, **fields):
        body = {"name": f"Project {uuid.uuid4().hex[:6]}"}
        body.update(fields)
        status, _, project = self.http("POST", "/api/projects", cookie=cookie, json_body=body)
        self.assertEqual(status, 201, project)
        return project

    def make_task(self, cookie, project_id, **fields):
        body = {"projectId": project_id, "title": f"Task {uuid.uuid4().hex[:6]}"}
        body.update(fields)
        status, _, task = self.http("POST", "/api/tasks", cookie=cookie, json_body=body)
        self.assertEqual(status, 201, task)
        return task


__all__ = ["BaseAPITestCase", "QuietHandler", "db", "hash_password"]
