from _support_api import BaseAPITestCase, db

from pm_server.auth import AuthenticatedUser
from pm_server._server import timer_engine
from pm_server._server.time_settings import update_settings
from pm_server._server.timer_cleanup import cleanup_expired_timers


T0 = 1_700_000_000
HOUR = 3600


class TestTimerCleanup(BaseAPITestCase):
    cron_secret = "s3cret"

    def setUp(self):
        self.admin = self.login("admin", "admin")
        self.project = self.make_project(self.admin)
        with db.connect(self.db_path) as conn:
            update_settings(conn, self.org_id, self.project["id"], {"max_session_hours": 2})

    def _user(self):
        user_id, cookie = self.make_user()
        with db.connect(self.db_path) as conn:
            row = db.get_user_by_id(conn, user_id)
        return AuthenticatedUser.from_row(row), cookie

    def _start(self, user, project_id=None, now=T0):
        with db.connect(self.db_path) as conn:
            out = timer_engine.start_timer(
                conn, user, project_id=project_id or self.project["id"], description="deep work", now=now
            )
        return out["activeTimer"]["id"]

    def _result(self, run, timer_id):
        found = [r for r in run["results"] if r["timer_id"] == timer_id]
        self.assertEqual(len(found), 1)
        return found[0]

    def _titles(self, cookie, entry_id):
        _, _, notes = self.http("GET", "/api/notifications", cookie=cookie)
        return [
            n["title"]
            for n in notes["items"]
            if n["data"]["entity_type"] == "time_entry" and n["data"]["entity_id"] == entry_id
        ]

    def test_expired_timer_is_stopped_at_session_limit(self):
        user, cookie = self._user()
        timer_id = self._start(user)

        run = cleanup_expired_timers(self.db_path, now=T0 + 3 * HOUR)
        self.assertTrue(run["success"])
        result = self._result(run, timer_id)
        self.assertEqual(result["status"], "stopped")
        self.assertEqual(result["duration"], 120)

        with db.connect(self.db_path) as conn:
            self.assertIsNone(db.get_active_timer(conn, user.id, user.organization_id))
            entry = db.get_time_entry(conn, result["time_entry_id"])
        self.assertEqual(int(entry["start_time"]), T0)
        self.assertEqual(int(entry["end_time"]), T0 + 2 * HOUR)
        self.assertEqual(str(entry["description"]), "deep work")
        self.assertIn("2h session limit", str(entry["notes"]))

        _, _, notes = self.http("GET", "/api/notifications", cookie=cookie)
        self.assertEqual(notes["items"][0]["title"], "Timer Auto-Stopped")
        self.assertIn("2h 0m", notes["items"][0]["message"])

    def test_timer_under_limit_is_skipped(self):
        user, _ = self._user()
        timer_id = self._start(user)
        run = cleanup_expired_timers(self.db_path, now=T0 + HOUR)
        self.assertEqual(self._result(run, timer_id), {"timer_id": timer_id, "status": "skipped", "reason": "timer_under_limit"})

    def test_paused_time_does_not_count(self):
        user, _ = self._user()
        timer_id = self._start(user)
        with db.connect(self.db_path) as conn:
            timer_engine.pause_timer(conn, user, now=T0 + 600)
        run = cleanup_expired_timers(self.db_path, now=T0 + 4 * HOUR)
        self.assertEqual(self._result(run, timer_id)["status"], "skipped")

    def test_overtime_projects_are_not_enforced(self):
        project = self.make_project(self.admin)
        with db.connect(self.db_path) as conn:
            update_settings(conn, self.org_id, project["id"], {"allow_overtime": True})
        user, _ = self._user()
        timer_id = self._start(user, project_id=project["id"])
        run = cleanup_expired_timers(self.db_path, now=T0 + 30 * HOUR)
        result = self._result(run, timer_id)
        self.assertEqual(result["reason"], "timer_does_not_require_enforcement")

    def test_approval_projects_create_pending_entries(self):
        with db.connect(self.db_path) as conn:
            update_settings(conn, self.org_id, self.project["id"], {"require_approval": True})
        user, cookie = self._user()
        timer_id = self._start(user)
        run = cleanup_expired_timers(self.db_path, now=T0 + 5 * HOUR)
        result = self._result(run, timer_id)
        with db.connect(self.db_path) as conn:
            entry = db.get_time_entry(conn, result["time_entry_id"])
        self.assertFalse(bool(entry["is_approved"]))

        self.assertEqual(
            self._titles(cookie, result["time_entry_id"]), ["Time Entry Requires Approval", "Timer Auto-Stopped"]
        )
        self.assertEqual(self._titles(self.admin, result["time_entry_id"]), [])

    def test_project_approval_flag_overrides_settings_record(self):
        with db.connect(self.db_path) as conn:
            db.update_project(conn, self.project["id"], {"require_approval": 1})
            update_settings(conn, self.org_id, self.project["id"], {"require_approval": False})
        user, cookie = self._user()
        timer_id = self._start(user)
        result = self._result(cleanup_expired_timers(self.db_path, now=T0 + 5 * HOUR), timer_id)
        with db.connect(self.db_path) as conn:
            entry = db.get_time_entry(conn, result["time_entry_id"])
        self.assertFalse(bool(entry["is_approved"]))
        self.assertIn("Time Entry Requires Approval", self._titles(cookie, result["time_entry_id"]))

    def test_cron_endpoint_requires_bearer_secret(self):
        status, _, out = self.http("GET", "/api/cron/timer-cleanup")
        self.assertEqual(status, 401)
        self.assertEqual(out["error"], "not_authenticated")

        status, _, _ = self.http("GET", "/api/cron/timer-cleanup", headers={"Authorization": "Bearer nope"})
        self.assertEqual(status, 401)

        user, _ = self._user()
        timer_id = self._start(user)
        status, _, out = self.http("GET", "/api/cron/timer-cleanup", headers={"Authorization": "Bearer s3cret"})
        self.assertEqual(status, 200)
        self.assertTrue(out["success"])
        self.assertEqual(self._result(out, timer_id)["status"], "stopped")
        self.assertEqual(out["summary"]["total"], len(out["results"]))
