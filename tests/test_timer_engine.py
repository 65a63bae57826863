import unittest

from _support_api import BaseAPITestCase, db

from pm_server.auth import AuthenticatedUser
from pm_server._server import timer_engine
from pm_server._server.time_settings import update_settings


T0 = 1_700_000_000


class TestTimerMath(unittest.TestCase):
    def test_rounding_rules(self):
        up = {"enabled": True, "increment": 15, "round_up": True}
        down = {"enabled": True, "increment": 15, "round_up": False}
        self.assertEqual(timer_engine.apply_rounding_rules(7, up), 15)
        self.assertEqual(timer_engine.apply_rounding_rules(16, up), 30)
        self.assertEqual(timer_engine.apply_rounding_rules(16, down), 15)
        self.assertEqual(timer_engine.apply_rounding_rules(7, down), 0)
        self.assertEqual(timer_engine.apply_rounding_rules(7, {"enabled": False, "increment": 15}), 7)
        self.assertEqual(timer_engine.apply_rounding_rules(0, up), 0)
        self.assertEqual(timer_engine.apply_rounding_rules(7, None), 7)

    def test_format_hours(self):
        self.assertEqual(timer_engine.format_hours(90), "1h 30m")
        self.assertEqual(timer_engine.format_hours(125), "2h 5m")
        self.assertEqual(timer_engine.format_hours(0), "0h 0m")


class TestTimerEngine(BaseAPITestCase):
    def setUp(self):
        self.admin = self.login("admin", "admin")
        self.project = self.make_project(self.admin)
        self.user_id, self.cookie = self.make_user(billing_rate=60)
        with db.connect(self.db_path) as conn:
            row = db.get_user_by_id(conn, self.user_id)
        self.user = AuthenticatedUser.from_row(row)

    def _settings(self, **changes):
        with db.connect(self.db_path) as conn:
            update_settings(conn, self.org_id, self.project["id"], changes)

    def _start(self, conn, now=T0, **kwargs):
        return timer_engine.start_timer(conn, self.user, project_id=self.project["id"], now=now, **kwargs)

    def test_pause_resume_stop_subtracts_paused_time(self):
        with db.connect(self.db_path) as conn:
            started = self._start(conn, description="pairing")
            self.assertEqual(started["activeTimer"]["hourly_rate"], 60.0)
            self.assertFalse(started["notificationSent"])

            paused = timer_engine.pause_timer(conn, self.user, now=T0 + 600)
            self.assertTrue(paused["isPaused"])
            self.assertEqual(paused["currentDuration"], 10.0)
            self.assertEqual(paused["currentCost"], 10.0)

            resumed = timer_engine.resume_timer(conn, self.user, now=T0 + 900)
            self.assertFalse(resumed["isPaused"])
            self.assertEqual(resumed["total_paused_duration"], 5.0)

            out = timer_engine.stop_timer(conn, self.user, now=T0 + 1800)
            self.assertTrue(out["hasTimeLogged"])
            self.assertEqual(out["duration"], 25.0)
            self.assertFalse(out["isOvertime"])
            entry = out["timeEntry"]
            self.assertEqual(entry["duration"], 25.0)
            self.assertEqual(entry["start_time"], T0)
            self.assertEqual(entry["end_time"], T0 + 1800)
            self.assertEqual(entry["description"], "pairing")
            self.assertEqual(entry["status"], "completed")
            self.assertTrue(entry["is_approved"])
            self.assertEqual(entry["notes"], "paused 5.0 minutes")
            self.assertTrue(out["notificationsSent"]["timerStop"])
            self.assertTrue(out["notificationsSent"]["timeSubmitted"])
            self.assertFalse(out["notificationsSent"]["approvalNeeded"])
            self.assertIsNone(db.get_active_timer(conn, self.user.id, self.org_id))

    def test_state_errors(self):
        with db.connect(self.db_path) as conn:
            with self.assertRaisesRegex(FileNotFoundError, "no_active_timer"):
                timer_engine.stop_timer(conn, self.user, now=T0)
            self._start(conn)
            with self.assertRaisesRegex(ValueError, "timer_already_active"):
                self._start(conn)
            with self.assertRaisesRegex(ValueError, "timer_not_paused"):
                timer_engine.resume_timer(conn, self.user, now=T0 + 60)
            timer_engine.pause_timer(conn, self.user, now=T0 + 60)
            with self.assertRaisesRegex(ValueError, "timer_already_paused"):
                timer_engine.pause_timer(conn, self.user, now=T0 + 120)

    def test_stop_without_elapsed_time_discards_timer(self):
        with db.connect(self.db_path) as conn:
            self._start(conn)
            out = timer_engine.stop_timer(conn, self.user, now=T0)
            self.assertFalse(out["hasTimeLogged"])
            self.assertIsNone(out["timeEntry"])
            self.assertIsNone(db.get_active_timer(conn, self.user.id, self.org_id))

    def test_rounding_applies_on_stop(self):
        self._settings(rounding_rules={"enabled": True, "increment": 15, "round_up": True})
        with db.connect(self.db_path) as conn:
            self._start(conn)
            out = timer_engine.stop_timer(conn, self.user, now=T0 + 7 * 60)
        self.assertEqual(out["duration"], 15)

    def test_approval_required_notifies_project_manager(self):
        self._settings(require_approval=True)
        with db.connect(self.db_path) as conn:
            self._start(conn)
            out = timer_engine.stop_timer(conn, self.user, now=T0 + 3600)
        entry = out["timeEntry"]
        self.assertEqual(entry["status"], "pending")
        self.assertFalse(entry["is_approved"])
        self.assertTrue(out["notificationsSent"]["approvalNeeded"])
        self.assertFalse(out["notificationsSent"]["timeSubmitted"])

        _, _, notes = self.http("GET", "/api/notifications", cookie=self.admin)
        titles = [
            n["title"]
            for n in notes["items"]
            if n["data"]["entity_type"] == "time_entry" and n["data"]["entity_id"] == entry["id"]
        ]
        self.assertEqual(titles, ["Time Entry Needs Approval"])

    def test_overtime_is_flagged(self):
        self._settings(max_daily_hours=1)
        with db.connect(self.db_path) as conn:
            self._start(conn)
            out = timer_engine.stop_timer(conn, self.user, now=T0 + 2 * 3600)
        self.assertTrue(out["isOvertime"])
        self.assertTrue(out["notificationsSent"]["overtime"])

    def test_required_description_and_category(self):
        self._settings(require_description=True, require_category=True)
        with db.connect(self.db_path) as conn:
            with self.assertRaisesRegex(ValueError, "description_required"):
                self._start(conn)
            with self.assertRaisesRegex(ValueError, "category_required"):
                self._start(conn, description="work")
            self._start(conn, description="work", category="dev")
            with self.assertRaisesRegex(ValueError, "description_required"):
                timer_engine.stop_timer(conn, self.user, description="  ", now=T0 + 60)

    def test_project_without_time_tracking(self):
        self.http(
            "POST",
            f"/api/projects/{self.project['id']}",
            cookie=self.admin,
            json_body={"settings": {"allow_time_tracking": False}},
        )
        with db.connect(self.db_path) as conn:
            with self.assertRaisesRegex(PermissionError, "time_tracking_not_allowed"):
                self._start(conn)

    def test_billable_disabled_by_settings(self):
        self._settings(allow_billable_time=False)
        with db.connect(self.db_path) as conn:
            out = self._start(conn, is_billable=True, hourly_rate=99)
        self.assertFalse(out["activeTimer"]["is_billable"])
        self.assertEqual(out["activeTimer"]["hourly_rate"], 99.0)

    def test_timer_over_http(self):
        status, _, out = self.http(
            "POST",
            "/api/time-tracking/timer",
            cookie=self.cookie,
            json_body={"projectId": self.project["id"], "description": "api", "tags": ["x"]},
        )
        self.assertEqual(status, 201, out)
        self.assertEqual(out["activeTimer"]["tags"], ["x"])

        status, _, out = self.http("GET", "/api/time-tracking/timer", cookie=self.cookie)
        self.assertEqual(status, 200)
        self.assertEqual(out["activeTimer"]["description"], "api")

        status, _, out = self.http(
            "POST", "/api/time-tracking/timer/update", cookie=self.cookie, json_body={"description": "renamed"}
        )
        self.assertEqual(status, 200)
        self.assertEqual(out["activeTimer"]["description"], "renamed")

        status, _, all_timers = self.http("GET", "/api/time-tracking/timers/all", cookie=self.admin)
        self.assertEqual(status, 200)
        self.assertIn(self.user_id, [t["user"]["id"] for t in all_timers["items"]])
        status, _, _ = self.http("GET", "/api/time-tracking/timers/all", cookie=self.cookie)
        self.assertEqual(status, 403)

        with db.connect(self.db_path) as conn:
            conn.execute("UPDATE active_timers SET start_time = start_time - 3600 WHERE user_id = ?", (self.user_id,))
        status, _, out = self.http("POST", "/api/time-tracking/timer/stop", cookie=self.cookie, json_body={})
        self.assertEqual(status, 200, out)
        self.assertTrue(out["hasTimeLogged"])
        self.assertGreaterEqual(out["duration"], 60)
        self.assertEqual(out["timeEntry"]["description"], "renamed")

        status, _, out = self.http("POST", "/api/time-tracking/timer/stop", cookie=self.cookie, json_body={})
        self.assertEqual(status, 404)
        self.assertEqual(out["error"], "no_active_timer")

        status, _, out = self.http("POST", "/api/time-tracking/timer", cookie=self.cookie, json_body={})
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "missing_fields")

    def test_stop_overrides_category_and_tags(self):
        with db.connect(self.db_path) as conn:
            self._start(conn, category="dev", tags=["a"])
            out = timer_engine.stop_timer(conn, self.user, category="review", tags=["b", "c"], now=T0 + 600)
            entry = out["timeEntry"]
            self.assertEqual(entry["category"], "review")
            self.assertEqual(entry["tags"], ["b", "c"])

            self._start(conn, now=T0 + 700, category="dev", tags=["a"])
            entry = timer_engine.stop_timer(conn, self.user, now=T0 + 1300)["timeEntry"]
            self.assertEqual(entry["category"], "dev")
            self.assertEqual(entry["tags"], ["a"])
