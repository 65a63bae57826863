import uuid

from _support_api import BaseAPITestCase, db


class TestAuthRbac(BaseAPITestCase):
    def test_login_and_me(self):
        cookie = self.login("admin", "admin")
        status, _, me = self.http("GET", "/api/me", cookie=cookie)
        self.assertEqual(status, 200)
        self.assertEqual(me["role"], "admin")
        self.assertEqual(me["permissions"], ["*"])
        self.assertEqual(me["organization_id"], self.org_id)

    def test_me_lists_role_permissions(self):
        cookie = self.login("user", "user")
        status, _, me = self.http("GET", "/api/me", cookie=cookie)
        self.assertEqual(status, 200)
        self.assertIn("task:read", me["permissions"])
        self.assertNotIn("project:create", me["permissions"])

    def test_login_errors(self):
        status, _, out = self.http("POST", "/api/login", json_body={"username": "admin"})
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "missing_credentials")

        status, _, out = self.http("POST", "/api/login", json_body={"username": "admin", "password": "nope"})
        self.assertEqual(status, 401)
        self.assertEqual(out["error"], "invalid_credentials")

    def test_unauthenticated_and_unknown_routes(self):
        status, _, out = self.http("GET", "/api/me")
        self.assertEqual(status, 401)
        self.assertEqual(out["error"], "not_authenticated")

        cookie = self.login("admin", "admin")
        status, _, out = self.http("GET", "/api/nope", cookie=cookie)
        self.assertEqual(status, 404)
        status, _, _ = self.http("GET", "/index.html")
        self.assertEqual(status, 404)

    def test_invalid_json_body(self):
        cookie = self.login("admin", "admin")
        status, _, out = self.http(
            "POST", "/api/projects", cookie=cookie, body=b"{nope", headers={"Content-Type": "application/json"}
        )
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "invalid_json")

        status, _, out = self.http("POST", "/api/projects", cookie=cookie, body=b"[1, 2]")
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "invalid_body")

        # empty body is treated as an empty object
        status, _, out = self.http("POST", "/api/projects", cookie=cookie)
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "missing_fields")

    def test_logout_ends_session(self):
        cookie = self.login("user", "user")
        status, headers, _ = self.http("POST", "/api/logout", cookie=cookie)
        self.assertEqual(status, 204)
        self.assertIn("Max-Age=0", headers.get("Set-Cookie", ""))
        status, _, _ = self.http("GET", "/api/me", cookie=cookie)
        self.assertEqual(status, 401)

    def test_deactivated_user_cannot_log_in(self):
        admin = self.login("admin", "admin")
        user_id, cookie = self.make_user()
        status, _, out = self.http("POST", f"/api/users/{user_id}", cookie=admin, json_body={"is_active": False})
        self.assertEqual(status, 200)
        self.assertFalse(out["is_active"])

        status, _, _ = self.http("GET", "/api/me", cookie=cookie)
        self.assertEqual(status, 401)
        with db.connect(self.db_path) as conn:
            username = str(db.get_user_by_id(conn, user_id)["username"])
        status, _, out = self.http("POST", "/api/login", json_body={"username": username, "password": "pw"})
        self.assertEqual(status, 401)
        self.assertEqual(out["error"], "invalid_credentials")

    def test_create_user_and_duplicates(self):
        admin = self.login("admin", "admin")
        name = f"new_{uuid.uuid4().hex[:8]}"
        body = {"username": name, "password": "pw", "role": "project_manager", "billing_rate": 80}
        status, _, created = self.http("POST", "/api/users", cookie=admin, json_body=body)
        self.assertEqual(status, 201)
        self.assertEqual(created["role"], "project_manager")
        self.assertEqual(created["billing_rate"], 80.0)

        status, _, out = self.http("POST", "/api/users", cookie=admin, json_body=body)
        self.assertEqual(status, 409)
        self.assertEqual(out["error"], "username_taken")

        body["username"] = name + "x"
        body["role"] = "wizard"
        status, _, out = self.http("POST", "/api/users", cookie=admin, json_body=body)
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "invalid_role")

    def test_team_member_cannot_manage_users(self):
        cookie = self.login("user", "user")
        status, _, out = self.http(
            "POST", "/api/users", cookie=cookie, json_body={"username": "x" + uuid.uuid4().hex[:6], "password": "pw"}
        )
        self.assertEqual(status, 403)
        self.assertEqual(out["error"], "not_authorized")

        with db.connect(self.db_path) as conn:
            admin_id = int(db.get_user_by_username(conn, "admin")["id"])
        status, _, _ = self.http("POST", f"/api/users/{admin_id}", cookie=cookie, json_body={"display_name": "pwned"})
        self.assertEqual(status, 403)

    def test_user_can_edit_own_profile_but_not_role(self):
        user_id, cookie = self.make_user()
        status, _, out = self.http("POST", f"/api/users/{user_id}", cookie=cookie, json_body={"display_name": "Me"})
        self.assertEqual(status, 200)
        self.assertEqual(out["display_name"], "Me")
        status, _, _ = self.http("POST", f"/api/users/{user_id}", cookie=cookie, json_body={"role": "admin"})
        self.assertEqual(status, 403)

    def test_custom_role_grants_permissions(self):
        admin = self.login("admin", "admin")
        role = f"auditor_{uuid.uuid4().hex[:6]}"
        status, _, _ = self.http(
            "POST",
            "/api/admin/roles",
            cookie=admin,
            json_body={"role": role, "permissions": ["time_tracking:view_all_timer", "user:read"]},
        )
        self.assertEqual(status, 201)

        status, _, roles = self.http("GET", "/api/admin/roles", cookie=admin)
        self.assertEqual(status, 200)
        found = [r for r in roles["items"] if r["name"] == role]
        self.assertEqual(found[0]["permissions"], ["time_tracking:view_all_timer", "user:read"])

        _, cookie = self.make_user(role)
        status, _, _ = self.http("GET", "/api/time-tracking/timers/all", cookie=cookie)
        self.assertEqual(status, 200)
        _, other = self.make_user()
        status, _, _ = self.http("GET", "/api/time-tracking/timers/all", cookie=other)
        self.assertEqual(status, 403)

    def test_role_with_unknown_permission_is_rejected(self):
        admin = self.login("admin", "admin")
        status, _, out = self.http(
            "POST", "/api/admin/roles", cookie=admin, json_body={"role": "odd", "permissions": ["requests:read_all"]}
        )
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "invalid_permission")

    def test_organization_read_and_update(self):
        admin = self.login("admin", "admin")
        status, _, org = self.http("GET", "/api/organization", cookie=admin)
        self.assertEqual(status, 200)
        self.assertEqual(org["id"], self.org_id)
        self.assertIn("max_session_hours", org["time_tracking"])

        status, _, org = self.http("POST", "/api/organization", cookie=admin, json_body={"currency": "EUR"})
        self.assertEqual(status, 200)
        self.assertEqual(org["currency"], "EUR")

        user = self.login("user", "user")
        status, _, _ = self.http("POST", "/api/organization", cookie=user, json_body={"currency": "GBP"})
        self.assertEqual(status, 403)

    def test_project_permissions_endpoint(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        member_id, member = self.make_user("viewer")
        status, _, _ = self.http(
            "POST",
            f"/api/projects/{project['id']}/team",
            cookie=admin,
            json_body={"user_id": member_id, "project_role": "project_member"},
        )
        self.assertEqual(status, 200)

        status, _, out = self.http("GET", f"/api/auth/permissions?projectId={project['id']}", cookie=member)
        self.assertEqual(status, 200)
        self.assertEqual(out["projectRole"], "project_member")
        self.assertIn("task:create", out["projectPermissions"])
        self.assertNotIn("task:create", out["globalPermissions"])
