import unittest

from _support_api import BaseAPITestCase, db

from pm_server import permission_defs as perms
from pm_server.auth import AuthenticatedUser
from pm_server._server.permissions import (
    accessible_project_ids,
    has_all_permissions,
    has_any_permission,
    has_permission,
    project_role,
    require_project,
)


class TestPermissionDefs(unittest.TestCase):
    def test_scopes(self):
        self.assertEqual(perms.permission_scope(perms.USER_CREATE), perms.SCOPE_GLOBAL)
        self.assertEqual(perms.permission_scope(perms.TIME_TRACKING_VIEW_ALL), perms.SCOPE_GLOBAL)
        self.assertEqual(perms.permission_scope(perms.USER_UPDATE), perms.SCOPE_OWN)
        self.assertEqual(perms.permission_scope(perms.TIME_TRACKING_CREATE), perms.SCOPE_OWN)
        self.assertEqual(perms.permission_scope(perms.TASK_CREATE), perms.SCOPE_PROJECT)
        self.assertEqual(perms.permission_scope(perms.SPRINT_START), perms.SCOPE_PROJECT)

    def test_catalog_is_complete(self):
        self.assertEqual(len(perms.ALL_PERMISSIONS), len(set(perms.ALL_PERMISSIONS)))
        self.assertIn(perms.BACKLOG_MANAGE, perms.ALL_PERMISSIONS)
        for role, granted in perms.ROLE_PERMISSIONS.items():
            self.assertTrue(set(granted) <= set(perms.ALL_PERMISSIONS), role)
        self.assertNotIn(perms.ORGANIZATION_DELETE, perms.ROLE_PERMISSIONS[perms.ROLE_ADMIN])

    def test_team_member_lacks_management_permissions(self):
        granted = set(perms.ROLE_PERMISSIONS[perms.ROLE_TEAM_MEMBER])
        for permission in (
            perms.PROJECT_VIEW_ALL,
            perms.TIME_TRACKING_VIEW_ALL,
            perms.TIME_TRACKING_APPROVE,
            perms.USER_UPDATE,
            perms.ORGANIZATION_UPDATE,
        ):
            self.assertNotIn(permission, granted)


class TestHasPermission(BaseAPITestCase):
    def setUp(self):
        self.admin_cookie = self.login("admin", "admin")
        self.project = self.make_project(self.admin_cookie)
        self.other = self.make_project(self.admin_cookie)
        self.member = self._user()

    def _user(self, role="team_member"):
        user_id, _ = self.make_user(role)
        with db.connect(self.db_path) as conn:
            row = db.get_user_by_id(conn, user_id)
        return AuthenticatedUser.from_row(row)

    def _join(self, user, project_role_name, project=None):
        with db.connect(self.db_path) as conn:
            db.set_project_member(conn, (project or self.project)["id"], user.id, project_role_name)

    def test_own_scope_always_passes(self):
        viewer = self._user("viewer")
        with db.connect(self.db_path) as conn:
            self.assertTrue(has_permission(conn, viewer, perms.USER_UPDATE))
            self.assertTrue(has_permission(conn, viewer, perms.TIME_TRACKING_CREATE, self.project["id"]))

    def test_global_scope_uses_role(self):
        manager = self._user("project_manager")
        with db.connect(self.db_path) as conn:
            self.assertFalse(has_permission(conn, self.member, perms.TIME_TRACKING_VIEW_ALL))
            self.assertTrue(has_permission(conn, manager, perms.TIME_TRACKING_VIEW_ALL))
            self.assertFalse(has_permission(conn, self.member, perms.PROJECT_CREATE, self.project["id"]))

    def test_project_scope_uses_project_role(self):
        self._join(self.member, perms.PROJECT_ROLE_MEMBER)
        with db.connect(self.db_path) as conn:
            self.assertEqual(project_role(conn, self.member, db.get_project(conn, self.project["id"])), "project_member")
            self.assertTrue(has_permission(conn, self.member, perms.TASK_CREATE, self.project["id"]))
            self.assertFalse(has_permission(conn, self.member, perms.TASK_CREATE, self.other["id"]))
            self.assertFalse(has_permission(conn, self.member, perms.TASK_CREATE))
            self.assertFalse(has_permission(conn, self.member, perms.SPRINT_START, self.project["id"]))
            self.assertFalse(has_permission(conn, self.member, perms.TASK_READ, 999999))

    def test_project_viewer_is_read_only(self):
        viewer = self._user("viewer")
        self._join(viewer, perms.PROJECT_ROLE_VIEWER)
        with db.connect(self.db_path) as conn:
            self.assertTrue(has_permission(conn, viewer, perms.TASK_READ, self.project["id"]))
            self.assertFalse(has_permission(conn, viewer, perms.TASK_UPDATE, self.project["id"]))
            self.assertTrue(has_any_permission(conn, viewer, [perms.TASK_UPDATE, perms.TASK_READ], self.project["id"]))
            self.assertFalse(has_all_permissions(conn, viewer, [perms.TASK_UPDATE, perms.TASK_READ], self.project["id"]))

    def test_creator_is_project_manager(self):
        manager = self._user("project_manager")
        with db.connect(self.db_path) as conn:
            project_id = db.create_project(
                conn,
                organization_id=self.org_id,
                name="Owned",
                created_by=manager.id,
            )
            self.assertEqual(project_role(conn, manager, db.get_project(conn, project_id)), "project_manager")
            self.assertTrue(has_permission(conn, manager, perms.SPRINT_COMPLETE, project_id))

    def test_client_gets_read_access(self):
        client = self._user("client")
        with db.connect(self.db_path) as conn:
            admin_id = int(db.get_user_by_username(conn, "admin")["id"])
            project_id = db.create_project(
                conn, organization_id=self.org_id, name="Client work", created_by=admin_id, client_id=client.id
            )
            self.assertEqual(project_role(conn, client, db.get_project(conn, project_id)), "project_client")
            self.assertTrue(has_permission(conn, client, perms.BACKLOG_READ, project_id))
            self.assertFalse(has_permission(conn, client, perms.TASK_CREATE, project_id))
            self.assertIn(project_id, accessible_project_ids(conn, client))

    def test_accessible_projects_and_require_project(self):
        self._join(self.member, perms.PROJECT_ROLE_MEMBER)
        with db.connect(self.db_path) as conn:
            self.assertEqual(accessible_project_ids(conn, self.member), [self.project["id"]])
            admin_row = db.get_user_by_username(conn, "admin")
            admin = AuthenticatedUser.from_row(admin_row)
            visible = accessible_project_ids(conn, admin)
            self.assertIn(self.project["id"], visible)
            self.assertIn(self.other["id"], visible)

            self.assertEqual(int(require_project(conn, self.member, self.project["id"])["id"]), self.project["id"])
            with self.assertRaisesRegex(PermissionError, "not_authorized"):
                require_project(conn, self.member, self.other["id"])
            with self.assertRaisesRegex(FileNotFoundError, "project_not_found"):
                require_project(conn, self.member, 999999)

    def test_other_organization_is_invisible(self):
        with db.connect(self.db_path) as conn:
            org_id = db.create_organization(conn, name="Elsewhere")
        outsider_id, cookie = self.make_user("admin", organization_id=org_id)
        with db.connect(self.db_path) as conn:
            outsider = AuthenticatedUser.from_row(db.get_user_by_id(conn, outsider_id))
            self.assertFalse(has_permission(conn, outsider, perms.TASK_READ, self.project["id"]))
            self.assertNotIn(self.project["id"], accessible_project_ids(conn, outsider))
            with self.assertRaisesRegex(FileNotFoundError, "project_not_found"):
                require_project(conn, outsider, self.project["id"])

        status, _, out = self.http("GET", f"/api/projects/{self.project['id']}", cookie=cookie)
        self.assertEqual(status, 404)
        self.assertEqual(out["error"], "project_not_found")
