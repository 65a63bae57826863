from _support_api import BaseAPITestCase


class TestProjectsWorkItems(BaseAPITestCase):
    def _add_member(self, admin, project_id, user_id, project_role="project_member"):
        status, _, out = self.http(
            "POST",
            f"/api/projects/{project_id}/team",
            cookie=admin,
            json_body={"user_id": user_id, "project_role": project_role},
        )
        self.assertEqual(status, 200, out)
        return out

    def test_project_create_validation_and_numbering(self):
        admin = self.login("admin", "admin")
        first = self.make_project(admin)
        second = self.make_project(admin, status="active", priority="high")
        self.assertEqual(second["project_number"], first["project_number"] + 1)
        self.assertEqual(second["status"], "active")
        self.assertTrue(second["settings"]["allow_time_tracking"])

        status, _, out = self.http("POST", "/api/projects", cookie=admin, json_body={"name": "X", "status": "weird"})
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "invalid_status")

        status, _, out = self.http("POST", "/api/projects", cookie=admin, json_body={"name": "X", "end_date": "2024-13-40"})
        self.assertEqual(status, 400)
        self.assertEqual(out["error"], "invalid_date")

        user = self.login("user", "user")
        status, _, _ = self.http("POST", "/api/projects", cookie=user, json_body={"name": "Nope"})
        self.assertEqual(status, 403)

    def test_project_detail_team_and_access(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin, settings={"require_approval": True})
        self.assertTrue(project["settings"]["require_approval"])

        member_id, member = self.make_user()
        _, outsider = self.make_user()
        status, _, out = self.http("GET", f"/api/projects/{project['id']}", cookie=outsider)
        self.assertEqual(status, 403)
        status, _, listing = self.http("GET", "/api/projects", cookie=outsider)
        self.assertEqual(status, 200)
        self.assertNotIn(project["id"], [p["id"] for p in listing["items"]])

        out = self._add_member(admin, project["id"], member_id)
        self.assertIn(member_id, [m["user_id"] for m in out["team"]])
        status, _, notes = self.http("GET", "/api/notifications", cookie=member)
        self.assertEqual(status, 200)
        self.assertEqual(notes["items"][0]["title"], "Added to Project")

        status, _, detail = self.http("GET", f"/api/projects/{project['id']}", cookie=member)
        self.assertEqual(status, 200)
        self.assertEqual({m["user_id"] for m in detail["team"]}, {member_id, detail["created_by"]})

        status, _, _ = self.http(
            "POST", f"/api/projects/{project['id']}/team/remove", cookie=admin, json_body={"user_id": member_id}
        )
        self.assertEqual(status, 204)
        status, _, _ = self.http("GET", f"/api/projects/{project['id']}", cookie=member)
        self.assertEqual(status, 403)
        status, _, out = self.http(
            "POST", f"/api/projects/{project['id']}/team/remove", cookie=admin, json_body={"user_id": member_id}
        )
        self.assertEqual(status, 404)
        self.assertEqual(out["error"], "member_not_found")

    def test_archive_and_restore_project(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        status, _, out = self.http("POST", f"/api/projects/{project['id']}/archive", cookie=admin)
        self.assertEqual(status, 200)
        self.assertTrue(out["archived"])

        _, _, listing = self.http("GET", "/api/projects", cookie=admin)
        self.assertNotIn(project["id"], [p["id"] for p in listing["items"]])
        _, _, listing = self.http("GET", "/api/projects?includeArchived=true", cookie=admin)
        self.assertIn(project["id"], [p["id"] for p in listing["items"]])

        status, _, out = self.http("POST", f"/api/projects/{project['id']}/restore", cookie=admin)
        self.assertEqual(status, 200)
        self.assertFalse(out["archived"])

    def test_task_display_ids_are_per_project(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        other = self.make_project(admin)
        t1 = self.make_task(admin, project["id"])
        t2 = self.make_task(admin, project["id"], type="bug", priority="critical")
        t3 = self.make_task(admin, other["id"])
        self.assertEqual(t1["display_id"], f"{project['project_number']}.1")
        self.assertEqual(t2["display_id"], f"{project['project_number']}.2")
        self.assertEqual(t3["display_id"], f"{other['project_number']}.1")
        self.assertEqual(t2["type"], "bug")
        self.assertEqual(t1["status"], "backlog")

    def test_task_validation_errors(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        other = self.make_project(admin)
        other_epic = self._create(admin, "/api/epics", projectId=other["id"], title="Elsewhere")

        cases = [
            ({"title": "No project"}, 400, "missing_fields"),
            ({"projectId": project["id"]}, 400, "missing_fields"),
            ({"projectId": 999999, "title": "x"}, 404, "project_not_found"),
            ({"projectId": project["id"], "title": "x", "status": "nope"}, 400, "invalid_status"),
            ({"projectId": project["id"], "title": "x", "type": "chore"}, 400, "invalid_type"),
            ({"projectId": project["id"], "title": "x", "story_points": -1}, 400, "invalid_story_points"),
            ({"projectId": project["id"], "title": "x", "assigned_to": [999999]}, 400, "invalid_assignee"),
            ({"projectId": project["id"], "title": "x", "epic_id": other_epic["id"]}, 400, "invalid_epic_id"),
        ]
        for body, code, error in cases:
            status, _, out = self.http("POST", "/api/tasks", cookie=admin, json_body=body)
            self.assertEqual(status, code, body)
            self.assertEqual(out["error"], error, body)

    def _create(self, cookie, path, **body):
        status, _, out = self.http("POST", path, cookie=cookie, json_body=body)
        self.assertEqual(status, 201, out)
        return out

    def test_assignment_notifies_new_assignees_only(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        member_id, member = self.make_user()
        self._add_member(admin, project["id"], member_id)
        self.http("POST", "/api/notifications/read-all", cookie=member)

        task = self.make_task(admin, project["id"], assigned_to=[member_id])
        self.assertEqual(task["assigned_to"], [member_id])
        _, _, notes = self.http("GET", "/api/notifications?unread=true", cookie=member)
        self.assertEqual(notes["unreadCount"], 1)
        note = notes["items"][0]
        self.assertEqual(note["title"], "Task Assigned")
        self.assertEqual(note["data"]["entity_id"], task["id"])
        self.assertEqual(note["data"]["url"], f"/tasks/{task['id']}")

        status, _, _ = self.http(
            "POST", f"/api/tasks/{task['id']}", cookie=admin, json_body={"assigned_to": [member_id], "title": "Renamed"}
        )
        self.assertEqual(status, 200)
        _, _, notes = self.http("GET", "/api/notifications?unread=true", cookie=member)
        self.assertEqual(notes["unreadCount"], 1)

        status, _, _ = self.http("POST", f"/api/notifications/{note['id']}/read", cookie=member)
        self.assertEqual(status, 204)
        _, _, notes = self.http("GET", "/api/notifications?unread=true", cookie=member)
        self.assertEqual(notes["unreadCount"], 0)
        status, _, _ = self.http("POST", "/api/notifications/999999/read", cookie=member)
        self.assertEqual(status, 404)

    def test_self_assignment_is_not_notified(self):
        admin = self.login("admin", "admin")
        _, _, me = self.http("GET", "/api/me", cookie=admin)
        project = self.make_project(admin)
        _, _, before = self.http("GET", "/api/notifications", cookie=admin)
        self.make_task(admin, project["id"], assigned_to=[me["id"]])
        _, _, after = self.http("GET", "/api/notifications", cookie=admin)
        self.assertEqual(after["unreadCount"], before["unreadCount"])

    def test_member_permissions_on_tasks_and_comments(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        member_id, member = self.make_user("viewer")
        self._add_member(admin, project["id"], member_id, "project_viewer")
        task = self.make_task(admin, project["id"], assigned_to=[member_id])

        status, _, _ = self.http("GET", f"/api/tasks/{task['id']}", cookie=member)
        self.assertEqual(status, 200)
        status, _, _ = self.http("POST", f"/api/tasks/{task['id']}", cookie=member, json_body={"status": "done"})
        self.assertEqual(status, 403)
        status, _, _ = self.http(
            "POST", f"/api/tasks/{task['id']}/comments", cookie=member, json_body={"content": "hi"}
        )
        self.assertEqual(status, 403)

        self._add_member(admin, project["id"], member_id, "project_member")
        status, _, comment = self.http(
            "POST", f"/api/tasks/{task['id']}/comments", cookie=member, json_body={"content": "on it"}
        )
        self.assertEqual(status, 201)
        self.assertEqual(comment["user"]["id"], member_id)
        status, _, comments = self.http("GET", f"/api/tasks/{task['id']}/comments", cookie=admin)
        self.assertEqual(status, 200)
        self.assertEqual([c["content"] for c in comments["items"]], ["on it"])

        status, _, _ = self.http("POST", f"/api/tasks/{task['id']}/delete", cookie=member)
        self.assertEqual(status, 403)
        status, _, _ = self.http("POST", f"/api/tasks/{task['id']}/delete", cookie=admin)
        self.assertEqual(status, 204)
        status, _, out = self.http("GET", f"/api/tasks/{task['id']}", cookie=admin)
        self.assertEqual(status, 404)
        self.assertEqual(out["error"], "task_not_found")

    def test_task_list_filters(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        done = self.make_task(admin, project["id"], status="done")
        open_task = self.make_task(admin, project["id"], status="todo")
        self.assertIsNotNone(done["completed_at"])
        self.assertIsNone(open_task["completed_at"])

        status, _, out = self.http("GET", f"/api/tasks?projectId={project['id']}&status=todo", cookie=admin)
        self.assertEqual(status, 200)
        self.assertEqual([t["id"] for t in out["items"]], [open_task["id"]])

    def test_completion_cascades_to_story_sprint_and_epic(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        pid = project["id"]
        epic = self._create(admin, "/api/epics", projectId=pid, title="Checkout")
        sprint = self._create(admin, "/api/sprints", projectId=pid, name="Sprint 1")
        story = self._create(
            admin, "/api/stories", projectId=pid, title="Pay by card", epic_id=epic["id"], sprint_id=sprint["id"]
        )
        t1 = self.make_task(admin, pid, story_id=story["id"], epic_id=epic["id"], sprint_id=sprint["id"])
        t2 = self.make_task(admin, pid, story_id=story["id"], epic_id=epic["id"])

        _, _, epic_now = self.http("GET", f"/api/epics/{epic['id']}", cookie=admin)
        self.assertEqual(epic_now["status"], "in_progress")

        self.http("POST", f"/api/tasks/{t1['id']}", cookie=admin, json_body={"status": "done"})
        _, _, story_now = self.http("GET", f"/api/stories/{story['id']}", cookie=admin)
        self.assertEqual(story_now["status"], "backlog")

        status, _, t2_now = self.http("POST", f"/api/tasks/{t2['id']}", cookie=admin, json_body={"status": "done"})
        self.assertEqual(status, 200)
        self.assertIsNotNone(t2_now["completed_at"])

        _, _, story_now = self.http("GET", f"/api/stories/{story['id']}", cookie=admin)
        self.assertEqual(story_now["status"], "done")
        self.assertEqual(len(story_now["tasks"]), 2)
        _, _, sprint_now = self.http("GET", f"/api/sprints/{sprint['id']}", cookie=admin)
        self.assertEqual(sprint_now["status"], "completed")
        _, _, epic_now = self.http("GET", f"/api/epics/{epic['id']}", cookie=admin)
        self.assertEqual(epic_now["status"], "done")
        self.assertIsNotNone(epic_now["completed_at"])
        self.assertEqual([s["id"] for s in epic_now["stories"]], [story["id"]])

    def test_reopening_task_clears_completed_at(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        task = self.make_task(admin, project["id"], status="done")
        status, _, out = self.http("POST", f"/api/tasks/{task['id']}", cookie=admin, json_body={"status": "in_progress"})
        self.assertEqual(status, 200)
        self.assertIsNone(out["completed_at"])

    def test_story_and_epic_crud(self):
        admin = self.login("admin", "admin")
        project = self.make_project(admin)
        epic = self._create(admin, "/api/epics", projectId=project["id"], title="Epic", tags=["a", " ", "b"])
        self.assertEqual(epic["tags"], ["a", "b"])
        story = self._create(
            admin, "/api/stories", projectId=project["id"], title="Story", acceptance_criteria=["works"]
        )
        self.assertEqual(story["acceptance_criteria"], ["works"])

        status, _, out = self.http(
            "POST", f"/api/stories/{story['id']}", cookie=admin, json_body={"epic_id": epic["id"], "priority": "high"}
        )
        self.assertEqual(status, 200)
        self.assertEqual(out["epic_id"], epic["id"])

        _, _, listing = self.http("GET", f"/api/stories?projectId={project['id']}&epicId={epic['id']}", cookie=admin)
        self.assertEqual([s["id"] for s in listing["items"]], [story["id"]])

        status, _, _ = self.http("POST", f"/api/epics/{epic['id']}/delete", cookie=admin)
        self.assertEqual(status, 204)
        status, _, out = self.http("GET", f"/api/epics/{epic['id']}", cookie=admin)
        self.assertEqual(status, 404)
        self.assertEqual(out["error"], "epic_not_found")
