import unittest

from okrflow.tests.support import PASSWORD, ApiTestCase, objective_payload
from okrflow.types import Role


class OrgTestCase(ApiTestCase):
    def setUp(self):
        super().setUp()
        admin, self.admin_headers = self.register("admin@acme.io", org_name="Acme", name="Asha Admin")
        self.admin_id = admin["id"]
        self.org_id = admin["org_id"]
        self.manager_id, self.manager_headers = self.create_user(
            "manager@acme.io", Role.MANAGER, self.org_id
        )
        self.employee_id, self.employee_headers = self.create_user(
            "emp@acme.io", Role.EMPLOYEE, self.org_id
        )
        outsider, self.outsider_headers = self.register("boss@globex.io", org_name="Globex")
        self.outsider_id = outsider["id"]


class TeamApiTests(OrgTestCase):
    def test_team_lifecycle(self):
        created = self.client.post(
            "/api/teams", json={"name": "Platform"}, headers=self.manager_headers
        )
        self.assertEqual(created.status_code, 201, created.text)
        team = created.json()["data"]["team"]
        self.assertEqual(team["member_count"], 0)

        updated = self.client.patch(
            f"/api/teams/{team['id']}",
            json={"member_ids": [self.employee_id, self.manager_id, self.employee_id]},
            headers=self.manager_headers,
        )
        self.assertEqual(updated.status_code, 200, updated.text)
        self.assertEqual(
            sorted(m["id"] for m in updated.json()["data"]["team"]["members"]),
            sorted([self.employee_id, self.manager_id]),
        )

        replaced = self.client.patch(
            f"/api/teams/{team['id']}",
            json={"name": "Platform Eng", "member_ids": [self.employee_id]},
            headers=self.manager_headers,
        ).json()["data"]["team"]
        self.assertEqual(replaced["name"], "Platform Eng")
        self.assertEqual([m["id"] for m in replaced["members"]], [self.employee_id])

        self.client.post(
            "/api/objectives",
            json=objective_payload(team_id=team["id"]),
            headers=self.employee_headers,
        )
        detail = self.client.get(f"/api/teams/{team['id']}", headers=self.manager_headers)
        self.assertEqual(detail.json()["data"]["team"]["objectives"][0]["progress"], 70)

        listed = self.client.get(
            "/api/teams", params={"search": "plat"}, headers=self.manager_headers
        ).json()["data"]["teams"]
        self.assertEqual([t["id"] for t in listed], [team["id"]])

        deleted = self.client.delete(f"/api/teams/{team['id']}", headers=self.manager_headers)
        self.assertEqual(deleted.status_code, 200)
        self.assertError(
            self.client.get(f"/api/teams/{team['id']}", headers=self.manager_headers),
            404,
            "NOT_FOUND",
        )

    def test_members_must_be_in_org(self):
        team = self.client.post(
            "/api/teams", json={"name": "Platform"}, headers=self.manager_headers
        ).json()["data"]["team"]
        response = self.client.patch(
            f"/api/teams/{team['id']}",
            json={"member_ids": [self.outsider_id]},
            headers=self.manager_headers,
        )
        self.assertError(response, 403, "FORBIDDEN")

    def test_permissions(self):
        self.assertError(
            self.client.post("/api/teams", json={"name": "X"}, headers=self.employee_headers),
            403,
            "FORBIDDEN",
        )
        team = self.client.post(
            "/api/teams", json={"name": "Platform"}, headers=self.manager_headers
        ).json()["data"]["team"]
        self.assertError(
            self.client.get(f"/api/teams/{team['id']}", headers=self.outsider_headers),
            404,
            "NOT_FOUND",
        )

    def test_objective_team_must_be_in_org(self):
        team = self.client.post(
            "/api/teams", json={"name": "Platform"}, headers=self.manager_headers
        ).json()["data"]["team"]
        response = self.client.post(
            "/api/objectives",
            json=objective_payload(team_id=team["id"]),
            headers=self.outsider_headers,
        )
        self.assertError(response, 404, "NOT_FOUND")


class UserApiTests(OrgTestCase):
    def test_directory(self):
        response = self.client.get("/api/users", headers=self.manager_headers)
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["pagination"]["total"], 3)
        self.assertNotIn("boss@globex.io", [u["email"] for u in data["users"]])

        search = self.client.get(
            "/api/users", params={"search": "asha"}, headers=self.manager_headers
        ).json()["data"]["users"]
        self.assertEqual([u["id"] for u in search], [self.admin_id])

        self.assertError(self.client.get("/api/users", headers=self.employee_headers), 403, "FORBIDDEN")

    def test_admin_routes_require_admin(self):
        for headers in (self.manager_headers, self.employee_headers):
            self.assertError(self.client.get("/api/admin/users", headers=headers), 403, "FORBIDDEN")
            self.assertError(
                self.client.patch(
                    f"/api/admin/users/{self.employee_id}", json={"role": "ADMIN"}, headers=headers
                ),
                403,
                "FORBIDDEN",
            )
        self.assertError(self.client.get("/api/admin/users"), 401, "UNAUTHORIZED")

    def test_admin_manages_roles(self):
        listed = self.client.get("/api/admin/users", headers=self.admin_headers).json()["data"]
        self.assertEqual(listed["pagination"]["total"], 3)

        response = self.client.patch(
            f"/api/admin/users/{self.employee_id}", json={"role": "MANAGER"}, headers=self.admin_headers
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"]["user"]["role"], "MANAGER")
        self.assertEqual(self.client.get("/api/users", headers=self.employee_headers).status_code, 200)

        bad_role = self.client.patch(
            f"/api/admin/users/{self.employee_id}", json={"role": "OWNER"}, headers=self.admin_headers
        )
        self.assertError(bad_role, 400, "VALIDATION_ERROR")

        other_org = self.client.patch(
            f"/api/admin/users/{self.outsider_id}", json={"role": "EMPLOYEE"}, headers=self.admin_headers
        )
        self.assertError(other_org, 404, "NOT_FOUND")

    def test_admin_deletes_users(self):
        self.client.post("/api/objectives", json=objective_payload(), headers=self.employee_headers)
        self.assertError(
            self.client.delete(f"/api/admin/users/{self.admin_id}", headers=self.admin_headers),
            400,
            "VALIDATION_ERROR",
        )
        self.assertError(
            self.client.delete(f"/api/admin/users/{self.outsider_id}", headers=self.admin_headers),
            404,
            "NOT_FOUND",
        )
        response = self.client.delete(f"/api/admin/users/{self.employee_id}", headers=self.admin_headers)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertError(self.client.get("/api/auth/me", headers=self.employee_headers), 401, "UNAUTHORIZED")
        objectives = self.client.get("/api/objectives", headers=self.admin_headers).json()["data"]
        self.assertEqual(objectives["pagination"]["total"], 0)


class SettingsApiTests(OrgTestCase):
    def test_locale_settings(self):
        current = self.client.get("/api/settings/locale", headers=self.employee_headers)
        self.assertEqual(current.status_code, 200)
        self.assertIn("hierarchy_labels", current.json()["data"]["settings"])

        self.assertError(
            self.client.patch(
                "/api/settings/locale", json={"week_start": "sunday"}, headers=self.manager_headers
            ),
            403,
            "FORBIDDEN",
        )
        response = self.client.patch(
            "/api/settings/locale",
            json={
                "fiscal_year_start_month": 1,
                "week_start": "sunday",
                "hierarchy_labels": {"team": "Squad"},
            },
            headers=self.admin_headers,
        )
        self.assertEqual(response.status_code, 200, response.text)
        settings = response.json()["data"]["settings"]
        self.assertEqual(settings["fiscal_year_start_month"], 1)
        self.assertEqual(settings["week_start"], "sunday")
        self.assertEqual(settings["hierarchy_labels"]["team"], "Squad")
        self.assertTrue(settings["hierarchy_labels"]["company"])

        again = self.client.get("/api/settings/locale", headers=self.employee_headers).json()
        self.assertEqual(again["data"]["settings"]["week_start"], "sunday")

        objective = self.client.post(
            "/api/objectives", json=objective_payload(), headers=self.employee_headers
        ).json()["data"]["objective"]
        self.assertEqual(objective["fiscal_quarter"], 2)

        invalid = self.client.patch(
            "/api/settings/locale", json={"fiscal_year_start_month": 13}, headers=self.admin_headers
        )
        self.assertError(invalid, 400, "VALIDATION_ERROR")

    def test_locale_requires_org(self):
        _, solo_headers = self.register("solo@acme.io")
        self.assertError(self.client.get("/api/settings/locale", headers=solo_headers), 403, "FORBIDDEN")

    def test_notification_settings(self):
        defaults = self.client.get("/api/settings/notifications", headers=self.employee_headers)
        self.assertTrue(defaults.json()["data"]["settings"]["push_check_in_reminders"])

        response = self.client.patch(
            "/api/settings/notifications",
            json={"push_check_in_reminders": False, "quiet_hours_start": "22:30"},
            headers=self.employee_headers,
        )
        self.assertEqual(response.status_code, 200)
        saved = self.client.get("/api/settings/notifications", headers=self.employee_headers)
        settings = saved.json()["data"]["settings"]
        self.assertFalse(settings["push_check_in_reminders"])
        self.assertEqual(settings["quiet_hours_start"], "22:30")
        self.assertTrue(settings["email_weekly_digest"])

        bad = self.client.patch(
            "/api/settings/notifications", json={"quiet_hours_end": "late"}, headers=self.employee_headers
        )
        self.assertError(bad, 400, "VALIDATION_ERROR")

    def test_profile_and_password(self):
        profile = self.client.patch(
            "/api/settings/profile", json={"name": "  Asha A.  "}, headers=self.admin_headers
        )
        self.assertEqual(profile.json()["data"]["user"]["name"], "Asha A.")

        wrong = self.client.patch(
            "/api/settings/password",
            json={"current_password": "nope-nope", "new_password": "new-password-1"},
            headers=self.admin_headers,
        )
        self.assertError(wrong, 400, "VALIDATION_ERROR")

        changed = self.client.patch(
            "/api/settings/password",
            json={"current_password": PASSWORD, "new_password": "new-password-1"},
            headers=self.admin_headers,
        )
        self.assertEqual(changed.status_code, 200)
        login = self.client.post(
            "/api/auth/login", json={"email": "admin@acme.io", "password": "new-password-1"}
        )
        self.assertEqual(login.status_code, 200)


if __name__ == "__main__":
    unittest.main()
