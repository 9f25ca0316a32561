import unittest

from tests.support import ApiTestCase, auth


class TestRoleCapabilitiesApi(ApiTestCase):

    def setUp(self):
        super().setUp()
        self.root = self.admin_token()
        self.roles = {role["name"]: role["id"] for role in self.client.get("/api/roles", headers=auth(self.root)).json()}

    def capability(self, role: str, name: str) -> dict:
        view = self.client.get(f"/api/roles/{self.roles[role]}/capabilities", headers=auth(self.root)).json()
        for entries in view["groups"].values():
            for entry in entries:
                if entry["name"] == name:
                    return entry
        self.fail(f"{name} not listed")

    def test_lists_every_role(self):
        self.assertEqual(
            set(self.roles),
            {"SUPER_ADMIN", "ADMIN", "BASE_MANAGER", "PILOT", "STUDENT", "INSTRUCTOR", "PROSPECT"},
        )

    def test_capabilities_are_grouped_by_resource(self):
        view = self.client.get(f"/api/roles/{self.roles['PILOT']}/capabilities", headers=auth(self.root)).json()
        self.assertEqual(view["role_name"], "PILOT")
        self.assertIn("api.scheduling", view["groups"])
        self.assertIn("menu.users", view["groups"])

        entry = self.capability("PILOT", "menu.users.view")
        self.assertFalse(entry["is_granted"])
        self.assertFalse(entry["explicit"])

    def test_unknown_role(self):
        resp = self.client.get("/api/roles/missing/capabilities", headers=auth(self.root))
        self.assertEqual(resp.status_code, 404)

    def test_batch_update_reports_each_item(self):
        book = self.capability("PILOT", "api.scheduling.book")
        resp = self.client.put(
            f"/api/roles/{self.roles['PILOT']}/capabilities",
            json={"capabilities": [{"id": book["id"], "is_granted": False}, {"id": "missing", "is_granted": True}]},
            headers=auth(self.root),
        )
        body = resp.json()
        self.assertEqual(body["success_count"], 1)
        self.assertEqual(body["failure_count"], 1)
        self.assertFalse(body["results"][1]["success"])

        entry = self.capability("PILOT", "api.scheduling.book")
        self.assertFalse(entry["is_granted"])
        self.assertTrue(entry["explicit"])

    def test_changes_apply_to_holders_at_once(self):
        _, pilot = self.user_with_roles("pilot@cruiser.io", "PILOT")

        def names():
            resp = self.client.get("/api/auth/me/capabilities", headers=auth(pilot))
            return {capability["name"] for capability in resp.json()}

        self.assertIn("api.scheduling.book", names())

        book = self.capability("PILOT", "api.scheduling.book")
        self.client.put(
            f"/api/roles/{self.roles['PILOT']}/capabilities",
            json={"capabilities": [{"id": book["id"], "is_granted": False}]},
            headers=auth(self.root),
        )
        self.assertNotIn("api.scheduling.book", names())

        resp = self.client.delete(f"/api/roles/{self.roles['PILOT']}/capabilities/{book['id']}", headers=auth(self.root))
        self.assertEqual(resp.status_code, 204)
        self.assertFalse(self.capability("PILOT", "api.scheduling.book")["explicit"])
        self.assertNotIn("api.scheduling.book", names())

        resp = self.client.delete(f"/api/roles/{self.roles['PILOT']}/capabilities/{book['id']}", headers=auth(self.root))
        self.assertEqual(resp.status_code, 404)

    def test_role_management_is_super_admin_only(self):
        _, admin = self.user_with_roles("admin2@cruiser.io", "ADMIN")
        self.assertEqual(self.client.get("/api/roles", headers=auth(admin)).status_code, 403)
        self.assertEqual(self.client.get("/role-management", headers=auth(admin)).status_code, 404)


if __name__ == "__main__":
    unittest.main()
