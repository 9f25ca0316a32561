import unittest

from cruiser.audit.service import http_action, list_activity, log_event, validate_chain
from cruiser.models.Audit import GENESIS_HASH, ActivityLog
from tests.support import ApiTestCase, auth


class TestActivityChain(ApiTestCase):

    def test_http_action(self):
        self.assertEqual(http_action("POST", "/auth/login", 200), "POST /auth/login 200 OK")
        self.assertEqual(http_action("POST", "/auth/login", 401), "POST /auth/login 401 Unauthorized")

    def test_entries_are_chained(self):
        db = self.session()
        first = log_event(db, "u1", "ROLE_GRANT", "Granted PILOT", subject_id="u2")
        second = log_event(db, None, "POST /auth/login 401 Unauthorized")

        self.assertEqual(first.previous_hash, GENESIS_HASH)
        self.assertEqual(second.previous_hash, first.current_hash)
        self.assertEqual(second.actor_id, "anonymous")
        self.assertEqual(validate_chain(db).valid, True)

    def test_tampering_is_detected(self):
        db = self.session()
        log_event(db, "u1", "ROLE_GRANT", "Granted PILOT", subject_id="u2")
        entry = log_event(db, "u1", "ROLE_GRANT", "Granted STUDENT", subject_id="u2")
        log_event(db, "u1", "ROLE_REVOKE", "Revoked STUDENT", subject_id="u2")

        entry.details = "Granted SUPER_ADMIN"
        db.add(entry)
        db.commit()

        result = validate_chain(db)
        self.assertFalse(result.valid)
        self.assertEqual(result.broken_id, entry.id)

    def test_list_for_one_user_includes_entries_about_them(self):
        db = self.session()
        log_event(db, "admin", "ROLE_GRANT", subject_id="u2")
        log_event(db, "u2", "POST /auth/login 200 OK")
        log_event(db, "u3", "POST /auth/login 200 OK")

        entries = list_activity(db, actor_id="u2")
        self.assertEqual([entry.action for entry in entries], ["POST /auth/login 200 OK", "ROLE_GRANT"])
        self.assertTrue(all(isinstance(entry, ActivityLog) for entry in entries))


class TestActivityApi(ApiTestCase):

    def test_role_changes_are_recorded(self):
        user_id, token = self.user_with_roles("pilot@cruiser.io", "PILOT")

        own = self.client.get("/api/activity", headers=auth(token)).json()
        actions = [entry["action"] for entry in own]
        self.assertIn("ROLE_GRANT", actions)
        self.assertIn("ROLE_REVOKE", actions)
        self.assertTrue(all(user_id in (entry["actor_id"], entry["subject_id"]) for entry in own))

        root = self.admin_token()
        everything = self.client.get("/api/activity?limit=1000", headers=auth(root)).json()
        self.assertGreater(len(everything), len(own))

        verify = self.client.get("/api/activity/verify", headers=auth(root)).json()
        self.assertTrue(verify["valid"])
        self.assertEqual(verify["entries"], len(everything))

    def test_failed_login_is_recorded_anonymously(self):
        self.client.post("/api/auth/login", json={"email": "nobody@cruiser.io", "password": "whatever"})
        entries = self.client.get("/api/activity", headers=auth(self.admin_token())).json()
        failed = [entry for entry in entries if entry["action"] == "POST /auth/login 401 Unauthorized"]
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0]["actor_id"], "anonymous")

    def test_verify_is_super_admin_only(self):
        _, token = self.user_with_roles("admin2@cruiser.io", "ADMIN")
        self.assertEqual(self.client.get("/api/activity/verify", headers=auth(token)).status_code, 403)


if __name__ == "__main__":
    unittest.main()
