import unittest
from unittest.mock import MagicMock

from cruiser.core.errors import StoreUnavailable
from cruiser.rbac.evaluator import AccessEvaluator, Outcome, check_roles, effective_grants
from cruiser.rbac.policy import parse_policy


POLICY = {
    "public": [
        {"pattern": "/login"},
        {"pattern": "/api/health"},
        {"pattern": "/static/*"},
        {"pattern": "/api/fleet/public-status"},
    ],
    "public_suffixes": [".png", ".svg"],
    "routes": [
        {"pattern": "/api/fleet/*", "namespace": "fleet", "roles": ["ADMIN", "PILOT"]},
        {"pattern": "/api/fleet/admin/*", "namespace": "fleet", "roles": ["ADMIN"]},
        {"pattern": "/api/roles", "namespace": "roles", "roles": ["SUPER_ADMIN"]},
        {"pattern": "/role-management/*", "namespace": "roles", "roles": ["SUPER_ADMIN"]},
    ],
    "capabilities": [
        {"resource_type": "api", "resource_name": "fleet", "action": "edit", "roles": ["ADMIN"]},
        {"resource_type": "api", "resource_name": "roles", "action": "write", "roles": ["SUPER_ADMIN"]},
    ],
}


class TestCheckRoute(unittest.TestCase):

    def setUp(self):
        self.evaluator = AccessEvaluator(parse_policy(POLICY), api_prefix="/api")

    def test_public_paths(self):
        for path in ("/login", "/api/health", "/static/app.js", "/static", "/logo.png", "/fleet/plane.SVG"):
            with self.subTest(path=path):
                self.assertEqual(self.evaluator.check_route(path, []).outcome, Outcome.PUBLIC)

    def test_public_suffix_does_not_open_api_paths(self):
        decision = self.evaluator.check_route("/api/roles.png", [])
        self.assertNotEqual(decision.outcome, Outcome.PUBLIC)

    def test_unregistered_path_only_needs_authentication(self):
        decision = self.evaluator.check_route("/dashboard", [])
        self.assertEqual(decision.outcome, Outcome.AUTHENTICATED)
        self.assertTrue(decision.allowed)

    def test_longest_pattern_wins(self):
        self.assertEqual(self.evaluator.match_route("/api/fleet/admin/hobbs").pattern, "/api/fleet/admin")
        self.assertEqual(self.evaluator.match_route("/api/fleet/N123").pattern, "/api/fleet")

        self.assertTrue(self.evaluator.check_route("/api/fleet/N123", ["PILOT"]).allowed)
        self.assertFalse(self.evaluator.check_route("/api/fleet/admin/hobbs", ["PILOT"]).allowed)
        self.assertTrue(self.evaluator.check_route("/api/fleet/admin/hobbs", ["ADMIN"]).allowed)

    def test_wildcard_matches_the_prefix_itself(self):
        self.assertEqual(self.evaluator.check_route("/api/fleet", ["PILOT"]).outcome, Outcome.ALLOWED)

    def test_exact_pattern_does_not_cover_sub_paths(self):
        self.assertIsNotNone(self.evaluator.match_route("/api/roles"))
        self.assertIsNone(self.evaluator.match_route("/api/roles/123"))

    def test_prefix_is_segment_aware(self):
        self.assertIsNone(self.evaluator.match_route("/api/fleetwood"))

    def test_denied_outcome_names_the_rule(self):
        decision = self.evaluator.check_route("/role-management/edit", ["ADMIN"])
        self.assertEqual(decision.outcome, Outcome.DENIED)
        self.assertEqual(decision.rule.namespace, "roles")

    def test_path_is_normalized_before_matching(self):
        for path in ("/api/fleet/../roles", "//api//roles/", "/api/./roles"):
            with self.subTest(path=path):
                decision = self.evaluator.check_route(path, ["PILOT"])
                self.assertEqual(decision.outcome, Outcome.DENIED)
                self.assertEqual(decision.path, "/api/roles")

    def test_public_carve_out_below_protected_prefix(self):
        self.assertEqual(self.evaluator.check_route("/api/fleet/public-status", []).outcome, Outcome.PUBLIC)

    def test_no_roles_is_denied_on_protected_path(self):
        self.assertFalse(self.evaluator.check_route("/api/fleet/N123", []).allowed)

    def test_is_api_path(self):
        self.assertTrue(self.evaluator.is_api_path("/api"))
        self.assertTrue(self.evaluator.is_api_path("/api/users"))
        self.assertFalse(self.evaluator.is_api_path("/apiary"))
        self.assertFalse(self.evaluator.is_api_path("/users"))


class TestGrants(unittest.TestCase):

    def test_check_roles(self):
        self.assertTrue(check_roles(["PILOT", "STUDENT"], ["ADMIN", "PILOT"]))
        self.assertFalse(check_roles(["PROSPECT"], ["ADMIN", "PILOT"]))
        self.assertFalse(check_roles([], ["ADMIN"]))

    def test_deny_wins_across_roles(self):
        rows = [
            ("api.fleet.edit", True),   # from ADMIN
            ("api.fleet.edit", False),  # explicit deny from another role
            ("menu.fleet.view", True),
        ]
        self.assertEqual(effective_grants(rows), frozenset({"menu.fleet.view"}))

    def test_absent_row_is_not_granted(self):
        self.assertEqual(effective_grants([]), frozenset())

    def test_check_capability_uses_the_store(self):
        evaluator = AccessEvaluator(parse_policy(POLICY), api_prefix="/api")
        store = MagicMock()
        store.get_granted_capability_names.return_value = frozenset({"api.fleet.edit"})

        self.assertTrue(evaluator.check_capability(store, "u1", "api.fleet.edit").allowed)
        self.assertFalse(evaluator.check_capability(store, "u1", "api.roles.write").allowed)
        store.get_granted_capability_names.assert_called_with("u1")

    def test_check_capability_fails_closed(self):
        evaluator = AccessEvaluator(parse_policy(POLICY), api_prefix="/api")
        store = MagicMock()
        store.get_granted_capability_names.side_effect = StoreUnavailable()

        decision = evaluator.check_capability(store, "u1", "api.fleet.edit")
        self.assertEqual(decision.outcome, Outcome.DENIED)


if __name__ == "__main__":
    unittest.main()
