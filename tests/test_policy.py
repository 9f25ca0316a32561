import json
import tempfile
import unittest
from pathlib import Path

from cruiser.core.errors import PolicyError
from cruiser.rbac.policy import DEFAULT_POLICY_FILE, load_policy, normalize_path, parse_policy


def minimal_policy(**overrides) -> dict:
    policy = {
        "public": [{"pattern": "/login"}, {"pattern": "/api/auth/login"}],
        "routes": [
            {"pattern": "/fleet/*", "namespace": "fleet", "roles": ["ADMIN", "PILOT"]},
            {"pattern": "/api/fleet/*", "namespace": "fleet", "roles": ["ADMIN", "PILOT"]},
        ],
        "capabilities": [
            {"resource_type": "menu", "resource_name": "fleet", "action": "view", "roles": ["ADMIN", "PILOT"]},
            {"resource_type": "api", "resource_name": "fleet", "action": "edit", "roles": ["ADMIN"]},
        ],
    }
    policy.update(overrides)
    return policy


class TestPolicyLoading(unittest.TestCase):

    def test_packaged_policy_is_consistent(self):
        policy = load_policy(DEFAULT_POLICY_FILE)
        self.assertIn("users", policy.namespaces)
        self.assertIn("roles", policy.namespaces)
        self.assertEqual(policy.roles_for_namespace("roles"), frozenset({"SUPER_ADMIN"}))
        names = {spec.name for spec in policy.capabilities}
        self.assertIn("api.users.impersonate", names)
        self.assertIn("menu.fleet.view", names)

    def test_star_suffix_means_wildcard(self):
        policy = parse_policy(minimal_policy())
        rule = policy.routes[0]
        self.assertEqual(rule.pattern, "/fleet")
        self.assertTrue(rule.wildcard)

    def test_missing_file_is_a_policy_error(self):
        with self.assertRaises(PolicyError):
            load_policy("/nonexistent/policy.json")

    def test_invalid_json_is_a_policy_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "policy.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(PolicyError):
                load_policy(path)

    def test_file_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "policy.json"
            path.write_text(json.dumps(minimal_policy()), encoding="utf-8")
            self.assertEqual(len(load_policy(path).routes), 2)


class TestPolicyValidation(unittest.TestCase):

    def assertRejected(self, document: dict, fragment: str):
        with self.assertRaises(PolicyError) as ctx:
            parse_policy(document)
        self.assertIn(fragment, str(ctx.exception))

    def test_unknown_role_name(self):
        routes = [{"pattern": "/fleet/*", "namespace": "fleet", "roles": ["CAPTAIN"]}]
        with self.assertRaises(PolicyError):
            parse_policy(minimal_policy(routes=routes))

    def test_duplicate_pattern(self):
        routes = minimal_policy()["routes"] + [{"pattern": "/fleet/*", "namespace": "fleet", "roles": ["ADMIN"]}]
        self.assertRejected(minimal_policy(routes=routes), "registered twice")

    def test_pattern_must_be_absolute_and_normalized(self):
        self.assertRejected(minimal_policy(public=[{"pattern": "login"}]), "must start with '/'")
        self.assertRejected(minimal_policy(public=[{"pattern": "/a//b"}]), "not normalized")

    def test_public_rule_cannot_shadow_protected_rule(self):
        self.assertRejected(minimal_policy(public=[{"pattern": "/api/*"}]), "shadows protected pattern")

    def test_public_carve_out_below_protected_wildcard_is_allowed(self):
        policy = parse_policy(minimal_policy(public=[{"pattern": "/fleet/public-status"}]))
        self.assertEqual(len(policy.public), 1)

    def test_namespace_without_capability(self):
        capabilities = [c for c in minimal_policy()["capabilities"] if c["resource_name"] != "fleet"]
        self.assertRejected(minimal_policy(capabilities=capabilities), "has no capability")

    def test_unmapped_namespace_is_accepted(self):
        policy = parse_policy(minimal_policy(capabilities=[], unmapped_namespaces=["fleet"]))
        self.assertEqual(policy.unmapped_namespaces, frozenset({"fleet"}))

    def test_unused_unmapped_namespace(self):
        self.assertRejected(minimal_policy(unmapped_namespaces=["hangar"]), "not used by any route")

    def test_duplicate_capability(self):
        capabilities = minimal_policy()["capabilities"] * 2
        self.assertRejected(minimal_policy(capabilities=capabilities), "declared twice")

    def test_dotted_capability_part(self):
        capabilities = minimal_policy()["capabilities"] + [
            {"resource_type": "api", "resource_name": "fleet", "action": "edit.all", "roles": ["ADMIN"]},
        ]
        self.assertRejected(minimal_policy(capabilities=capabilities), "empty or dotted part")

    def test_capability_granted_to_role_denied_by_route_table(self):
        capabilities = minimal_policy()["capabilities"] + [
            {"resource_type": "data", "resource_name": "fleet", "action": "view-all", "roles": ["STUDENT"]},
        ]
        self.assertRejected(minimal_policy(capabilities=capabilities), "route table denies them")

    def test_route_without_roles(self):
        routes = minimal_policy()["routes"] + [{"pattern": "/hangar", "namespace": "fleet", "roles": []}]
        self.assertRejected(minimal_policy(routes=routes), "allows no role")

    def test_every_problem_is_reported(self):
        document = minimal_policy(public=[{"pattern": "/api/*"}], unmapped_namespaces=["hangar"])
        with self.assertRaises(PolicyError) as ctx:
            parse_policy(document)
        message = str(ctx.exception)
        self.assertIn("shadows", message)
        self.assertIn("hangar", message)


class TestNormalizePath(unittest.TestCase):

    def test_normalization(self):
        cases = {
            "/api/users/": "/api/users",
            "//api//users": "/api/users",
            "/api/public/../roles": "/api/roles",
            "/./fleet/./x": "/fleet/x",
            "": "/",
            "/": "/",
            "/../..": "/",
        }
        for raw, expected in cases.items():
            with self.subTest(path=raw):
                self.assertEqual(normalize_path(raw), expected)


if __name__ == "__main__":
    unittest.main()
