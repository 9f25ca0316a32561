import unittest

from starlette.requests import Request

from cruiser.auth.identity import Credentials, extract_credentials, resolve_identity
from cruiser.auth.tokens import TokenCodec
from cruiser.core.errors import InvalidCredential, Unauthenticated
from cruiser.core.settings import settings

SECRET = "identity-test-secret-0123456789abcdef"


def make_request(headers: dict | None = None, cookies: dict | None = None) -> Request:
    raw = [(name.lower().encode(), value.encode()) for name, value in (headers or {}).items()]
    if cookies:
        raw.append((b"cookie", "; ".join(f"{k}={v}" for k, v in cookies.items()).encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "query_string": b""})


class FakeClock:
    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestExtractCredentials(unittest.TestCase):

    def test_bearer_header(self):
        credentials = extract_credentials(make_request({"Authorization": "Bearer abc"}))
        self.assertEqual(credentials, Credentials(primary="abc"))

    def test_scheme_is_case_insensitive(self):
        credentials = extract_credentials(make_request({"Authorization": "bearer abc"}))
        self.assertEqual(credentials.primary, "abc")

    def test_header_wins_over_cookie(self):
        request = make_request({"Authorization": "Bearer header"}, {settings.TOKEN_COOKIE_NAME: "cookie"})
        self.assertEqual(extract_credentials(request).primary, "header")

    def test_cookie_fallback(self):
        request = make_request(cookies={
            settings.TOKEN_COOKIE_NAME: "cookie",
            settings.IMPERSONATION_COOKIE_NAME: "imp",
        })
        self.assertEqual(extract_credentials(request), Credentials(primary="cookie", impersonation="imp"))

    def test_other_schemes_are_ignored(self):
        for value in ("Basic dXNlcjpwYXNz", "Bearer ", "abc"):
            with self.subTest(header=value):
                self.assertFalse(extract_credentials(make_request({"Authorization": value})).present)

    def test_impersonation_header(self):
        request = make_request({settings.IMPERSONATION_HEADER: "imp"})
        credentials = extract_credentials(request)
        self.assertEqual(credentials.impersonation, "imp")
        self.assertIsNone(credentials.primary)


class TestResolveIdentity(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.codec = TokenCodec(SECRET, SECRET, clock=self.clock)
        self.admin_token = self.codec.issue("admin", ["SUPER_ADMIN"], 900)
        self.impersonation = self.codec.issue("student", ["STUDENT"], 60, actor_id="admin")

    def test_primary_credential(self):
        identity = resolve_identity(Credentials(primary=self.admin_token), self.codec)
        self.assertEqual(identity.id, "admin")
        self.assertEqual(identity.roles, frozenset({"SUPER_ADMIN"}))
        self.assertFalse(identity.impersonating)
        self.assertEqual(identity.real_user_id, "admin")

    def test_impersonation_wins(self):
        identity = resolve_identity(Credentials(self.admin_token, self.impersonation), self.codec)
        self.assertEqual(identity.id, "student")
        self.assertTrue(identity.impersonating)
        self.assertEqual(identity.actor_id, "admin")
        self.assertEqual(identity.real_user_id, "admin")

    def test_expired_impersonation_falls_back_to_primary(self):
        self.clock.now += 120
        identity = resolve_identity(Credentials(self.admin_token, self.impersonation), self.codec)
        self.assertEqual(identity.id, "admin")
        self.assertFalse(identity.impersonating)

    def test_plain_token_is_not_accepted_as_impersonation(self):
        plain = self.codec.issue("student", ["STUDENT"], 60)
        with self.assertRaises(InvalidCredential):
            resolve_identity(Credentials(impersonation=plain), self.codec)
        identity = resolve_identity(Credentials(self.admin_token, plain), self.codec)
        self.assertEqual(identity.id, "admin")

    def test_bad_impersonation_without_primary(self):
        with self.assertRaises(InvalidCredential):
            resolve_identity(Credentials(impersonation="garbage"), self.codec)

    def test_no_credentials(self):
        with self.assertRaises(Unauthenticated):
            resolve_identity(Credentials(), self.codec)

    def test_bad_primary(self):
        with self.assertRaises(InvalidCredential):
            resolve_identity(Credentials(primary="garbage"), self.codec)


if __name__ == "__main__":
    unittest.main()
