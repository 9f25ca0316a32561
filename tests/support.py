import unittest

from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from cruiser.core.database import engine
from cruiser.core.settings import settings
from cruiser.main import app

ADMIN_EMAIL = settings.ADMIN_EMAIL
ADMIN_PASSWORD = settings.ADMIN_PASSWORD
DEFAULT_PASSWORD = "Flying-high-42"


def auth(token: str | None = None, impersonation: str | None = None) -> dict:
    headers = {}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    if impersonation:
        headers[settings.IMPERSONATION_HEADER] = impersonation
    return headers


class ApiTestCase(unittest.TestCase):
    """
    Fresh in-memory database per test, seeded by the app lifespan.
    """

    def setUp(self):
        SQLModel.metadata.drop_all(engine)
        self.client = self.enterContext(TestClient(app))

    def session(self) -> Session:
        return self.enterContext(Session(engine))

    def login_tokens(self, email: str, password: str = DEFAULT_PASSWORD) -> dict:
        """
        Full login response: access token and refresh token.
        """
        resp = self.client.post("/api/auth/login", json={"email": email, "password": password})
        self.assertEqual(resp.status_code, 200, resp.text)
        # tests pass credentials explicitly
        self.client.cookies.clear()
        return resp.json()

    def login(self, email: str, password: str = DEFAULT_PASSWORD) -> str:
        return self.login_tokens(email, password)["access_token"]

    def refresh(self, refresh_token: str):
        resp = self.client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
        self.client.cookies.clear()
        return resp

    def admin_token(self) -> str:
        return self.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    def register(self, email: str, password: str = DEFAULT_PASSWORD) -> str:
        resp = self.client.post("/api/auth/register", json={
            "email": email, "password": password, "first_name": "Test", "last_name": "User",
        })
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["id"]

    def user_with_roles(self, email: str, *roles: str) -> tuple[str, str]:
        """
        Registers a user, grants ``roles`` as the admin and logs in.
        Returns (user_id, token).
        """
        user_id = self.register(email)
        admin = self.admin_token()
        for role in roles:
            resp = self.client.post(f"/api/users/{user_id}/roles", json={"role": role}, headers=auth(admin))
            self.assertEqual(resp.status_code, 200, resp.text)
        if roles and "PROSPECT" not in roles:
            self.client.delete(f"/api/users/{user_id}/roles/PROSPECT", headers=auth(admin))
        return user_id, self.login(email)
