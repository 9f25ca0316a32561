# cruiser_cli/core/api.py
from typing import Any, List, Optional

import requests

from .config import API_PREFIX, BASE_URL, IMPERSONATION_HEADER, TIMEOUT
from .session import load_impersonation_token


class ApiError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def _headers(token: Optional[str]) -> dict:
    """
    Sends both credentials when present. The server prefers the
    impersonation token while it is valid.
    """
    headers = {}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    impersonation_token = load_impersonation_token()
    if impersonation_token:
        headers[IMPERSONATION_HEADER] = impersonation_token
    return headers


def _detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason
    if isinstance(body, dict) and "detail" in body:
        detail = body["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return str(body)


def _request(method: str, path: str, token: Optional[str] = None, expected=(200,), **kwargs) -> Any:
    url = f"{BASE_URL}{API_PREFIX}{path}"
    try:
        resp = requests.request(method, url, headers=_headers(token), timeout=TIMEOUT, **kwargs)
    except requests.RequestException as e:
        raise ApiError(0, f"Cannot reach {BASE_URL}: {e}")

    if resp.status_code not in expected:
        raise ApiError(resp.status_code, _detail(resp))
    if resp.status_code == 204 or not resp.content:
        return None
    return resp.json()


# ---------------------------------------------------------------- auth

def api_login(email: str, password: str) -> dict:
    return _request("POST", "/auth/login", json={"email": email, "password": password})


def api_register(data: dict) -> dict:
    return _request("POST", "/auth/register", json=data, expected=(201,))


def api_logout(token: str) -> None:
    _request("POST", "/auth/logout", token)


def api_me(token: str) -> dict:
    return _request("GET", "/auth/me", token)


def api_my_capabilities(token: str, resource_type: Optional[str] = None) -> List[dict]:
    params = {"resource_type": resource_type} if resource_type else None
    return _request("GET", "/auth/me/capabilities", token, params=params)


def api_refresh(refresh_token: str) -> dict:
    return _request("POST", "/auth/refresh", json={"refresh_token": refresh_token})


def api_stop_impersonation(token: str) -> dict:
    return _request("POST", "/auth/impersonation/stop", token)


# ---------------------------------------------------------------- users

def api_list_users(token: str) -> List[dict]:
    return _request("GET", "/users", token)


def api_get_user(token: str, user_id: str) -> dict:
    return _request("GET", f"/users/{user_id}", token)


def api_find_user(token: str, email_or_id: str) -> dict:
    """
    Resolves a user by id, or by email through the user list.
    """
    if "@" not in email_or_id:
        return api_get_user(token, email_or_id)
    for user in api_list_users(token):
        if user.get("email", "").lower() == email_or_id.lower():
            return user
    raise ApiError(404, f"No user with email {email_or_id}")


def api_set_status(token: str, user_id: str, status: str) -> dict:
    return _request("PATCH", f"/users/{user_id}/status", token, json={"status": status})


def api_grant_role(token: str, user_id: str, role: str) -> dict:
    return _request("POST", f"/users/{user_id}/roles", token, json={"role": role})


def api_revoke_role(token: str, user_id: str, role: str) -> dict:
    return _request("DELETE", f"/users/{user_id}/roles/{role}", token)


def api_upgrade_role(token: str, user_id: str, new_role: str, validation_data: Optional[dict] = None) -> dict:
    body = {"newRole": new_role}
    if validation_data:
        body["validationData"] = validation_data
    return _request("POST", f"/users/{user_id}/upgrade-role", token, json=body)


def api_impersonate(token: str, user_id: str) -> dict:
    return _request("POST", f"/users/{user_id}/impersonate", token)


# ---------------------------------------------------------------- roles

def api_list_roles(token: str) -> List[dict]:
    return _request("GET", "/roles", token)


def api_role_capabilities(token: str, role_id: str) -> dict:
    return _request("GET", f"/roles/{role_id}/capabilities", token)


def api_set_role_capabilities(token: str, role_id: str, updates: List[dict]) -> dict:
    return _request("PUT", f"/roles/{role_id}/capabilities", token, json={"capabilities": updates})


def api_clear_role_capability(token: str, role_id: str, capability_id: str) -> None:
    _request("DELETE", f"/roles/{role_id}/capabilities/{capability_id}", token, expected=(204,))


# ---------------------------------------------------------------- activity

def api_activity(token: str, limit: int = 50) -> List[dict]:
    return _request("GET", "/activity", token, params={"limit": limit})


def api_verify_activity(token: str) -> dict:
    return _request("GET", "/activity/verify", token)
