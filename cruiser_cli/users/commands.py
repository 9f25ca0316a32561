import typer
from typing import Optional

from cruiser_cli.core.session import save_impersonation_token, clear_impersonation_token, load_impersonation_token
from cruiser_cli.core.api import (
    ApiError,
    api_list_users,
    api_find_user,
    api_set_status,
    api_grant_role,
    api_revoke_role,
    api_upgrade_role,
    api_impersonate,
    api_stop_impersonation,
)
from cruiser_cli.core.utils import fail, require_token


app = typer.Typer(help="User management commands (list, grant, revoke, upgrade, impersonate)")

ROLES = ["SUPER_ADMIN", "ADMIN", "BASE_MANAGER", "PILOT", "STUDENT", "INSTRUCTOR", "PROSPECT"]
UPGRADE_TARGETS = ["STUDENT", "PILOT", "INSTRUCTOR"]


def _check_role(role: str, allowed=ROLES) -> str:
    role = role.upper()
    if role not in allowed:
        typer.echo(f"Invalid role '{role}'. Valid: {', '.join(allowed)}")
        raise typer.Exit(code=1)
    return role


def _print_user(user: dict) -> None:
    typer.echo(f"{user['id']}  {user['email']:<32} {user['status']:<9} {', '.join(user['roles'])}")


@app.command("list")
def list_users():
    """
    List all users (SUPER_ADMIN, ADMIN or BASE_MANAGER).
    """
    token = require_token()
    try:
        users = api_list_users(token)
    except ApiError as e:
        fail(e)

    if not users:
        typer.echo("No users found.")
        return
    for user in users:
        _print_user(user)


@app.command("show")
def show_user(user: str = typer.Argument(..., help="User id or email")):
    token = require_token()
    try:
        _print_user(api_find_user(token, user))
    except ApiError as e:
        fail(e)


@app.command("grant")
def grant_role(
    user: str = typer.Argument(..., help="User id or email"),
    role: str = typer.Argument(..., help="Role name"),
):
    """
    Grant a role (SUPER_ADMIN only).
    """
    token = require_token()
    role = _check_role(role)
    try:
        target = api_find_user(token, user)
        updated = api_grant_role(token, target["id"], role)
    except ApiError as e:
        fail(e)

    typer.echo(f"Granted {role} to {updated['email']}. Roles: {', '.join(updated['roles'])}")


@app.command("revoke")
def revoke_role(
    user: str = typer.Argument(..., help="User id or email"),
    role: str = typer.Argument(..., help="Role name"),
):
    """
    Revoke a role (SUPER_ADMIN only). Revoking the last role leaves PROSPECT.
    """
    token = require_token()
    role = _check_role(role)
    try:
        target = api_find_user(token, user)
        updated = api_revoke_role(token, target["id"], role)
    except ApiError as e:
        fail(e)

    typer.echo(f"Revoked {role} from {updated['email']}. Roles: {', '.join(updated['roles'])}")


@app.command("upgrade")
def upgrade_role(
    user: str = typer.Argument(..., help="User id or email"),
    role: str = typer.Argument(..., help="STUDENT, PILOT or INSTRUCTOR"),
    license_number: Optional[str] = typer.Option(None, "--license"),
    medical_class: Optional[str] = typer.Option(None, "--medical"),
    instructor_rating: Optional[str] = typer.Option(None, "--rating"),
    flight_hours: Optional[float] = typer.Option(None, "--hours"),
):
    """
    Upgrade a PROSPECT once verified.
    """
    token = require_token()
    role = _check_role(role, UPGRADE_TARGETS)
    validation = {
        key: value for key, value in {
            "license_number": license_number,
            "medical_class": medical_class,
            "instructor_rating": instructor_rating,
            "total_flight_hours": flight_hours,
        }.items() if value is not None
    }
    try:
        target = api_find_user(token, user)
        updated = api_upgrade_role(token, target["id"], role, validation or None)
    except ApiError as e:
        fail(e)

    typer.echo(f"Upgraded {updated['email']} to {role}.")


@app.command("status")
def set_status(
    user: str = typer.Argument(..., help="User id or email"),
    status: str = typer.Argument(..., help="ACTIVE or DISABLED"),
):
    token = require_token()
    status = status.upper()
    if status not in ("ACTIVE", "DISABLED"):
        typer.echo("Status must be ACTIVE or DISABLED.")
        raise typer.Exit(code=1)
    try:
        target = api_find_user(token, user)
        updated = api_set_status(token, target["id"], status)
    except ApiError as e:
        fail(e)

    typer.echo(f"{updated['email']} is now {updated['status']}.")


@app.command("impersonate")
def impersonate(user: str = typer.Argument(..., help="User id or email")):
    """
    Act as another user (SUPER_ADMIN only) until stopped or expired.
    """
    token = require_token()
    if load_impersonation_token():
        typer.echo("Already impersonating. Run `cruiser users stop-impersonating` first.")
        raise typer.Exit(code=1)
    try:
        target = api_find_user(token, user)
        result = api_impersonate(token, target["id"])
    except ApiError as e:
        fail(e)

    save_impersonation_token(result["impersonationToken"], result["targetUserId"])
    typer.echo(f"Now impersonating {target['email']} for {result['expires_in'] // 60} minutes.")


@app.command("stop-impersonating")
def stop_impersonating():
    token = require_token()
    if not load_impersonation_token():
        typer.echo("Not impersonating anyone.")
        raise typer.Exit(code=1)
    try:
        api_stop_impersonation(token)
    except ApiError as e:
        # an expired impersonation token is already ignored by the server
        typer.echo(f"Warning: {e.detail}")

    clear_impersonation_token()
    typer.echo("Impersonation ended.")
