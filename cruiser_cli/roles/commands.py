import typer

from cruiser_cli.core.api import (
    ApiError,
    api_list_roles,
    api_role_capabilities,
    api_set_role_capabilities,
    api_clear_role_capability,
)
from cruiser_cli.core.utils import fail, require_token


app = typer.Typer(help="Role and capability administration (SUPER_ADMIN)")


def _resolve_role(token: str, name_or_id: str) -> dict:
    for role in api_list_roles(token):
        if role["id"] == name_or_id or role["name"] == name_or_id.upper():
            return role
    raise ApiError(404, f"Role {name_or_id} not found")


def _resolve_capability(token: str, role_id: str, name_or_id: str) -> dict:
    view = api_role_capabilities(token, role_id)
    for entries in view["groups"].values():
        for entry in entries:
            if name_or_id in (entry["id"], entry["name"]):
                return entry
    raise ApiError(404, f"Capability {name_or_id} not found")


@app.command("list")
def list_roles():
    token = require_token()
    try:
        roles = api_list_roles(token)
    except ApiError as e:
        fail(e)

    for role in roles:
        typer.echo(f"{role['id']}  {role['name']:<13} {role.get('description') or ''}")


@app.command("capabilities")
def show_capabilities(role: str = typer.Argument(..., help="Role name or id")):
    """
    Show every capability and whether the role has it.
    """
    token = require_token()
    try:
        view = api_role_capabilities(token, _resolve_role(token, role)["id"])
    except ApiError as e:
        fail(e)

    typer.echo(f"Capabilities of {view['role_name']}:")
    for group in sorted(view["groups"]):
        typer.echo(f"[{group}]")
        for entry in view["groups"][group]:
            if entry["is_granted"]:
                mark = "granted"
            elif entry["explicit"]:
                mark = "DENIED"
            else:
                mark = "-"
            typer.echo(f"  {entry['action']:<14} {mark}")


@app.command("set-capability")
def set_capability(
    role: str = typer.Argument(..., help="Role name or id"),
    capability: str = typer.Argument(..., help="Capability name (type.resource.action) or id"),
    grant: bool = typer.Option(True, "--grant/--deny", help="Grant, or record an explicit deny"),
):
    token = require_token()
    try:
        target = _resolve_role(token, role)
        entry = _resolve_capability(token, target["id"], capability)
        result = api_set_role_capabilities(token, target["id"], [{"id": entry["id"], "is_granted": grant}])
    except ApiError as e:
        fail(e)

    if result["failure_count"]:
        typer.echo(f"Failed: {result['results'][0].get('error')}")
        raise typer.Exit(code=1)
    typer.echo(f"{entry['name']} {'granted to' if grant else 'denied for'} {target['name']}.")


@app.command("clear-capability")
def clear_capability(
    role: str = typer.Argument(..., help="Role name or id"),
    capability: str = typer.Argument(..., help="Capability name (type.resource.action) or id"),
):
    """
    Remove the explicit row, so the role simply does not have the capability.
    """
    token = require_token()
    try:
        target = _resolve_role(token, role)
        entry = _resolve_capability(token, target["id"], capability)
        api_clear_role_capability(token, target["id"], entry["id"])
    except ApiError as e:
        fail(e)

    typer.echo(f"Cleared {entry['name']} for {target['name']}.")
