import getpass
import re
import typer

from cruiser_cli.core.session import save_token, load_token, load_refresh_token, clear_token, is_logged_in
from cruiser_cli.core.api import ApiError, api_login, api_logout, api_me, api_refresh, api_register, api_my_capabilities
from cruiser_cli.core.utils import fail, require_token, validate_password


app = typer.Typer(help="Authentication commands (login, logout, whoami)")

EMAIL_REGEX = re.compile(r"^[\w\.+-]+@[\w\.-]+\.\w+$")


@app.command("login")
def login(
    email: str = typer.Option(None, "--email", "-e", help="Email"),
):
    """
    Login to the backend. Only allowed if no session is active.
    """
    if is_logged_in():
        typer.echo("Session already active. Logout first to remove current session token.")
        raise typer.Exit(code=1)

    if email is None:
        email = typer.prompt("Email")

    if not EMAIL_REGEX.match(email):
        typer.echo("Invalid email.")
        raise typer.Exit(code=1)

    password = getpass.getpass("Password: ")

    try:
        token = api_login(email, password)
    except ApiError as e:
        fail(e)

    save_token(token["access_token"], token.get("refresh_token"))
    typer.echo(f"Login successful as '{email}'.")


@app.command("register")
def register():
    """
    Create a new account. New accounts start as PROSPECT.
    """
    email = typer.prompt("Email")
    if not EMAIL_REGEX.match(email):
        typer.echo("Invalid email.")
        raise typer.Exit(code=1)

    first_name = typer.prompt("First name", default="")
    last_name = typer.prompt("Last name", default="")

    password = getpass.getpass("Password: ")
    password_confirm = getpass.getpass("Confirm password: ")
    if password != password_confirm:
        typer.echo("Passwords do not match.")
        raise typer.Exit(code=1)
    if not validate_password(password):
        raise typer.Exit(code=1)

    try:
        user = api_register({
            "email": email,
            "password": password,
            "first_name": first_name or None,
            "last_name": last_name or None,
        })
    except ApiError as e:
        fail(e)

    typer.echo(f"Account created for {user['email']} with roles: {', '.join(user['roles'])}")


@app.command("logout")
def logout():
    """
    End session and delete local tokens.
    """
    token = load_token()
    if token:
        try:
            api_logout(token)
            typer.echo("Logged out from backend.")
        except ApiError:
            typer.echo("Warning: Failed to logout from backend. The token may have already expired.")

    clear_token()
    typer.echo("Session ended.")


@app.command("whoami")
def whoami(
    capabilities: bool = typer.Option(False, "--capabilities", "-c", help="Also list effective capabilities"),
    resource_type: str = typer.Option(None, "--type", help="Filter capabilities by resource type (menu, data, api)"),
):
    """
    Show who requests act as, including impersonation.
    """
    token = require_token()
    try:
        me = api_me(token)
        caps = api_my_capabilities(token, resource_type) if capabilities else []
    except ApiError as e:
        fail(e)

    typer.echo(f"{me['email']} ({me['id']})")
    typer.echo(f"Status: {me['status']}")
    typer.echo(f"Roles:  {', '.join(me['roles'])}")
    if me.get("isImpersonation"):
        typer.echo(f"Impersonated by: {me['originalUserId']}")
    for cap in caps:
        typer.echo(f"  {cap['name']}")


@app.command("refresh")
def refresh():
    """
    Get a new token carrying your current roles.
    """
    require_token()
    refresh_token = load_refresh_token()
    if not refresh_token:
        typer.echo("No refresh token stored. Login again.")
        raise typer.Exit(code=1)
    try:
        new_token = api_refresh(refresh_token)
    except ApiError as e:
        fail(e)

    save_token(new_token["access_token"], new_token.get("refresh_token"))
    typer.echo("Token refreshed.")
