import re
import typer

from cruiser_cli.core.api import ApiError
from cruiser_cli.core.session import load_token


def validate_password(password: str) -> bool:
    """
    Validates password strength:
    - At least 8 characters
    - At least one letter
    - At least one number
    """
    if len(password) < 8:
        typer.echo("Password must be at least 8 characters long.")
        return False

    if not re.search(r"[a-zA-Z]", password):
        typer.echo("Password must contain at least one letter.")
        return False

    if not re.search(r"\d", password):
        typer.echo("Password must contain at least one number.")
        return False

    return True


def require_token() -> str:
    token = load_token()
    if not token:
        typer.echo("No active session. Please run `cruiser auth login` first.")
        raise typer.Exit(code=1)
    return token


def fail(error: ApiError) -> None:
    if error.status_code:
        typer.echo(f"Error ({error.status_code}): {error.detail}")
    else:
        typer.echo(f"Error: {error.detail}")
    raise typer.Exit(code=1)
