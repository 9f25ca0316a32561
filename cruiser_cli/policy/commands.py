from pathlib import Path
from typing import Optional

import typer

from cruiser.core.errors import PolicyError
from cruiser.rbac.policy import DEFAULT_POLICY_FILE, load_policy


app = typer.Typer(help="Access policy tools (offline)")


@app.command("validate")
def validate(
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Policy JSON file (default: the packaged policy)"),
):
    """
    Check a route/capability policy file for consistency without starting the server.
    """
    source = file or DEFAULT_POLICY_FILE
    try:
        policy = load_policy(source)
    except PolicyError as e:
        typer.echo(str(e))
        raise typer.Exit(code=1)

    typer.echo(
        f"{source}: OK ({len(policy.public)} public, {len(policy.routes)} routes, "
        f"{len(policy.capabilities)} capabilities, {len(policy.namespaces)} namespaces)"
    )
