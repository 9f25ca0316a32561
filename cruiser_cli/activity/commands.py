import typer

from cruiser_cli.core.api import ApiError, api_activity, api_verify_activity
from cruiser_cli.core.utils import fail, require_token


app = typer.Typer(help="Activity log")


@app.command("list")
def list_activity(limit: int = typer.Option(50, "--limit", "-n")):
    """
    Your own entries; SUPER_ADMIN and ADMIN see everything.
    """
    token = require_token()
    try:
        entries = api_activity(token, limit)
    except ApiError as e:
        fail(e)

    for entry in entries:
        subject = f" -> {entry['subject_id']}" if entry.get("subject_id") else ""
        typer.echo(f"[{entry['id']}] {entry['timestamp']} {entry['actor_id']}{subject} {entry['action']} {entry['details']}")


@app.command("verify")
def verify_chain():
    """
    Check the hash chain (SUPER_ADMIN).
    """
    token = require_token()
    try:
        result = api_verify_activity(token)
    except ApiError as e:
        fail(e)

    if result["valid"]:
        typer.echo(f"Chain OK ({result['entries']} entries).")
    else:
        typer.echo(f"Chain BROKEN at entry {result['broken_id']}.")
        raise typer.Exit(code=1)
