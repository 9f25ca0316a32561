from pathlib import Path

import typer

from cruiser_cli.core.crypto import escape_pem, generate_hmac_secret, generate_rsa_keypair


app = typer.Typer(help="Server setup helpers")


def render_env(template: str, algorithm: str, admin_email: str, admin_password: str) -> str:
    """
    Fills the secrets of a .env template. Lines not listed here are kept as they are.
    """
    values = {
        "ALGORITHM": algorithm,
        "PASSWORD_PEPPER": generate_hmac_secret(24),
        "ADMIN_EMAIL": admin_email,
        "ADMIN_PASSWORD": admin_password,
    }
    if algorithm.startswith("RS"):
        private_pem, public_pem = generate_rsa_keypair()
        values["SERVER_PRIVATE_KEY"] = f'"{escape_pem(private_pem)}"'
        values["SERVER_PUBLIC_KEY"] = f'"{escape_pem(public_pem)}"'
        values["JWT_SECRET"] = ""
    else:
        values["JWT_SECRET"] = generate_hmac_secret()

    new_lines = []
    seen = set()
    for line in template.splitlines():
        key = line.split("=", 1)[0].strip()
        if "=" in line and key in values:
            new_lines.append(f"{key}={values[key]}")
            seen.add(key)
        else:
            new_lines.append(line)
    # append anything the template did not mention
    for key, value in values.items():
        if key not in seen and value:
            new_lines.append(f"{key}={value}")
    return "\n".join(new_lines) + "\n"


@app.command("init-env")
def init_env(
    output: Path = typer.Option(Path(".env"), "--output", "-o"),
    example: Path = typer.Option(Path(".env.example"), "--example"),
    algorithm: str = typer.Option("HS256", "--algorithm", help="HS256 (shared secret) or RS256 (key pair)"),
    admin_email: str = typer.Option(..., prompt="Bootstrap admin email"),
    admin_password: str = typer.Option(..., prompt="Bootstrap admin password", hide_input=True, confirmation_prompt=True),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """
    Write a .env with fresh signing secrets.
    """
    algorithm = algorithm.upper()
    if algorithm not in ("HS256", "RS256"):
        typer.echo("Algorithm must be HS256 or RS256.")
        raise typer.Exit(code=1)

    if output.exists() and not force:
        if not typer.confirm(f"{output} already exists. Overwrite it?", default=False):
            typer.echo("Aborted.")
            raise typer.Exit(code=1)

    template = example.read_text(encoding="utf-8") if example.exists() else ""
    if algorithm == "RS256":
        typer.echo("Generating RSA key pair...")

    output.write_text(render_env(template, algorithm, admin_email, admin_password), encoding="utf-8")
    output.chmod(0o600)
    typer.echo(f"Wrote {output} ({algorithm}).")
