# cruiser_cli/main.py


import typer
from cruiser_cli.auth.commands import app as auth_app
from cruiser_cli.users.commands import app as users_app
from cruiser_cli.roles.commands import app as roles_app
from cruiser_cli.policy.commands import app as policy_app
from cruiser_cli.setup.commands import app as setup_app
from cruiser_cli.activity.commands import app as activity_app

app = typer.Typer(help="Cruiser Aviation access control client")
app.add_typer(auth_app, name="auth")
app.add_typer(users_app, name="users")
app.add_typer(roles_app, name="roles")
app.add_typer(policy_app, name="policy")
app.add_typer(setup_app, name="setup")
app.add_typer(activity_app, name="activity")

if __name__ == "__main__":
    app()
