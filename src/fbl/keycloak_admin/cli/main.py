"""fbl-keycloak CLI - Main entrypoint.

Usage:
    fbl-keycloak actions
    fbl-keycloak run keycloak.user.create options.yaml
"""

from __future__ import annotations

import typer

from fbl.keycloak_admin.cli.commands import register

app = typer.Typer(
    name="fbl-keycloak",
    help="Run Keycloak admin actions outside of a flow",
    add_completion=True,
)

register(app)


def create_app() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    create_app()
