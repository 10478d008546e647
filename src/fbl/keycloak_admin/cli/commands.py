"""CLI commands.

Commands:
    fbl-keycloak actions
    fbl-keycloak run <action> <options.yaml>
"""

from __future__ import annotations

import asyncio
import os
import re
from pathlib import Path
from typing import Annotated, Any

import typer
import yaml

from fbl.keycloak_admin.client import KeycloakAuthError, KeycloakError
from fbl.keycloak_admin.errors import ActionError, ActionValidationError
from fbl.keycloak_admin.logs import configure_logging
from fbl.keycloak_admin.registry import action_ids, get_processor

# Pattern for ${VAR} and ${VAR:-default} interpolation
_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(:-([^}]*))?\}")


def _resolve_env_str(s: str) -> str:
    """Resolve environment variable placeholders in a string."""

    def repl(m: re.Match[str]) -> str:
        var = m.group(1)
        default = m.group(3)
        val = os.getenv(var)
        if val is None or val == "":
            return default if default is not None else ""
        return val

    return _ENV_PATTERN.sub(repl, s)


def _resolve_env(value: Any) -> Any:
    """Recursively resolve environment variables in a data structure."""
    if isinstance(value, str):
        return _resolve_env_str(value)
    if isinstance(value, list):
        return [_resolve_env(v) for v in value]
    if isinstance(value, dict):
        return {k: _resolve_env(v) for k, v in value.items()}
    return value


def load_options(path: str | Path) -> dict[str, Any]:
    """Load an action option bag from a YAML file with env var interpolation."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Options file not found: {path}")

    raw = yaml.safe_load(p.read_text())
    if not isinstance(raw, dict):
        raise ValueError(f"Options file must be a YAML mapping: {path}")

    return _resolve_env(raw)


def actions() -> None:
    """List the registered action ids."""
    for action_id in action_ids():
        typer.echo(action_id)


def run(
    action: Annotated[str, typer.Argument(help="Action id or alias")],
    options_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the YAML option bag",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """Validate an option bag and run a single action against Keycloak.

    Example:
        fbl-keycloak run keycloak.user.create user.yaml
    """
    configure_logging("DEBUG" if verbose else None)

    try:
        processor_cls = get_processor(action)
    except KeyError as e:
        typer.secho(str(e.args[0]), fg=typer.colors.RED, err=True)
        raise typer.Exit(2)

    try:
        options = load_options(options_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        typer.secho(f"Error loading options: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    processor = processor_cls(options)
    error: str | None = None
    try:
        asyncio.run(processor.run())
    except ActionValidationError as e:
        error = "Invalid options:\n" + "\n".join(f"  ! {v}" for v in e.violations)
    except ActionError as e:
        error = f"Action failed [{e.code}]: {e}"
    except KeycloakAuthError as e:
        error = f"Authentication failed: {e}"
    except KeycloakError as e:
        error = f"Keycloak error: {e}"

    for line in processor.snapshot.messages:
        typer.echo(line)

    if error is not None:
        typer.secho(error, fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.secho(f"\n✓ {processor.action_id}", fg=typer.colors.GREEN)


def register(app: typer.Typer) -> None:
    app.command("actions")(actions)
    app.command("run")(run)
