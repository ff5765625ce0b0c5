from __future__ import annotations

import typer

from ... import __version__
from .commands import raise_exit, register_discord_commands

app = typer.Typer(add_completion=False)


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"discord-bot-template {__version__}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    return


register_discord_commands(app, raise_exit=raise_exit)


def main() -> None:
    """Entrypoint for CLI execution."""
    app()
