"""Main Typer application — imports and registers all CLI commands.

Entry point: ``sealwright`` (configured via pyproject.toml project.scripts).

Commands: sign, verify, cert (generate, info, export), trust (add, remove, list).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from sealwright import __version__
from sealwright.cli.commands.cert import cert_app
from sealwright.cli.commands.sign import sign_cmd
from sealwright.cli.commands.trust import trust_app
from sealwright.cli.commands.verify import verify_cmd
from sealwright.config import settings

app = typer.Typer(
    name="sealwright",
    help="Sealwright: package signing and trust verification.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="sign", help="Sign a package artifact and write its .sig sidecar.")(sign_cmd)
app.command(name="verify", help="Verify a package artifact against its signature.")(verify_cmd)
app.add_typer(cert_app, name="cert", help="Generate, inspect and export signing certificates.")
app.add_typer(trust_app, name="trust", help="Manage the certificate trust store.")


def configure_logging(level: str) -> None:
    """Route library logging through Rich on stderr at *level*."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"sealwright {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        settings.log_level,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Sealwright: package signing and trust verification."""
    configure_logging(log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
