"""``sealwright trust`` — manage the certificate trust store.

The backend and location default to ``SEALWRIGHT_TRUST_STORE_BACKEND`` and
``SEALWRIGHT_TRUST_STORE_PATH``; ``--store`` and ``--backend`` override
them per invocation.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from sealwright.config import TrustStoreBackend, settings
from sealwright.core.certificate_authority import load_from_path
from sealwright.core.errors import SealwrightError
from sealwright.core.trust_store import TrustStore, open_trust_store
from sealwright.models.signatures import normalize_fingerprint

console = Console()

trust_app = typer.Typer(no_args_is_help=True, add_completion=False)

_STORE_HELP = "Trust store location. Defaults to SEALWRIGHT_TRUST_STORE_PATH."
_BACKEND_HELP = "Trust store backend. Defaults to SEALWRIGHT_TRUST_STORE_BACKEND."


def resolve_trust_store(
    store_path: Path | None = None,
    backend: TrustStoreBackend | None = None,
) -> TrustStore:
    """Open the configured trust store with optional per-command overrides."""
    overrides: dict[str, object] = {}
    if store_path is not None:
        overrides["trust_store_path"] = store_path
    if backend is not None:
        overrides["trust_store_backend"] = backend
    return open_trust_store(settings.model_copy(update=overrides))


@trust_app.command(name="add", help="Trust the certificate in a file.")
def trust_add_cmd(
    certificate: Path = typer.Argument(..., help="Certificate file (PEM, DER or PKCS#12)."),
    password: str = typer.Option(
        None, "--password", "-p", envvar="SEALWRIGHT_CERT_PASSWORD",
        help="Password, when the file is an encrypted container.",
    ),
    store_path: Path = typer.Option(None, "--store", help=_STORE_HELP),
    backend: TrustStoreBackend = typer.Option(None, "--backend", help=_BACKEND_HELP),
) -> None:
    """Add a certificate to the trust store (public material only)."""
    try:
        store = resolve_trust_store(store_path, backend)
        with load_from_path(certificate, password, require_private_key=False) as cert:
            entry = store.add(cert)
    except SealwrightError as exc:
        console.print(f"[bold red]Cannot trust certificate:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(f"[bold green]Trusted[/bold green] {entry.subject}")
    console.print(f"  [dim]fingerprint:[/dim] {entry.fingerprint}")
    if entry.is_expired():
        console.print("  [yellow]warning: this certificate has already expired[/yellow]")


@trust_app.command(name="remove", help="Remove a certificate from the trust store.")
def trust_remove_cmd(
    fingerprint: str = typer.Argument(..., help="SHA-256 fingerprint of the certificate."),
    store_path: Path = typer.Option(None, "--store", help=_STORE_HELP),
    backend: TrustStoreBackend = typer.Option(None, "--backend", help=_BACKEND_HELP),
) -> None:
    """Remove a certificate.  Removing an unknown fingerprint is not an error."""
    fp = normalize_fingerprint(fingerprint)
    try:
        store = resolve_trust_store(store_path, backend)
        present = fp in store
        store.remove(fp)
    except SealwrightError as exc:
        console.print(f"[bold red]Cannot update trust store:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if present:
        console.print(f"[bold green]Removed[/bold green] {fp}")
    else:
        console.print(f"[dim]Not in trust store:[/dim] {fp}")


@trust_app.command(name="list", help="List trusted certificates.")
def trust_list_cmd(
    store_path: Path = typer.Option(None, "--store", help=_STORE_HELP),
    backend: TrustStoreBackend = typer.Option(None, "--backend", help=_BACKEND_HELP),
) -> None:
    """List trusted certificates in insertion order."""
    try:
        entries = resolve_trust_store(store_path, backend).list()
    except SealwrightError as exc:
        console.print(f"[bold red]Cannot read trust store:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not entries:
        console.print("[dim]No trusted certificates.[/dim]")
        return

    table = Table(title="Trusted Certificates")
    table.add_column("Fingerprint", style="cyan", no_wrap=True)
    table.add_column("Subject")
    table.add_column("Valid Until")
    table.add_column("Status", justify="center")

    for entry in entries:
        status = "[red]EXPIRED[/red]" if entry.is_expired() else "[green]Valid[/green]"
        table.add_row(
            entry.fingerprint[:16] + "...",
            entry.subject,
            f"{entry.valid_until:%Y-%m-%d}",
            status,
        )

    console.print(table)
