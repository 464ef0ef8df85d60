"""``sealwright cert`` — signing certificate management.

``generate`` writes a password-protectable PKCS#12 container (and
optionally the public PEM), ``info`` prints the certificate report and
``export`` writes the public certificate only.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from sealwright.config import settings
from sealwright.core.certificate_authority import (
    describe_certificate,
    export_container,
    export_public,
    format_certificate_info,
    generate_self_signed,
    load_from_path,
)
from sealwright.core.errors import SealwrightError

console = Console()

cert_app = typer.Typer(no_args_is_help=True, add_completion=False)


@cert_app.command(name="generate", help="Generate a self-signed signing certificate.")
def cert_generate_cmd(
    subject_name: str = typer.Argument(..., help="Common name for the certificate subject."),
    output: Path = typer.Option(
        ..., "--out", "-o", help="Where to write the PKCS#12 container (.pfx)."
    ),
    email: str = typer.Option(None, "--email", "-e", help="Signer e-mail address."),
    validity_years: int = typer.Option(5, "--years", "-y", help="Validity period in years."),
    password: str = typer.Option(
        None, "--password", "-p", envvar="SEALWRIGHT_CERT_PASSWORD",
        help="Password protecting the container's private key.",
    ),
    public_out: Path = typer.Option(
        None, "--public-out", help="Also write the public certificate as PEM."
    ),
) -> None:
    """Generate a self-signed RSA signing certificate."""
    try:
        with generate_self_signed(
            subject_name, email, validity_years, key_size=settings.rsa_key_size
        ) as cert:
            container = export_container(cert, password)
            public_pem = export_public(cert)
            summary = describe_certificate(cert)
    except (SealwrightError, ValueError) as exc:
        console.print(f"[bold red]Certificate generation failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(container)
    if public_out is not None:
        public_out.parent.mkdir(parents=True, exist_ok=True)
        public_out.write_text(public_pem, encoding="ascii")

    lines = [
        "[bold green]Certificate generated![/bold green]",
        "",
        f"[bold]Subject:[/bold]     {summary.subject}",
        f"[bold]Fingerprint:[/bold] {summary.fingerprint}",
        f"[bold]Valid until:[/bold] {summary.valid_until:%Y-%m-%d}",
        f"[bold]Container:[/bold]   {output}",
    ]
    if public_out is not None:
        lines.append(f"[bold]Public PEM:[/bold]  {public_out}")
    if not password:
        lines += ["", "[yellow]The container is not password protected.[/yellow]"]
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Signing Certificate[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )


@cert_app.command(name="info", help="Show certificate details.")
def cert_info_cmd(
    certificate: Path = typer.Argument(..., help="Certificate file (PEM, DER or PKCS#12)."),
    password: str = typer.Option(
        None, "--password", "-p", envvar="SEALWRIGHT_CERT_PASSWORD",
        help="Password, when the file is an encrypted container.",
    ),
) -> None:
    """Print subject, issuer, fingerprint, validity window and status."""
    try:
        with load_from_path(certificate, password, require_private_key=False) as cert:
            summary = describe_certificate(cert)
    except SealwrightError as exc:
        console.print(f"[bold red]Cannot read certificate:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(format_certificate_info(summary), markup=False, highlight=False)


@cert_app.command(name="export", help="Export the public certificate as PEM.")
def cert_export_cmd(
    certificate: Path = typer.Argument(..., help="Certificate file (PEM, DER or PKCS#12)."),
    output: Path = typer.Option(
        None, "--out", "-o", help="Where to write the PEM. Prints to stdout when omitted."
    ),
    password: str = typer.Option(
        None, "--password", "-p", envvar="SEALWRIGHT_CERT_PASSWORD",
        help="Password, when the file is an encrypted container.",
    ),
) -> None:
    """Export the public certificate (never the private key)."""
    try:
        with load_from_path(certificate, password, require_private_key=False) as cert:
            pem = export_public(cert)
    except SealwrightError as exc:
        console.print(f"[bold red]Cannot read certificate:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if output is None:
        typer.echo(pem, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(pem, encoding="ascii")
    console.print(f"[bold green]Exported[/bold green] public certificate to {output}")
