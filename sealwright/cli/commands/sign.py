"""``sealwright sign ARTIFACT`` — sign a package artifact.

Loads the signing certificate (PKCS#12 or PEM bundle with a private key),
streams the artifact through the configured hash, signs the digest and
writes ``<artifact>.sig`` next to the artifact.  The private key is
released as soon as signing finishes.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from sealwright.config import settings
from sealwright.core.certificate_authority import load_from_path
from sealwright.core.errors import SealwrightError
from sealwright.core.signing_engine import SigningEngine

console = Console()


def sign_cmd(
    artifact: Path = typer.Argument(
        ...,
        help="Path to the package artifact to sign.",
    ),
    certificate: Path = typer.Option(
        ...,
        "--cert",
        "-c",
        help="Signing certificate (PKCS#12 container or PEM bundle with private key).",
    ),
    password: str = typer.Option(
        None,
        "--password",
        "-p",
        envvar="SEALWRIGHT_CERT_PASSWORD",
        help="Password for the certificate's private key.",
    ),
    hash_algorithm: str = typer.Option(
        None,
        "--hash",
        help="Digest algorithm (SHA256 or SHA512). Defaults to the configured algorithm.",
    ),
) -> None:
    """Sign ARTIFACT and write ARTIFACT.sig."""
    algorithm = hash_algorithm or settings.default_hash_algorithm.value
    engine = SigningEngine(settings.signing_policy(), chunk_size=settings.hash_chunk_size)

    try:
        with load_from_path(certificate, password) as signer:
            record, sig_path = engine.sign_to_sidecar(artifact, signer, algorithm)
    except SealwrightError as exc:
        console.print(f"[bold red]Signing failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print()
    console.print(
        Panel(
            "\n".join([
                "[bold green]Package signed![/bold green]",
                "",
                f"[bold]Artifact:[/bold]    {artifact}",
                f"[bold]Signature:[/bold]   {sig_path}",
                f"[bold]Algorithm:[/bold]   {record.algorithm}",
                f"[bold]Signer:[/bold]      {record.signer.display_name}",
                f"[bold]Fingerprint:[/bold] {record.signer.certificate_fingerprint}",
            ]),
            title="[bold]Package Signature[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
