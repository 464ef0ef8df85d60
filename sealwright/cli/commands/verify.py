"""``sealwright verify ARTIFACT`` — verify a package artifact.

Reads ``<artifact>.sig`` (or ``--signature``), recomputes the content
digest, checks the RSA signature and consults the trust store.  Exits
with code 1 and names the failing check when the artifact is rejected.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from sealwright.cli.commands.trust import resolve_trust_store
from sealwright.config import TrustStoreBackend, settings
from sealwright.core.errors import MalformedSignatureError, SealwrightError
from sealwright.core.signature_codec import decode
from sealwright.core.verification_engine import VerificationEngine
from sealwright.models.verification import TrustPolicy, VerificationOutcome

console = Console()


def _print_outcome(artifact: Path, outcome: VerificationOutcome) -> None:
    if not outcome.signing_enforced:
        console.print(
            "[bold yellow]Package signing is disabled; "
            "nothing was verified.[/bold yellow]"
        )
        return

    if not outcome.is_valid:
        check = outcome.failure.value if outcome.failure else "unknown"
        console.print(f"[bold red]Verification failed ({check}):[/bold red] {outcome.message}")
        for error in outcome.errors:
            console.print(f"  [red]- {error}[/red]")
        return

    signer = outcome.record.signer if outcome.record else None
    lines = [
        "[bold green]Signature verified![/bold green]",
        "",
        f"[bold]Artifact:[/bold]    {artifact}",
    ]
    if signer is not None:
        lines += [
            f"[bold]Algorithm:[/bold]   {outcome.record.algorithm}",
            f"[bold]Signer:[/bold]      {signer.display_name}",
            f"[bold]Fingerprint:[/bold] {signer.certificate_fingerprint}",
            f"[bold]Signed at:[/bold]   {outcome.record.timestamp:%Y-%m-%d %H:%M:%S} UTC",
        ]
    trusted = "[green]yes[/green]" if outcome.is_trusted else "[yellow]no[/yellow]"
    lines.append(f"[bold]Trusted:[/bold]     {trusted}")
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Package Verification[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )


def verify_cmd(
    artifact: Path = typer.Argument(
        ...,
        help="Path to the package artifact to verify.",
    ),
    signature: Path = typer.Option(
        None,
        "--signature",
        "-s",
        help="Signature file. Defaults to ARTIFACT.sig.",
    ),
    require_trusted: bool = typer.Option(
        None,
        "--require-trusted/--allow-untrusted",
        help="Require the signer to be in the trust store. "
        "Defaults to SEALWRIGHT_REQUIRE_TRUSTED_CERTIFICATES.",
    ),
    store_path: Path = typer.Option(
        None, "--store", help="Trust store location. Defaults to SEALWRIGHT_TRUST_STORE_PATH."
    ),
    backend: TrustStoreBackend = typer.Option(
        None, "--backend", help="Trust store backend. Defaults to SEALWRIGHT_TRUST_STORE_BACKEND."
    ),
) -> None:
    """Verify ARTIFACT against its detached signature."""
    trust_policy = settings.trust_policy()
    if require_trusted is not None:
        trust_policy = TrustPolicy(
            require_trusted_certificate=require_trusted,
            reject_expired_certificates=trust_policy.reject_expired_certificates,
        )

    try:
        engine = VerificationEngine(
            resolve_trust_store(store_path, backend),
            settings.signing_policy(),
            chunk_size=settings.hash_chunk_size,
        )
        if signature is None:
            outcome = engine.verify_artifact(artifact, trust_policy)
        else:
            try:
                data = signature.read_bytes()
            except OSError as exc:
                raise MalformedSignatureError(
                    f"cannot read signature file: {exc}", source=str(signature)
                ) from exc
            record = decode(data, source=str(signature))
            outcome = engine.verify(artifact, record, trust_policy)
    except SealwrightError as exc:
        console.print(f"[bold red]Verification error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    _print_outcome(artifact, outcome)
    if not outcome.is_valid:
        raise typer.Exit(code=1)
