"""Sealwright CLI — Typer-based command-line interface.

Provides the ``sealwright`` command with subcommands for signing and
verifying package artifacts, managing signing certificates, and
maintaining the certificate trust store.

All output uses Rich for formatted terminal display.
"""
