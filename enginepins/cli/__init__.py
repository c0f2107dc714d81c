"""enginepins CLI — Typer-based command-line interface.

Provides the ``enginepins`` command with subcommands to build the manifest,
regenerate the package list, and show the latest pinned versions.

All output uses Rich for formatted terminal display.
"""
