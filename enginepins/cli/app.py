"""Main Typer application — registers all CLI commands.

Entry point: ``enginepins`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from enginepins.cli.commands.build import build_cmd
from enginepins.cli.commands.packages import latest_cmd, packages_cmd
from enginepins.config import config

app = typer.Typer(
    name="enginepins",
    help="enginepins: pinned URLs and Nix hashes for search engine release artifacts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        config.log_level, "--log-level", help="Logging level (DEBUG, INFO, WARNING...)."
    ),
) -> None:
    """Configure process-wide logging before any command runs."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


# Register subcommands
app.command(name="build", help="Discover versions and build the manifest.")(build_cmd)
app.command(name="packages", help="Regenerate the package list from the manifest.")(packages_cmd)
app.command(name="latest", help="Show the newest pinned version of each engine.")(latest_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
