"""``enginepins packages`` and ``enginepins latest`` — offline manifest views."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from enginepins.config import config
from enginepins.core.manifest_store import ManifestError, ManifestStore
from enginepins.core.packages import latest_versions, package_name, write_packages

console = Console()


def _load(manifest_path: Path) -> ManifestStore:
    if not manifest_path.exists():
        console.print(f"[bold red]Manifest not found:[/bold red] {manifest_path}")
        raise typer.Exit(code=1)
    try:
        return ManifestStore.load(manifest_path)
    except ManifestError as exc:
        console.print(f"[bold red]Manifest error:[/bold red] {exc}")
        raise typer.Exit(code=1)


def packages_cmd(
    manifest_path: Path = typer.Option(
        config.manifest_path, "--manifest", "-m", help="Path to the manifest JSON file."
    ),
    packages_path: Path = typer.Option(
        config.packages_path, "--packages", "-p", help="Path to the package list output."
    ),
) -> None:
    """Regenerate the package list from an existing manifest (no network)."""
    store = _load(manifest_path)
    packages = write_packages(packages_path, store)
    count = sum(len(by_name) for by_name in packages.values())
    console.print(
        f"[green]Wrote {count} packages for {len(packages)} systems to {packages_path}[/green]"
    )


def latest_cmd(
    manifest_path: Path = typer.Option(
        config.manifest_path, "--manifest", "-m", help="Path to the manifest JSON file."
    ),
    prereleases: bool = typer.Option(
        False, "--prereleases", help="Consider pre-release versions too."
    ),
) -> None:
    """Show the newest pinned version of each engine."""
    store = _load(manifest_path)
    latest = latest_versions(store, include_prereleases=prereleases)
    if not latest:
        console.print("[dim]No versions pinned.[/dim]")
        return

    table = Table(title="Latest pinned versions")
    table.add_column("Engine", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Package")
    for engine, version in latest.items():
        key = next(k for k in store if k.engine is engine and k.version == version)
        table.add_row(engine.value, str(version), package_name(key))
    console.print(table)
