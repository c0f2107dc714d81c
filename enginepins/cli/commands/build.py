"""``enginepins build`` — discover versions, hash artifacts, write outputs.

Loads the versions cache (or discovers versions from GitHub when the cache
is missing or ``--update-versions`` is given), resumes the manifest,
fetches and hashes every missing artifact, then always writes the package
list, whether the run completed or was interrupted.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from enginepins.config import config
from enginepins.core.builder import BuildResult, ManifestBuilder
from enginepins.core.manifest_store import ManifestError, ManifestStore
from enginepins.core.packages import write_packages
from enginepins.core.urls import ArtifactUrlError
from enginepins.core.versions import EngineVersions, VersionCacheError, load_versions
from enginepins.sources.github import VersionSourceError, refresh_versions

console = Console()


def build_cmd(
    update_versions: bool = typer.Option(
        False,
        "--update-versions",
        help="Refresh the version lists from GitHub instead of the cache file.",
    ),
    manifest_path: Path = typer.Option(
        config.manifest_path, "--manifest", "-m", help="Path to the manifest JSON file."
    ),
    versions_path: Path = typer.Option(
        config.versions_path, "--versions", "-v", help="Path to the versions cache file."
    ),
    packages_path: Path = typer.Option(
        config.packages_path, "--packages", "-p", help="Path to the package list output."
    ),
    concurrency: int = typer.Option(
        config.concurrency,
        "--concurrency",
        "-c",
        min=1,
        help="Fetch-and-hash operations in flight per engine.",
    ),
) -> None:
    """Build the manifest and the package list.

    Per-artifact download failures are reported but do not fail the run;
    the next run retries them.
    """
    try:
        store = ManifestStore.load(manifest_path)
        engine_versions = _engine_versions(versions_path, update_versions)
        result = asyncio.run(_build(store, engine_versions, concurrency))
    except (ManifestError, VersionCacheError, VersionSourceError, ArtifactUrlError) as exc:
        console.print(f"[bold red]Build failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    try:
        write_packages(packages_path, result.store)
    except OSError as exc:
        console.print(f"[bold red]Could not write package list:[/bold red] {exc}")
        raise typer.Exit(code=1)

    _print_summary(result, manifest_path, packages_path)


def _engine_versions(versions_path: Path, update_versions: bool) -> EngineVersions:
    if update_versions or not versions_path.exists():
        console.print(f"[dim]Discovering versions from GitHub into {versions_path}...[/dim]")
        return asyncio.run(
            refresh_versions(
                versions_path,
                api_url=config.github_api_url,
                token=config.github_token,
            )
        )
    return load_versions(versions_path)


async def _build(
    store: ManifestStore, engine_versions: EngineVersions, concurrency: int
) -> BuildResult:
    builder = ManifestBuilder(
        store,
        concurrency=concurrency,
        timeout_seconds=config.request_timeout_seconds,
    )
    return await builder.build(engine_versions)


def _print_summary(result: BuildResult, manifest_path: Path, packages_path: Path) -> None:
    table = Table(title="Manifest build")
    table.add_column("Engine", style="cyan")
    table.add_column("Combinations", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Submitted", justify="right", style="green")
    table.add_column("Failed", justify="right")

    for report in result.reports:
        failed = f"[red]{len(report.failed)}[/red]" if report.failed else "0"
        table.add_row(
            report.engine.value,
            str(report.total),
            str(report.skipped),
            str(report.submitted),
            failed,
        )

    console.print()
    console.print(table)
    for url in result.failed:
        console.print(f"  [yellow]not pinned:[/yellow] {url}")
    if result.interrupted:
        console.print("[yellow]Interrupted; manifest saved and resumable.[/yellow]")
    console.print(f"[bold]Manifest:[/bold] {manifest_path} ({len(result.store)} entries)")
    console.print(f"[bold]Packages:[/bold] {packages_path}")
