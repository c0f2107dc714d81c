"""End-to-end: resume a partial manifest, hash what is missing, emit packages.

Runs the real builder against a stub artifact server; nothing leaves the
process.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from semver import Version

from enginepins.core.builder import ManifestBuilder
from enginepins.core.manifest_store import ManifestStore
from enginepins.core.packages import write_packages
from enginepins.core.urls import derive_url
from enginepins.core.versions import load_versions, save_versions
from enginepins.models.manifest import ArtifactDetails, ManifestKey
from enginepins.models.platforms import Architecture, Engine, OperatingSystem


def _seed(manifest_path: Path, artifact_server) -> str:
    """Write a manifest already holding quickwit 1.0.0 on x86_64-linux."""
    version = Version.parse("1.0.0")
    url = derive_url(Engine.QUICKWIT, version, Architecture.X86_64, OperatingSystem.LINUX)
    store = ManifestStore(manifest_path)
    store.apply(
        ManifestKey(Engine.QUICKWIT, version, Architecture.X86_64, OperatingSystem.LINUX),
        ArtifactDetails(url=url, hash=artifact_server.expected_hash(url)),
    )
    store.flush()
    return url


class TestFullPipeline:
    def test_resume_hashes_only_missing_entries(self, tmp_path, artifact_server):
        manifest_path = tmp_path / "manifest.json"
        versions_path = tmp_path / "versions.json"
        seeded_url = _seed(manifest_path, artifact_server)
        save_versions(
            versions_path, {Engine.QUICKWIT: [Version.parse("1.0.0"), Version.parse("2.0.0")]}
        )

        store = ManifestStore.load(manifest_path)
        snapshots: list[dict] = []
        original_flush = store.flush

        def observing_flush() -> None:
            original_flush()
            # every flushed file must parse as a complete manifest
            snapshots.append(json.loads(manifest_path.read_text()))

        store.flush = observing_flush

        async def run():
            async with artifact_server.client() as client:
                builder = ManifestBuilder(store, client=client, concurrency=2)
                return await builder.build(
                    load_versions(versions_path), handle_signals=False
                )

        result = asyncio.run(run())

        assert len(artifact_server.requests) == 7
        assert seeded_url not in artifact_server.requests
        assert len(result.store) == 8
        assert result.reports[0].skipped == 1
        assert result.reports[0].submitted == 7
        assert result.failed == []

        on_disk = json.loads(manifest_path.read_text())
        assert set(on_disk["quickwit"]) == {"1.0.0", "2.0.0"}
        for version, by_arch in on_disk["quickwit"].items():
            for arch, by_os in by_arch.items():
                for os_name, entry in by_os.items():
                    expected = derive_url(
                        Engine.QUICKWIT,
                        Version.parse(version),
                        Architecture(arch),
                        OperatingSystem(os_name),
                    )
                    assert entry["url"] == expected
                    assert entry["hash"] == artifact_server.expected_hash(expected)

        # one flush per newly applied entry, plus the final flush
        assert len(snapshots) >= 7
        sizes = [
            sum(len(by_os) for by_arch in snap["quickwit"].values() for by_os in by_arch.values())
            for snap in snapshots
        ]
        assert sizes == sorted(sizes)
        assert sizes[-1] == 8

        packages = write_packages(tmp_path / "packages.json", result.store)
        assert packages["aarch64-darwin"]["quickwit_2_0_0"].version == "2.0.0"
        assert len(packages) == 4
        assert all(len(by_name) == 2 for by_name in packages.values())
