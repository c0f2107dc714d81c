"""Shared test fixtures for enginepins."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest
from semver import Version

from enginepins.core.hasher import nix_sha256
from enginepins.core.manifest_store import ManifestStore
from enginepins.models.manifest import ArtifactDetails, ManifestKey
from enginepins.models.platforms import Architecture, Engine, OperatingSystem


class StubArtifactServer:
    """``httpx.MockTransport`` handler serving deterministic artifact bodies.

    Every GET is counted per URL; the body is derived from the URL so each
    artifact hashes differently. URLs listed in ``statuses`` answer with
    that status instead.
    """

    def __init__(self) -> None:
        self.requests: list[str] = []
        self.statuses: dict[str, int] = {}
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    @staticmethod
    def body_for(url: str) -> bytes:
        return f"artifact:{url}".encode() * 64

    def expected_hash(self, url: str) -> str:
        return nix_sha256(self.body_for(url))

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        status = self.statuses.get(url, 200)
        if status != 200:
            return httpx.Response(status, content=b"not found")
        return httpx.Response(200, content=self.body_for(url))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), follow_redirects=True)


@pytest.fixture
def artifact_server() -> StubArtifactServer:
    """Provide a fresh stub artifact server."""
    return StubArtifactServer()


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    """Provide a manifest path inside a temp directory."""
    return tmp_path / "manifest.json"


@pytest.fixture
def store(manifest_path: Path) -> ManifestStore:
    """Provide an empty ManifestStore backed by a temp file."""
    return ManifestStore(manifest_path)


@pytest.fixture
def make_key() -> Callable[..., ManifestKey]:
    """Factory fixture: build a ManifestKey with sensible defaults."""

    def _factory(
        engine: Engine = Engine.QUICKWIT,
        version: str = "1.0.0",
        arch: Architecture = Architecture.X86_64,
        os: OperatingSystem = OperatingSystem.LINUX,
    ) -> ManifestKey:
        return ManifestKey(engine, Version.parse(version), arch, os)

    return _factory


@pytest.fixture
def details() -> ArtifactDetails:
    """A ready-made ArtifactDetails."""
    return ArtifactDetails(
        url="https://example.org/artifact.tar.gz",
        hash="0mdqa9w1p6cmli6976v4wi0sw9r4p5prkj7lzfd1877wk11c9c73",
    )
