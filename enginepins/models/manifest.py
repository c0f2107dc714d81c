"""Manifest data model — keys, artifact details, package attributes, reports."""

from __future__ import annotations

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field
from semver import Version

from enginepins.models.platforms import (
    Architecture,
    Engine,
    OperatingSystem,
    declaration_rank,
)


class ManifestKey(NamedTuple):
    """Unique identity of one artifact variant."""

    engine: Engine
    version: Version
    arch: Architecture
    os: OperatingSystem

    def sort_key(self) -> tuple[int, Version, int, int]:
        """Ordering used for deterministic serialization."""
        return (
            declaration_rank(self.engine),
            self.version,
            declaration_rank(self.arch),
            declaration_rank(self.os),
        )

    def __str__(self) -> str:
        return f"{self.engine.value} {self.version} {self.arch.value} {self.os.value}"


class ArtifactDetails(BaseModel):
    """Download URL and Nix base-32 SHA-256 of one release artifact.

    Content-derived and deterministic: once recorded for a key it is
    never replaced.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    hash: str = Field(min_length=1)


class PackageAttrs(BaseModel):
    """One entry of the final package list (`name`, `version`, `url`, `hash`)."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    url: str
    hash: str


class EngineReport(BaseModel):
    """Outcome of one engine's pass over its version × arch × os space.

    ``submitted`` counts results handed to the manifest update path; the
    store may still reject one as a duplicate. ``failed`` lists the URLs whose fetch or hash failed this run; they
    are absent from the manifest and will be retried by the next run.
    """

    model_config = ConfigDict(frozen=True)

    engine: Engine
    total: int = 0
    skipped: int = 0
    submitted: int = 0
    failed: list[str] = Field(default_factory=list)
    cancelled: bool = False
