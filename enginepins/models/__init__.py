"""enginepins data models — enums, frozen Pydantic v2 records, key tuples."""

from enginepins.models.manifest import (
    ArtifactDetails,
    EngineReport,
    ManifestKey,
    PackageAttrs,
)
from enginepins.models.platforms import (
    ARCH_NAMES,
    OS_NAMES,
    Architecture,
    Engine,
    OperatingSystem,
    arch_name,
    declaration_rank,
    os_name,
)

__all__ = [
    # platforms
    "Engine",
    "Architecture",
    "OperatingSystem",
    "ARCH_NAMES",
    "OS_NAMES",
    "arch_name",
    "os_name",
    "declaration_rank",
    # manifest
    "ManifestKey",
    "ArtifactDetails",
    "PackageAttrs",
    "EngineReport",
]
