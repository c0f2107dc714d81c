"""Final package list — a pure re-indexing of the manifest.

Keyed by system, then by package name::

    {
      "x86_64-linux": {
        "elasticsearch_8_13_4": {"name": ..., "version": ..., "url": ..., "hash": ...},
        ...
      },
      ...
    }
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from semver import Version

from enginepins.core.jsonio import write_json_atomic
from enginepins.core.manifest_store import ManifestStore
from enginepins.models.manifest import ManifestKey, PackageAttrs
from enginepins.models.platforms import Engine, declaration_rank

logger = logging.getLogger(__name__)

Packages = dict[str, dict[str, PackageAttrs]]


def system_name(key: ManifestKey) -> str:
    """Nix system string of a key, e.g. ``aarch64-darwin``."""
    return f"{key.arch.value}-{key.os.value}"


def package_name(key: ManifestKey) -> str:
    """Flake attribute name of a key, e.g. ``opensearch_2_14_0``."""
    return f"{key.engine.value}_{str(key.version).replace('.', '_')}"


def build_packages(store: ManifestStore) -> Packages:
    """Re-index *store* by system, then by package name."""
    packages: Packages = {}
    # store iteration is sorted by (engine, version, arch, os)
    for key, details in store.items():
        packages.setdefault(system_name(key), {})[package_name(key)] = PackageAttrs(
            name=key.engine.value,
            version=str(key.version),
            url=details.url,
            hash=details.hash,
        )
    return packages


def packages_to_json(packages: Packages) -> dict[str, Any]:
    return {
        system: {name: attrs.model_dump(mode="json") for name, attrs in by_name.items()}
        for system, by_name in sorted(packages.items())
    }


def write_packages(path: Path, store: ManifestStore) -> Packages:
    """Build the package list from *store* and write it to *path*."""
    packages = build_packages(store)
    write_json_atomic(Path(path), packages_to_json(packages))
    logger.info(
        "Wrote %d packages across %d systems to %s",
        sum(len(by_name) for by_name in packages.values()),
        len(packages),
        path,
    )
    return packages


def latest_versions(store: ManifestStore, *, include_prereleases: bool = False) -> dict[Engine, Version]:
    """Newest version of each engine present in *store*.

    Pre-releases are ignored unless *include_prereleases* is set. Engines
    with no eligible version are omitted.
    """
    latest: dict[Engine, Version] = {}
    for key, _details in store.items():
        if key.version.prerelease and not include_prereleases:
            continue
        current = latest.get(key.engine)
        if current is None or key.version > current:
            latest[key.engine] = key.version
    return dict(sorted(latest.items(), key=lambda item: declaration_rank(item[0])))
