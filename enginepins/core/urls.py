"""URL Deriver — maps (engine, version, arch, os) to a release artifact URL.

This is the one place where knowledge of each vendor's download layout is
hard-coded. Layouts changed across version ranges, so each engine branches
on the version; the per-engine spelling of architectures and operating
systems comes from the static tables in :mod:`enginepins.models.platforms`.

Derivation is pure: identical inputs always give byte-identical URLs, which
is what makes skipping keys already present in the manifest safe.
"""

from __future__ import annotations

import httpx
from semver import Version

from enginepins.models.manifest import ManifestKey
from enginepins.models.platforms import (
    Architecture,
    Engine,
    OperatingSystem,
    arch_name,
    os_name,
)

_ELASTIC_LEGACY = "https://download.elastic.co/elasticsearch"
_ELASTIC_ARTIFACTS = "https://artifacts.elastic.co/downloads/elasticsearch"
_OPENSEARCH_RELEASES = "https://artifacts.opensearch.org/releases/core/opensearch"
_QUICKWIT_RELEASES = "https://github.com/quickwit-oss/quickwit/releases/download"


class ArtifactUrlError(ValueError):
    """Raised when a derived URL is not a valid absolute https URL.

    Indicates a bug in the derivation tables, never bad input: every
    member of the enumerated domain must produce a well-formed URL.
    """


def _elasticsearch_url(version: Version, arch: Architecture, os: OperatingSystem) -> str:
    v = str(version)
    if version.major <= 1:
        return f"{_ELASTIC_LEGACY}/elasticsearch/elasticsearch-{v}.tar.gz"
    if version.major <= 4:
        return (
            f"{_ELASTIC_LEGACY}/release/org/elasticsearch/distribution/tar/"
            f"elasticsearch/{v}/elasticsearch-{v}.tar.gz"
        )
    if version.major <= 6:
        return f"{_ELASTIC_ARTIFACTS}/elasticsearch-{v}.tar.gz"
    system = os_name(Engine.ELASTICSEARCH, os)
    if version.major == 7:
        # 7.x is pinned to the x86_64 build on every architecture
        return f"{_ELASTIC_ARTIFACTS}/elasticsearch-{v}-{system}-x86_64.tar.gz"
    machine = arch_name(Engine.ELASTICSEARCH, arch)
    return f"{_ELASTIC_ARTIFACTS}/elasticsearch-{v}-{system}-{machine}.tar.gz"


def _opensearch_url(version: Version, arch: Architecture, os: OperatingSystem) -> str:
    # OpenSearch publishes the minimal distribution for linux only
    v = str(version)
    machine = arch_name(Engine.OPENSEARCH, arch)
    return f"{_OPENSEARCH_RELEASES}/{v}/opensearch-min-{v}-linux-{machine}.tar.gz"


def _quickwit_url(version: Version, arch: Architecture, os: OperatingSystem) -> str:
    v = str(version)
    machine = arch_name(Engine.QUICKWIT, arch)
    system = os_name(Engine.QUICKWIT, os)
    return f"{_QUICKWIT_RELEASES}/v{v}/quickwit-v{v}-{machine}-{system}.tar.gz"


_DERIVERS = {
    Engine.ELASTICSEARCH: _elasticsearch_url,
    Engine.OPENSEARCH: _opensearch_url,
    Engine.QUICKWIT: _quickwit_url,
}


def derive_url(
    engine: Engine,
    version: Version,
    arch: Architecture,
    os: OperatingSystem,
) -> str:
    """Return the download URL of the artifact for one manifest key.

    Raises
    ------
    ArtifactUrlError
        If the derived string does not parse as an absolute https URL.
    """
    raw = _DERIVERS[engine](version, arch, os)
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL as exc:
        raise ArtifactUrlError(f"Derived an unparseable URL {raw!r}: {exc}") from exc
    if url.scheme != "https" or not url.host:
        raise ArtifactUrlError(f"Derived a non-absolute https URL: {raw!r}")
    return str(url)


def url_for_key(key: ManifestKey) -> str:
    """Convenience wrapper of :func:`derive_url` for a :class:`ManifestKey`."""
    return derive_url(key.engine, key.version, key.arch, key.os)
