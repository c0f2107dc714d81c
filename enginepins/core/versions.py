"""Version Extractor and the versions cache file.

Tag and release names are free-form ("v1.2.3", "OpenSearch 2.4.0",
"v5.0.0.Beta1"). Known pre-release spellings are normalized first, then
the first embedded ``MAJOR.MINOR.PATCH[-prerelease]`` is taken. Names with
no such pattern are dropped, never fatal.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from semver import Version

from enginepins.core.jsonio import write_json_atomic
from enginepins.models.platforms import Engine, declaration_rank

logger = logging.getLogger(__name__)

EngineVersions = dict[Engine, list[Version]]

_VERSION_RE = re.compile(r"(\d+\.\d+\.\d+(?:-[a-z0-9]+)?)")

# Applied in order before matching
_PRERELEASE_MARKERS: tuple[tuple[str, str], ...] = (
    (".Beta", "-beta"),
    (".RC", "-rc"),
)


class VersionCacheError(RuntimeError):
    """Raised when the versions cache file cannot be read or written."""


def extract_version(raw_name: str) -> Version | None:
    """Extract the first semantic version embedded in *raw_name*.

    >>> str(extract_version("v1.2.3"))
    '1.2.3'
    >>> extract_version("some-beta-prerelease-1") is None
    True
    """
    normalized = raw_name
    for marker, replacement in _PRERELEASE_MARKERS:
        normalized = normalized.replace(marker, replacement)

    match = _VERSION_RE.search(normalized)
    if match is None:
        return None
    try:
        return Version.parse(match.group(1))
    except ValueError:
        # e.g. leading zeros in a numeric component
        logger.debug("Discarding non-semver candidate %r from %r", match.group(1), raw_name)
        return None


def versions_from_names(names: Iterable[str]) -> list[Version]:
    """Extract, de-duplicate and sort the versions found in *names*."""
    found = {v for v in (extract_version(name) for name in names) if v is not None}
    return sorted(found)


# ---------------------------------------------------------------------------
# Cache file: {"engine": ["1.0.0", ...], ...}
# ---------------------------------------------------------------------------


def load_versions(path: Path) -> EngineVersions:
    """Read the versions cache file.

    Raises
    ------
    VersionCacheError
        If the file is unreadable, not valid JSON, or holds an unknown
        engine or an unparseable version.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise VersionCacheError(f"Versions cache unreadable: {path}") from exc
    except json.JSONDecodeError as exc:
        raise VersionCacheError(f"Versions cache is not valid JSON: {path}") from exc

    if not isinstance(data, dict):
        raise VersionCacheError(f"Versions cache must be a JSON object: {path}")

    engine_versions: EngineVersions = {}
    for engine_name, raw_versions in data.items():
        try:
            engine = Engine(engine_name)
        except ValueError as exc:
            raise VersionCacheError(f"Unknown engine {engine_name!r} in {path}") from exc
        if not isinstance(raw_versions, list):
            raise VersionCacheError(f"Versions for {engine_name!r} must be a list: {path}")
        try:
            engine_versions[engine] = sorted(Version.parse(v) for v in raw_versions)
        except (TypeError, ValueError) as exc:
            raise VersionCacheError(
                f"Unparseable version for {engine_name!r} in {path}: {exc}"
            ) from exc

    logger.info(
        "Loaded cached versions from %s (%s)",
        path,
        ", ".join(f"{e.value}={len(v)}" for e, v in engine_versions.items()),
    )
    return engine_versions


def save_versions(path: Path, engine_versions: EngineVersions) -> None:
    """Write *engine_versions* to the cache file, engines in declaration order."""
    payload = {
        engine.value: [str(v) for v in sorted(versions)]
        for engine, versions in sorted(
            engine_versions.items(), key=lambda item: declaration_rank(item[0])
        )
    }
    try:
        write_json_atomic(Path(path), payload)
    except OSError as exc:
        raise VersionCacheError(f"Failed to write versions cache: {path}") from exc
