"""Manifest Store — the durable, resumable state of a build.

In memory the manifest is one flat mapping ``ManifestKey -> ArtifactDetails``;
the nested ``engine -> version -> arch -> os -> {url, hash}`` shape exists
only in the JSON file and is produced and consumed at the serialization
boundary.

Design:
- Insert-if-absent: ``apply()`` never overwrites an existing key.
- Whole-file flush: every flush writes the complete manifest to a temp
  file and atomically replaces the old one, so the file on disk always
  parses.
- Single update path: during a build only :class:`ManifestWriter` mutates
  the store, consuming completed results from a queue and flushing after
  every new entry.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from semver import Version

from enginepins.core.jsonio import write_json_atomic
from enginepins.models.manifest import ArtifactDetails, ManifestKey
from enginepins.models.platforms import Architecture, Engine, OperatingSystem

logger = logging.getLogger(__name__)


class ManifestError(RuntimeError):
    """Raised when the manifest file cannot be read or written."""


class ManifestCorruptError(ManifestError):
    """Raised when an existing manifest file does not deserialize.

    The manifest is this tool's own output; a file that does not parse
    points at a bug or outside tampering and is never silently discarded.
    """


class ManifestClosedError(ManifestError):
    """Raised when an update is submitted after the update path closed."""


class ManifestStore:
    """Flat, insert-only manifest with whole-file JSON persistence.

    Parameters
    ----------
    path:
        Location of the manifest JSON file.
    entries:
        Initial entries, e.g. from a previous run.
    """

    def __init__(
        self,
        path: Path,
        entries: dict[ManifestKey, ArtifactDetails] | None = None,
    ) -> None:
        self._path = Path(path)
        self._entries: dict[ManifestKey, ArtifactDetails] = dict(entries or {})

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path) -> ManifestStore:
        """Load the manifest at *path*, or start empty if there is none.

        Raises
        ------
        ManifestCorruptError
            If the file exists but does not deserialize.
        ManifestError
            If the file exists but cannot be read.
        """
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No manifest at %s, starting empty", path)
            return cls(path)
        except OSError as exc:
            raise ManifestError(f"Manifest unreadable: {path}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ManifestCorruptError(f"Manifest is not valid JSON: {path}") from exc

        store = cls(path, cls._entries_from_nested(data, path))
        logger.info("Loaded %d manifest entries from %s", len(store), path)
        return store

    @staticmethod
    def _entries_from_nested(
        data: Any, path: Path
    ) -> dict[ManifestKey, ArtifactDetails]:
        if not isinstance(data, dict):
            raise ManifestCorruptError(f"Manifest must be a JSON object: {path}")

        entries: dict[ManifestKey, ArtifactDetails] = {}
        try:
            for engine_name, by_version in data.items():
                engine = Engine(engine_name)
                for version_str, by_arch in _as_object(by_version).items():
                    version = Version.parse(version_str)
                    for arch_name, by_os in _as_object(by_arch).items():
                        arch = Architecture(arch_name)
                        for os_name, details in _as_object(by_os).items():
                            key = ManifestKey(engine, version, arch, OperatingSystem(os_name))
                            entries[key] = ArtifactDetails.model_validate(details)
        except (TypeError, ValueError, ValidationError) as exc:
            raise ManifestCorruptError(f"Manifest has an invalid entry: {path}: {exc}") from exc
        return entries

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[ManifestKey]:
        return iter(sorted(self._entries, key=ManifestKey.sort_key))

    def get(self, key: ManifestKey) -> ArtifactDetails | None:
        return self._entries.get(key)

    def items(self) -> list[tuple[ManifestKey, ArtifactDetails]]:
        """Entries in deterministic key order."""
        return [(key, self._entries[key]) for key in self]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def apply(self, key: ManifestKey, details: ArtifactDetails) -> bool:
        """Insert *details* for *key* unless the key is already present.

        Returns ``True`` if the entry was inserted.
        """
        if key in self._entries:
            existing = self._entries[key]
            if existing != details:
                logger.warning(
                    "Keeping existing manifest entry for %s (%s) over %s",
                    key,
                    existing.hash,
                    details.hash,
                )
            return False
        self._entries[key] = details
        return True

    def to_nested(self) -> dict[str, Any]:
        """Group the flat entries into the nested on-disk shape."""
        nested: dict[str, Any] = {}
        for key, details in self.items():
            (
                nested.setdefault(key.engine.value, {})
                .setdefault(str(key.version), {})
                .setdefault(key.arch.value, {})
            )[key.os.value] = details.model_dump(mode="json")
        return nested

    def flush(self) -> None:
        """Atomically replace the manifest file with the current entries."""
        try:
            write_json_atomic(self._path, self.to_nested())
        except OSError as exc:
            raise ManifestError(f"Failed to write manifest: {self._path}") from exc
        logger.debug("Flushed %d entries to %s", len(self), self._path)


def _as_object(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"expected a JSON object, got {type(value).__name__}")
    return value


# ---------------------------------------------------------------------------
# Single-writer update path
# ---------------------------------------------------------------------------


class ManifestWriter:
    """Sole consumer of completed (key, details) results during a build.

    Workers call :meth:`submit`; :meth:`run` applies each result to the
    store and flushes after every new entry. :meth:`close` ends the stream:
    results queued before it are still applied, the store is flushed one
    last time, and :meth:`run` returns the store.
    """

    def __init__(self, store: ManifestStore) -> None:
        self._store = store
        self._queue: asyncio.Queue[tuple[ManifestKey, ArtifactDetails] | None] = (
            asyncio.Queue()
        )
        self._closed = False
        self.applied = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, key: ManifestKey, details: ArtifactDetails) -> None:
        """Queue a completed result for the store.

        Raises
        ------
        ManifestClosedError
            If :meth:`close` was already called.
        """
        if self._closed:
            raise ManifestClosedError(f"Manifest update path closed; dropping {key}")
        self._queue.put_nowait((key, details))

    def close(self) -> None:
        """Stop accepting results; idempotent."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def run(self) -> ManifestStore:
        """Apply queued results until closed, then flush once more.

        If applying or flushing fails, the update path closes itself and
        the error propagates; later :meth:`submit` calls raise
        :class:`ManifestClosedError`.
        """
        failed = False
        try:
            while True:
                item = await self._queue.get()
                if item is None:
                    break
                key, details = item
                if self._store.apply(key, details):
                    logger.info("Updating manifest for %s", key)
                    self._store.flush()
                    self.applied += 1
        except Exception:
            failed = True
            self._closed = True
            raise
        finally:
            if not failed:
                self._store.flush()
        return self._store
