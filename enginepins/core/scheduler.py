"""Concurrency Scheduler — one engine's pass over version × arch × os.

Combinations are visited version-major: every variant of an early version
before any variant of a later one. Variants of one version often share an
artifact URL, so this order turns later variants into memo hits instead
of fresh downloads. It is a performance heuristic only; results may reach
the manifest in any order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence

from semver import Version

from enginepins.core.hasher import ArtifactFetchError
from enginepins.core.interrupt import CancellationToken
from enginepins.core.manifest_store import ManifestClosedError, ManifestStore, ManifestWriter
from enginepins.core.memo import FetchHash, HashMemoizer
from enginepins.core.urls import url_for_key
from enginepins.models.manifest import ArtifactDetails, EngineReport, ManifestKey
from enginepins.models.platforms import Architecture, Engine, OperatingSystem

logger = logging.getLogger(__name__)


def iter_keys(engine: Engine, versions: Sequence[Version]) -> Iterator[ManifestKey]:
    """Yield every manifest key of *engine*, version-major."""
    for version in versions:
        for arch in Architecture:
            for os in OperatingSystem:
                yield ManifestKey(engine, version, arch, os)


class EngineScheduler:
    """Fetches and hashes the artifacts of one engine that the manifest lacks.

    Parameters
    ----------
    engine:
        The engine to process.
    versions:
        Its discovered versions, ascending.
    store:
        The manifest, consulted read-only to skip keys already present.
    writer:
        The single update path that completed results are submitted to.
    fetch:
        Coroutine function ``url -> hash``; wrapped in a per-pass
        :class:`HashMemoizer`.
    token:
        Checked before each new unit of work.
    concurrency:
        Maximum fetch-and-hash units in flight at once.
    """

    def __init__(
        self,
        engine: Engine,
        versions: Sequence[Version],
        store: ManifestStore,
        writer: ManifestWriter,
        fetch: FetchHash,
        token: CancellationToken,
        concurrency: int = 4,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.engine = engine
        self._versions = list(versions)
        self._store = store
        self._writer = writer
        self._token = token
        self._concurrency = concurrency
        self.memo = HashMemoizer(fetch)

        self._total = 0
        self._skipped = 0
        self._submitted = 0
        self._fatal: BaseException | None = None
        self._failed: list[str] = []

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------

    async def run(self) -> EngineReport:
        """Process every missing key; return the pass report.

        Per-artifact failures are logged and recorded in the report. If the
        task running this coroutine is cancelled, in-flight units and
        fetches are cancelled before the cancellation propagates.
        """
        slots = asyncio.Semaphore(self._concurrency)
        in_flight: set[asyncio.Task[None]] = set()

        try:
            for key in iter_keys(self.engine, self._versions):
                self._total += 1
                if key in self._store:
                    logger.info("Skipping %s...", key)
                    self._skipped += 1
                    continue
                if self._fatal is not None:
                    break
                if self._token.cancelled or self._writer.closed:
                    logger.info(
                        "Stopping %s pass: %s",
                        self.engine.value,
                        self._token.reason or "update path closed",
                    )
                    break

                url = url_for_key(key)
                await slots.acquire()
                if self._token.cancelled or self._fatal is not None:
                    slots.release()
                    break

                task = asyncio.create_task(self._unit(key, url, slots), name=f"unit:{key}")
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)
                task.add_done_callback(self._note_fatal)

            if self._fatal is not None:
                raise self._fatal
            if in_flight:
                await asyncio.gather(*in_flight)
        except BaseException:
            for task in list(in_flight):
                task.cancel()
            self.memo.cancel_all()
            raise

        report = self.report()
        logger.info(
            "%s pass done: %d submitted, %d skipped, %d failed",
            self.engine.value,
            report.submitted,
            report.skipped,
            len(report.failed),
        )
        return report

    def report(self, *, cancelled: bool | None = None) -> EngineReport:
        return EngineReport(
            engine=self.engine,
            total=self._total,
            skipped=self._skipped,
            submitted=self._submitted,
            failed=list(dict.fromkeys(self._failed)),
            cancelled=self._token.cancelled if cancelled is None else cancelled,
        )

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _note_fatal(self, task: asyncio.Task[None]) -> None:
        # anything but a contained fetch failure ends the pass
        if task.cancelled() or self._fatal is not None:
            return
        self._fatal = task.exception()

    async def _unit(self, key: ManifestKey, url: str, slots: asyncio.Semaphore) -> None:
        try:
            digest = await self.memo.hash_of(url)
        except ArtifactFetchError as exc:
            logger.warning("Error calculating hash for %s: %s", key, exc)
            self._failed.append(url)
            return
        finally:
            slots.release()

        try:
            self._writer.submit(key, ArtifactDetails(url=url, hash=digest))
        except ManifestClosedError:
            logger.debug("Result for %s arrived after shutdown; not applied", key)
            return
        self._submitted += 1
