"""ManifestBuilder — wires schedulers, memoizers, writer and interrupts.

Control flow for one build::

    ManifestStore (loaded) ──read──▶ EngineScheduler × engines
                                         │  derive URL, memoized hash
                                         ▼
                                   ManifestWriter ──apply + flush──▶ manifest.json

One scheduler task runs per engine, all in parallel. The writer task is
the only mutator of the store. The interrupt controller may halt the
pipeline at any point; the writer still flushes once more and the builder
returns the store, so the caller can always produce the package list.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import httpx

from enginepins.core.hasher import ArtifactHasher
from enginepins.core.interrupt import CancellationToken, InterruptController
from enginepins.core.manifest_store import ManifestStore, ManifestWriter
from enginepins.core.memo import FetchHash
from enginepins.core.scheduler import EngineScheduler
from enginepins.core.versions import EngineVersions
from enginepins.models.manifest import EngineReport
from enginepins.models.platforms import declaration_rank

logger = logging.getLogger(__name__)


class BuildResult:
    """The final store plus one report per engine."""

    def __init__(
        self,
        store: ManifestStore,
        reports: list[EngineReport],
        interrupted: bool,
    ) -> None:
        self.store = store
        self.reports = reports
        self.interrupted = interrupted

    @property
    def failed(self) -> list[str]:
        return [url for report in self.reports for url in report.failed]


def make_client(timeout_seconds: float = 300.0) -> httpx.AsyncClient:
    """HTTP client for artifact downloads: redirects followed, no compression."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout_seconds, connect=30.0),
        headers={"User-Agent": "enginepins", "Accept-Encoding": "identity"},
    )


class ManifestBuilder:
    """Builds the manifest for a set of engines and their versions.

    Parameters
    ----------
    store:
        Loaded (possibly empty) manifest; keys already present are skipped.
    concurrency:
        Per-engine bound on fetch-and-hash operations in flight.
    client:
        Optional ``httpx.AsyncClient``; the builder opens and closes its
        own when omitted. Ignored when *fetch* is given.
    fetch:
        Optional coroutine function ``url -> hash`` replacing the HTTP
        hasher entirely.
    """

    def __init__(
        self,
        store: ManifestStore,
        *,
        concurrency: int = 4,
        client: httpx.AsyncClient | None = None,
        fetch: FetchHash | None = None,
        timeout_seconds: float = 300.0,
    ) -> None:
        self.store = store
        self._concurrency = concurrency
        self._client = client
        self._fetch = fetch
        self._timeout_seconds = timeout_seconds
        self.token = CancellationToken()
        self.controller: InterruptController | None = None

    async def build(
        self,
        engine_versions: EngineVersions,
        *,
        handle_signals: bool = True,
    ) -> BuildResult:
        """Run one scheduler per engine and return the final store.

        Raises whatever fatal error a scheduler raised (for instance
        :class:`~enginepins.core.urls.ArtifactUrlError`), after the final
        manifest flush, or the
        :class:`~enginepins.core.manifest_store.ManifestError` of a failed write.
        Either failure interrupts the other engines as soon as it happens.
        """
        if self._fetch is not None:
            return await self._build(engine_versions, self._fetch, handle_signals)
        if self._client is not None:
            hasher = ArtifactHasher(self._client)
            return await self._build(engine_versions, hasher.fetch_hash, handle_signals)
        async with make_client(self._timeout_seconds) as client:
            hasher = ArtifactHasher(client)
            return await self._build(engine_versions, hasher.fetch_hash, handle_signals)

    async def _build(
        self,
        engine_versions: EngineVersions,
        fetch: FetchHash,
        handle_signals: bool,
    ) -> BuildResult:
        writer = ManifestWriter(self.store)
        writer_task = asyncio.create_task(writer.run(), name="manifest-writer")
        controller = InterruptController(self.token, writer)
        self.controller = controller
        writer_task.add_done_callback(_interrupt_on_failure(controller, "manifest writer"))

        engines = sorted(engine_versions, key=declaration_rank)
        schedulers = [
            EngineScheduler(
                engine,
                engine_versions[engine],
                self.store,
                writer,
                fetch,
                self.token,
                concurrency=self._concurrency,
            )
            for engine in engines
        ]
        tasks = [
            asyncio.create_task(s.run(), name=f"engine:{s.engine.value}")
            for s in schedulers
        ]
        for task in tasks:
            task.add_done_callback(_interrupt_on_failure(controller, task.get_name()))
        controller.track(tasks)
        if handle_signals:
            controller.install()

        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            controller.uninstall()
            writer.close()
            store = await writer_task

        reports: list[EngineReport] = []
        fatal: BaseException | None = None
        for scheduler, outcome in zip(schedulers, outcomes):
            if isinstance(outcome, EngineReport):
                reports.append(outcome)
            elif isinstance(outcome, asyncio.CancelledError):
                reports.append(scheduler.report(cancelled=True))
            else:
                reports.append(scheduler.report())
                if fatal is None:
                    fatal = outcome

        if fatal is not None:
            logger.error("Build aborted: %s", fatal)
            raise fatal

        logger.info(
            "Finished%s! %d entries in %s (%d new)",
            " (interrupted)" if self.token.cancelled else "",
            len(store),
            store.path,
            writer.applied,
        )
        return BuildResult(store, reports, interrupted=self.token.cancelled)

    def interrupt(self, reason: str = "interrupted") -> None:
        """Halt a running build, as a termination signal would."""
        if self.controller is not None:
            self.controller.interrupt(reason)
        else:
            self.token.cancel(reason)


def _interrupt_on_failure(
    controller: InterruptController, what: str
) -> Callable[[asyncio.Task], None]:
    """Done-callback that halts the whole build when *what* fails fatally."""

    def callback(task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        controller.interrupt(f"{what} failed: {task.exception()}")

    return callback
