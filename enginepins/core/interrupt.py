"""Cooperative cancellation and the Interrupt Controller.

A :class:`CancellationToken` is handed to every scheduler when it is
spawned; schedulers check it before issuing each unit of work. The
:class:`InterruptController` turns an external termination request
(SIGINT/SIGTERM) into three steps:

1. signal the token, so no scheduler issues new work;
2. cancel the tracked scheduler tasks, which abort their in-flight fetches;
3. close the manifest update path, so the writer flushes one final time.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterable

from enginepins.core.manifest_store import ManifestWriter

logger = logging.getLogger(__name__)

_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """One-shot, shareable stop signal."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


class InterruptController:
    """Halts a running build and guarantees a final manifest flush.

    Parameters
    ----------
    token:
        Token shared with every scheduler of the build.
    writer:
        The build's manifest update path.
    """

    def __init__(self, token: CancellationToken, writer: ManifestWriter) -> None:
        self._token = token
        self._writer = writer
        self._tasks: set[asyncio.Task] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[signal.Signals] = []

    @property
    def interrupted(self) -> bool:
        return self._token.cancelled

    def track(self, tasks: Iterable[asyncio.Task]) -> None:
        """Register scheduler tasks to cancel on interrupt."""
        for task in tasks:
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def interrupt(self, reason: str = "interrupted") -> None:
        """Stop issuing work, cancel in-flight work and close the update path."""
        if self._token.cancelled:
            return
        logger.info("shutting down (%s)...", reason)
        self._token.cancel(reason)
        for task in list(self._tasks):
            task.cancel()
        self._writer.close()

    # ------------------------------------------------------------------
    # Signal handlers
    # ------------------------------------------------------------------

    def install(self) -> None:
        """Route SIGINT and SIGTERM on the running loop to :meth:`interrupt`."""
        self._loop = asyncio.get_running_loop()
        for sig in _SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self.interrupt, sig.name)
            except (NotImplementedError, RuntimeError):
                # Platforms without loop signal support (Windows) or a
                # loop outside the main thread
                logger.debug("Cannot install %s handler on this loop", sig.name)
                continue
            self._installed.append(sig)

    def uninstall(self) -> None:
        """Remove the handlers added by :meth:`install`."""
        if self._loop is None:
            return
        for sig in self._installed:
            self._loop.remove_signal_handler(sig)
        self._installed.clear()
        self._loop = None
