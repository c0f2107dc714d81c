"""Hash Memoizer — at most one fetch per distinct URL.

Several manifest keys can share one artifact (OpenSearch ships the same
tarball for linux and darwin, Elasticsearch 5.x has no arch qualifier).
The memoizer keeps a registry of URL -> single-assignment cell, where the
cell is the ``asyncio.Task`` running the fetch. Get-or-create happens
without an ``await`` in between, so on one event loop it is atomic: the
second caller for a URL always finds the first caller's cell.

Every waiter awaits the same task and therefore observes the same result,
value or exception. Cells are never evicted; a memoizer lives for one
engine's processing pass.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

FetchHash = Callable[[str], Awaitable[str]]


class HashMemoizer:
    """Registry of shared, awaitable hash results keyed by URL.

    Parameters
    ----------
    fetch:
        Coroutine function ``url -> hash`` performing the real work,
        normally :meth:`ArtifactHasher.fetch_hash`.
    """

    def __init__(self, fetch: FetchHash) -> None:
        self._fetch = fetch
        self._cells: dict[str, asyncio.Task[str]] = {}

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, url: object) -> bool:
        return url in self._cells

    def cell(self, url: str) -> asyncio.Task[str]:
        """Return the cell for *url*, starting the fetch if there is none."""
        existing = self._cells.get(url)
        if existing is not None:
            logger.debug("Joining in-flight hash of %s", url)
            return existing

        task = asyncio.get_running_loop().create_task(
            self._fetch(url), name=f"hash:{url}"
        )
        task.add_done_callback(_consume_exception)
        self._cells[url] = task
        return task

    async def hash_of(self, url: str) -> str:
        """Return the hash of *url*, sharing the fetch with concurrent callers.

        A caller that is cancelled stops waiting without cancelling the
        shared fetch, which other callers may still be awaiting. Use
        :meth:`cancel_all` to abort the fetches themselves.
        """
        return await asyncio.shield(self.cell(url))

    def cancel_all(self) -> int:
        """Cancel every fetch still in flight; return how many were cancelled."""
        cancelled = 0
        for task in self._cells.values():
            if not task.done():
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.debug("Cancelled %d in-flight hash fetches", cancelled)
        return cancelled


def _consume_exception(task: asyncio.Task[str]) -> None:
    # Waiters re-raise failures from their own await; mark them retrieved.
    if not task.cancelled():
        task.exception()
