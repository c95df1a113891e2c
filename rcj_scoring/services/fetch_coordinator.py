"""
Concurrent Fetch Coordinator - RCJ Scoring Engine
rcj_scoring/services/fetch_coordinator.py

Fan-out/join for independent store reads.

Each fetch runs its blocking `load` in a worker thread and owns its own
result slot. When several fetches write into one composite object they pass
an `apply` callback, which runs under an exclusive lock. On the first
failure the outstanding tasks are cancelled (their in-flight store calls
finish in the background and are discarded), every task is awaited to a
terminal state, and the first failure is raised.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class Fetch:
    """One independent sub-fetch."""
    load: Callable[[], Any]
    apply: Optional[Callable[[Any], None]] = None
    name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.name or getattr(self.load, "__name__", "fetch")


FetchLike = Union[Fetch, Callable[[], Any]]


class FetchCoordinator:
    """Runs fetches concurrently and joins them before returning."""

    async def gather(self, *fetches: FetchLike) -> List[Any]:
        """
        Run every fetch concurrently.

        Args:
            *fetches: Fetch items or plain zero-argument callables

        Returns:
            Loaded values in argument order

        Raises:
            The first failure; ties inside one completion batch go to the
            fetch listed first.
        """
        items = [f if isinstance(f, Fetch) else Fetch(load=f) for f in fetches]
        if not items:
            return []

        apply_lock = threading.Lock()

        def run(item: Fetch) -> Any:
            value = item.load()
            if item.apply is not None:
                with apply_lock:
                    item.apply(value)
            return value

        tasks = [asyncio.create_task(asyncio.to_thread(run, item)) for item in items]
        failure: Optional[BaseException] = None
        try:
            pending = set(tasks)
            while pending and failure is None:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
                for task in tasks:
                    if task in done and not task.cancelled() and task.exception() is not None:
                        failure = task.exception()
                        break
            for task in pending:
                task.cancel()
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if failure is None:
            return list(outcomes)

        failed_at = next(i for i, outcome in enumerate(outcomes) if outcome is failure)
        for item, outcome in zip(items, outcomes):
            if outcome is failure or not isinstance(outcome, Exception):
                continue
            logger.warning("fetch_failure_discarded", fetch=item.label, error=str(outcome))
        logger.warning(
            "fetch_fanout_failed",
            fetch=items[failed_at].label,
            error=str(failure),
            fanout=len(items),
        )
        raise failure
