"""
Base Repository - RCJ Scoring Engine
rcj_scoring/repositories/base.py

Base repository with store session management, fan-out reads and the
retried transaction executor.
"""

import asyncio
import random
import time
from typing import Any, Callable, Optional, TypeVar

import structlog

from rcj_scoring.config import Settings
from rcj_scoring.core.exceptions import (
    ConflictRetryExhaustedException,
    ForeignKeyViolationException,
    SerializationConflictException,
)
from rcj_scoring.services.fetch_coordinator import Fetch, FetchCoordinator
from rcj_scoring.stores.base import ScoreStore, StoreSession

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BaseRepository:
    """Base repository over an explicitly constructed store handle."""

    def __init__(
        self,
        store: ScoreStore,
        settings: Settings,
        coordinator: Optional[FetchCoordinator] = None,
    ):
        self.store = store
        self.settings = settings
        self.coordinator = coordinator or FetchCoordinator()

    def read(
        self,
        query: Callable[[StoreSession], T],
        name: Optional[str] = None,
        apply: Optional[Callable[[T], None]] = None,
    ) -> Fetch:
        """Wrap a session query as a fetch that opens its own session."""

        def load() -> T:
            with self.store.session() as session:
                return query(session)

        return Fetch(load=load, apply=apply, name=name or getattr(query, "__name__", None))

    @staticmethod
    def require(row: Any, label: str, row_id: Optional[str]) -> None:
        """Raise ForeignKeyViolationException when a referenced row was not found."""
        if not row:
            raise ForeignKeyViolationException(f"{label} {row_id} does not exist")

    async def run_fetch(self, fetch: Fetch):
        """Run a single fetch on a worker thread, without fan-out."""
        return await asyncio.to_thread(fetch.load)

    def execute_in_transaction(self, work: Callable[[StoreSession], T], operation: str) -> T:
        """
        Run `work` inside a transaction, retrying the whole closure on
        serialization conflicts.

        Any other exception, including one raised by a caller's mutator,
        rolls the transaction back and propagates unchanged.

        Raises:
            ConflictRetryExhaustedException: conflicts persisted through
                1 + TX_MAX_RETRIES attempts
        """
        attempts = 1 + self.settings.TX_MAX_RETRIES
        last_error: Optional[SerializationConflictException] = None

        for attempt in range(1, attempts + 1):
            try:
                with self.store.transaction() as session:
                    return work(session)
            except SerializationConflictException as e:
                last_error = e
                if attempt == attempts:
                    break
                delay = self._backoff(attempt)
                logger.warning(
                    "transaction_retry",
                    operation=operation,
                    attempt=attempt,
                    delay=round(delay, 3),
                    error=str(e),
                )
                if delay:
                    time.sleep(delay)

        logger.error(
            "transaction_retry_exhausted",
            operation=operation,
            attempts=attempts,
            error=str(last_error),
        )
        raise ConflictRetryExhaustedException(attempts, last_error) from last_error

    async def transact(self, work: Callable[[StoreSession], T], operation: str) -> T:
        return await asyncio.to_thread(self.execute_in_transaction, work, operation)

    def _backoff(self, attempt: int) -> float:
        """Exponential backoff with full jitter."""
        base = self.settings.TX_RETRY_BACKOFF_SECONDS
        if base <= 0:
            return 0.0
        ceiling = min(self.settings.TX_RETRY_BACKOFF_MAX_SECONDS, base * (2 ** (attempt - 1)))
        return random.uniform(0, ceiling)
