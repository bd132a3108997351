"""Atomic scope around one unit of work on an AsyncSession.

Everything written inside the scope commits together or is rolled back.
Domain events raised inside are buffered on the scope and only handed out
once the commit has succeeded.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from stayledger.config import settings
from stayledger.core.exceptions import ConcurrentModification, OperationTimeout
from stayledger.domain.events import DomainEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONFLICT_ERRORS = (StaleDataError, IntegrityError)


class AtomicScope:
    """Async context manager: commit on success, roll back on any error.

    Usage:
        async with AtomicScope(db) as scope:
            booking = await scope.acquire(load_booking_for_update(...))
            ...
        await dispatcher.dispatch(scope.events)
    """

    def __init__(self, db: AsyncSession, timeout: float | None = None) -> None:
        self.db = db
        self.timeout = settings.scope_timeout_seconds if timeout is None else timeout
        self.events: list[DomainEvent] = []
        self.committed = False

    async def __aenter__(self) -> "AtomicScope":
        return self

    async def acquire(self, awaitable: Awaitable[T]) -> T:
        """Await a lock-taking read, bounded by the scope timeout.

        Raises:
            OperationTimeout: If the read does not finish in time
        """
        try:
            async with asyncio.timeout(self.timeout):
                return await awaitable
        except TimeoutError as e:
            logger.warning(f"Atomic scope not acquired within {self.timeout}s")
            raise OperationTimeout() from e

    def emit(self, event: DomainEvent) -> None:
        self.events.append(event)

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            try:
                await self.db.commit()
            except _CONFLICT_ERRORS as e:
                await self.db.rollback()
                self.events.clear()
                logger.info(f"Commit lost to a concurrent writer: {e.__class__.__name__}")
                raise ConcurrentModification() from e
            self.committed = True
            return False

        await self.db.rollback()
        self.events.clear()
        if isinstance(exc, _CONFLICT_ERRORS):
            logger.info(f"Write lost to a concurrent writer: {exc.__class__.__name__}")
            raise ConcurrentModification() from exc
        return False
