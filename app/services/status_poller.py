"""
StatusPoller - watch a debt until it settles or a deadline passes.

The loop only reads and holds nothing shared. Time comes from an injected
Clock, so tests can drive it without real delays.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.models.debt import DebtStatus
from app.repositories.debt_repo import DebtStore

logger = logging.getLogger(__name__)

StatusReader = Callable[[], Awaitable[DebtStatus]]


class PollOutcome(str, Enum):
    SETTLED = "settled"
    TIMED_OUT = "timed-out"
    CANCELLED = "cancelled"


class Clock:
    """Monotonic wall clock backed by asyncio.sleep."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class StatusPoller:
    def __init__(
        self,
        fetch_status: StatusReader,
        on_settled: Callable[[], None],
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        clock: Optional[Clock] = None,
    ):
        self.fetch_status = fetch_status
        self.on_settled = on_settled
        self.interval = settings.POLL_INTERVAL_SECONDS if interval is None else interval
        self.timeout = settings.POLL_TIMEOUT_SECONDS if timeout is None else timeout
        self.clock = clock or Clock()
        self._cancelled = False
        self._sleeper: Optional[asyncio.Future] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop polling now; the pending sleep is cancelled."""
        self._cancelled = True
        if self._sleeper is not None and not self._sleeper.done():
            self._sleeper.cancel()

    async def run(self) -> PollOutcome:
        started = self.clock.monotonic()

        while not self._cancelled:
            status = await self.fetch_status()
            if self._cancelled:
                break
            if status == DebtStatus.PAID:
                self.on_settled()
                return PollOutcome.SETTLED

            if self.clock.monotonic() - started >= self.timeout:
                logger.debug("Stopped polling after %.1fs without settlement", self.timeout)
                return PollOutcome.TIMED_OUT

            self._sleeper = asyncio.ensure_future(self.clock.sleep(self.interval))
            try:
                await self._sleeper
            except asyncio.CancelledError:
                if self._cancelled:
                    break
                raise
            finally:
                self._sleeper = None

        return PollOutcome.CANCELLED


def store_status_reader(store: DebtStore, debt_id: str) -> StatusReader:
    """Read status straight from the store (same process)."""

    async def read() -> DebtStatus:
        debt = await store.find_by_id(debt_id)
        return debt.status

    return read


def http_status_reader(client: httpx.AsyncClient, email: str) -> StatusReader:
    """Read status through the public debt endpoint."""

    async def read() -> DebtStatus:
        response = await client.get(f"{settings.API_V1_STR}/debts/{quote(email, safe='@')}")
        response.raise_for_status()
        return DebtStatus(response.json()["status"])

    return read
