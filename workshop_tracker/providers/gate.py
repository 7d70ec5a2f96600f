"""Process-wide bound on concurrent catalog requests."""
import asyncio
import logging
from contextlib import asynccontextmanager
from workshop_tracker.core.config import settings

logger = logging.getLogger(__name__)


class FetchGate:
    """Counting permit pool guarding outbound catalog calls.

    Hold a permit only around the request itself; parse and process the
    response after leaving ``permit()`` so slow consumers never starve
    other callers.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("FetchGate capacity must be at least 1")
        self._capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_use = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        """Number of permits currently held."""
        return self._in_use

    @asynccontextmanager
    async def permit(self):
        """Acquire a permit for the duration of one outbound call."""
        await self._semaphore.acquire()
        self._in_use += 1
        logger.debug(f"Fetch permit acquired ({self._in_use}/{self._capacity} in use)")
        try:
            yield
        finally:
            self._in_use -= 1
            self._semaphore.release()


# Shared by every catalog client in the process
fetch_gate = FetchGate(settings.catalog_fetch_concurrency)
