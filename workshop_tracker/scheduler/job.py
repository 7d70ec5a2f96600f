"""Per-server recurring tracking job."""
import asyncio
import logging
from enum import Enum
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from workshop_tracker.core.database import AsyncSessionLocal
from workshop_tracker.core.exceptions import DeliveryError, PersistenceError
from workshop_tracker.scheduler.detector import ChangeDetector
from workshop_tracker.scheduler.registry import JobRegistry
from workshop_tracker.services import ServerService
from workshop_tracker.utils.time import unix_now
from workshop_tracker.workers.notification_router import NotificationRouter

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    IDLE = "idle"
    TICKING = "ticking"
    CANCELLED = "cancelled"


class TrackingJob:
    """Recurring check of one server's tracked items.

    The first tick fires one full interval after start, and each following
    wait begins when the previous tick has finished, so a slow tick delays
    the schedule instead of queueing a burst of ticks. Cancellation is
    cooperative: it is observed while waiting, after the membership check
    and between pipeline stages; in-flight requests run to completion.
    """

    def __init__(
        self,
        server_id: int,
        hours: int,
        detector: ChangeDetector,
        router: NotificationRouter,
        registry: JobRegistry,
        session_factory=AsyncSessionLocal,
        interval_seconds: Optional[float] = None
    ):
        self.server_id = server_id
        self.hours = hours
        self.detector = detector
        self.router = router
        self.registry = registry
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds if interval_seconds is not None else hours * 3600
        self.state = JobState.IDLE
        self.ticks = 0
        self.task: Optional[asyncio.Task] = None
        self._cancelled = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> asyncio.Task:
        """Spawn the job loop on the running event loop."""
        if self.task is None:
            self.task = asyncio.get_running_loop().create_task(
                self._run(), name=f"tracking-job-{self.server_id}"
            )
        return self.task

    def cancel(self):
        """Signal the job to stop at its next checkpoint."""
        self.state = JobState.CANCELLED
        self._cancelled.set()

    async def wait(self):
        """Wait for the job loop to exit."""
        if self.task is not None:
            await asyncio.shield(self.task)

    async def _wait_for_tick(self) -> bool:
        """Sleep one interval. Returns True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=self.interval_seconds)
            return True
        except asyncio.TimeoutError:
            return self.cancelled

    async def _run(self):
        logger.info(f"Starting tracking job for server: {self.server_id} (every {self.hours} h)")

        try:
            while not self.cancelled:
                self.state = JobState.IDLE
                if await self._wait_for_tick():
                    break

                self.state = JobState.TICKING
                if not await self.tick():
                    break
        except Exception as e:
            logger.error(
                f"Tracking job for server: {self.server_id} failed with error: {e}",
                exc_info=True
            )
        finally:
            self.cancel()
            # A replacement may already be registered; leave it alone
            self.registry.discard(self.server_id, self)
            logger.info(f"Tracking job for server {self.server_id} stopped after {self.ticks} ticks")

    async def tick(self) -> bool:
        """
        Run one check of the server's items.

        Returns:
            False if the job should stop

        Raises:
            NoDestinationConfigured: If the server has no update channel
            PersistenceError: If recording the run failed
            CatalogError, SQLAlchemyError: Other errors escaping detection
        """
        self.ticks += 1

        async with self.session_factory() as db:
            if not await ServerService.check_still_present(db, self.server_id):
                logger.warning(
                    f"Server {self.server_id} is no longer in the server list, stopping tracking job"
                )
                return False

            if self.cancelled:
                return False

            result = await self.detector.detect_for_server(db, self.server_id)

            if self.cancelled:
                return False

            try:
                await self.router.dispatch(db, self.server_id, result)
            except DeliveryError as e:
                # Undelivered chunks keep their old marks and are retried next tick
                logger.error(f"Error while notifying on updates: {e}, for server: {self.server_id}")
                return True

            try:
                await ServerService.set_last_ran(db, self.server_id, unix_now())
            except SQLAlchemyError as e:
                raise PersistenceError(f"Could not record last run for server {self.server_id}: {e}") from e

        return True
