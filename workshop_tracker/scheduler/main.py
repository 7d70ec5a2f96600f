"""Tracking scheduler: owns one recurring job per server."""
import logging
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from sqlalchemy.exc import SQLAlchemyError
from workshop_tracker.core.config import settings
from workshop_tracker.core.database import AsyncSessionLocal
from workshop_tracker.core.exceptions import BootstrapError, NoScheduleConfigured
from workshop_tracker.providers import CatalogSource
from workshop_tracker.providers.steam import SteamCatalog
from workshop_tracker.scheduler.detector import ChangeDetector
from workshop_tracker.scheduler.job import TrackingJob
from workshop_tracker.scheduler.registry import JobRegistry
from workshop_tracker.services import ServerService
from workshop_tracker.workers.notification_router import NotificationRouter, Notifier

logger = logging.getLogger(__name__)


class TrackingScheduler:
    """Starts, replaces and stops the tracking jobs of all servers."""

    def __init__(
        self,
        catalog: Optional[CatalogSource] = None,
        session_factory=AsyncSessionLocal,
        registry: Optional[JobRegistry] = None,
        bootstrap_window_seconds: Optional[int] = None
    ):
        logger.info("Initializing TrackingScheduler...")
        self.catalog = catalog or SteamCatalog()
        self.session_factory = session_factory
        self.registry = registry or JobRegistry()
        self.detector = ChangeDetector(self.catalog)
        self.router: Optional[NotificationRouter] = None
        self.bootstrap_window_seconds = (
            bootstrap_window_seconds if bootstrap_window_seconds is not None
            else settings.bootstrap_window_seconds
        )
        # Only used to stagger job starts at boot
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)

    def bind_notifier(self, notifier: Notifier):
        """Set the notifier every job delivers through."""
        self.router = NotificationRouter(notifier)

    async def bootstrap(self, notifier: Notifier) -> int:
        """
        Start tracking jobs for every server with a schedule.

        Starts are spread evenly over the bootstrap window instead of all at
        once. A failing start only affects its own server.

        Args:
            notifier: Notifier used by all jobs

        Returns:
            Number of job starts scheduled

        Raises:
            BootstrapError: If the schedules could not be loaded
        """
        self.bind_notifier(notifier)

        try:
            async with self.session_factory() as db:
                schedules = await ServerService.get_all_schedules(db)
        except SQLAlchemyError as e:
            raise BootstrapError(f"Could not load tracking schedules: {e}", e) from e

        pending = [(server_id, hours) for server_id, hours in schedules if hours]
        logger.info(f"Starting {len(pending)} tracking jobs")

        if not pending:
            return 0

        spacing = self.bootstrap_window_seconds / len(pending)
        now = datetime.now(timezone.utc)

        if not self.scheduler.running:
            self.scheduler.start()

        for index, (server_id, hours) in enumerate(pending):
            self.scheduler.add_job(
                self._bootstrap_start,
                trigger=DateTrigger(run_date=now + timedelta(seconds=spacing * index)),
                args=[server_id, hours],
                id=self._bootstrap_job_id(server_id),
                replace_existing=True,
                misfire_grace_time=None
            )

        logger.info(f"Scheduled {len(pending)} job starts, {spacing:.1f}s apart")
        return len(pending)

    async def _bootstrap_start(self, server_id: int, hours: int):
        try:
            if self.registry.is_running(server_id):
                logger.debug(f"Tracking job for server {server_id} already running, skipping bootstrap start")
                return
            self._start_job(server_id, hours)
        except Exception as e:
            logger.error(f"Failed to start tracking job for server {server_id}: {e}", exc_info=True)

    @staticmethod
    def _bootstrap_job_id(server_id: int) -> str:
        return f"bootstrap:{server_id}"

    def _cancel_pending_start(self, server_id: int):
        try:
            self.scheduler.remove_job(self._bootstrap_job_id(server_id))
        except JobLookupError:
            pass

    def _start_job(self, server_id: int, hours: int) -> Optional[TrackingJob]:
        if self.router is None:
            logger.warning(f"Notifier not set, not starting tracking job for server: {server_id}")
            return None

        job = TrackingJob(
            server_id,
            hours,
            detector=self.detector,
            router=self.router,
            registry=self.registry,
            session_factory=self.session_factory
        )
        if self.registry.register(server_id, job) is not None:
            logger.info(f"Restarting tracking job for server: {server_id}")
        job.start()

        return job

    async def start_or_restart(self, server_id: int) -> Optional[TrackingJob]:
        """
        Start a server's tracking job, replacing a running one.

        Raises:
            NoScheduleConfigured: If the server has no schedule
        """
        async with self.session_factory() as db:
            hours = await ServerService.get_schedule(db, server_id)

        if not hours:
            raise NoScheduleConfigured(server_id)

        self._cancel_pending_start(server_id)
        return self._start_job(server_id, hours)

    def stop(self, server_id: int) -> bool:
        """Stop a server's tracking job. Stopping a stopped server is a no-op."""
        self._cancel_pending_start(server_id)
        removed = self.registry.remove(server_id)
        if removed:
            logger.info(f"Removing tracking job for server: {server_id}")
        return removed

    def is_running(self, server_id: int) -> bool:
        return self.registry.is_running(server_id)

    async def shutdown(self, grace_seconds: float = 5.0):
        """Cancel every job and release the catalog client."""
        logger.info("Shutting down tracking scheduler...")
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        tasks = [job.task for job in self.registry.cancel_all() if job.task is not None]
        if tasks:
            _, still_running = await asyncio.wait(tasks, timeout=grace_seconds)
            for task in still_running:
                task.cancel()

        await self.catalog.close()
        logger.info("Tracking scheduler stopped")
