"""Registry of running tracking jobs, at most one per server."""
import logging
import threading
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from workshop_tracker.scheduler.job import TrackingJob

logger = logging.getLogger(__name__)


class JobRegistry:
    """Mutex-guarded map of server id to its tracking job.

    Replacing or removing a job signals the old job's cancellation while
    the lock is held, so no caller can observe two live jobs for a server.
    """

    def __init__(self):
        self._jobs: Dict[int, "TrackingJob"] = {}
        self._lock = threading.Lock()

    def register(self, server_id: int, job: "TrackingJob") -> Optional["TrackingJob"]:
        """
        Insert a job, cancelling any job previously registered for the server.

        Returns:
            The replaced job, if there was one
        """
        with self._lock:
            previous = self._jobs.get(server_id)
            self._jobs[server_id] = job
            if previous is not None and previous is not job:
                previous.cancel()

        if previous is not None:
            logger.debug(f"Replaced tracking job for server: {server_id}")
        return previous

    def remove(self, server_id: int) -> bool:
        """Remove and cancel a server's job. Returns False if none was registered."""
        with self._lock:
            job = self._jobs.pop(server_id, None)
            if job is not None:
                job.cancel()

        return job is not None

    def discard(self, server_id: int, job: "TrackingJob") -> bool:
        """Remove a job only if it is still the one registered for the server."""
        with self._lock:
            if self._jobs.get(server_id) is not job:
                return False
            del self._jobs[server_id]

        return True

    def get(self, server_id: int) -> Optional["TrackingJob"]:
        with self._lock:
            return self._jobs.get(server_id)

    def is_running(self, server_id: int) -> bool:
        """Point-in-time check whether a server has a registered job."""
        with self._lock:
            return server_id in self._jobs

    def server_ids(self) -> List[int]:
        with self._lock:
            return list(self._jobs)

    def cancel_all(self) -> List["TrackingJob"]:
        """Cancel and remove every job. Returns the removed jobs."""
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
            for job in jobs:
                job.cancel()

        return jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, server_id: int) -> bool:
        return self.is_running(server_id)
