"""Tracking scheduler package initialization."""
from workshop_tracker.scheduler.detector import ChangeDetector, DetectionResult, TrackedItem
from workshop_tracker.scheduler.registry import JobRegistry
from workshop_tracker.scheduler.job import TrackingJob, JobState
from workshop_tracker.scheduler.main import TrackingScheduler

__all__ = [
    "ChangeDetector",
    "DetectionResult",
    "TrackedItem",
    "JobRegistry",
    "TrackingJob",
    "JobState",
    "TrackingScheduler"
]
