"""Exceptions raised by the tracking scheduler and notification pipeline."""
from typing import Optional


class TrackerError(Exception):
    """Base class for tracker errors."""
    pass


class ConfigMissing(TrackerError):
    """A server is missing configuration required for the requested action."""

    def __init__(self, server_id: int, message: str):
        self.server_id = server_id
        super().__init__(message)


class NoScheduleConfigured(ConfigMissing):
    """The server has no polling interval set."""

    def __init__(self, server_id: int):
        super().__init__(server_id, f"No schedule set for server {server_id}")


class NoDestinationConfigured(ConfigMissing):
    """The server has no update channel registered."""

    def __init__(self, server_id: int):
        super().__init__(server_id, f"No update channel set for server {server_id}")


class DeliveryError(TrackerError):
    """A notification batch could not be delivered."""

    def __init__(self, destination_id: int, message: str, delivered_chunks: int = 0):
        self.destination_id = destination_id
        self.delivered_chunks = delivered_chunks
        super().__init__(message)


class PersistenceError(TrackerError):
    """A store write failed while a tracking job was running."""
    pass


class BootstrapError(TrackerError):
    """Tracking jobs could not be bootstrapped at startup."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)
