"""Workers package initialization."""
from workshop_tracker.workers.notification_router import (
    Notifier,
    TelegramNotifier,
    NotificationRouter
)

__all__ = ["Notifier", "TelegramNotifier", "NotificationRouter"]
