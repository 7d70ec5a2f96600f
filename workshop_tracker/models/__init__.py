"""Models package initialization."""
from workshop_tracker.models.server import Server
from workshop_tracker.models.item import Item
from workshop_tracker.models.subscription import Subscription

__all__ = [
    "Server",
    "Item",
    "Subscription",
]
