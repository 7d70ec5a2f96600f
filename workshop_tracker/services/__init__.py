"""Services package initialization."""
from workshop_tracker.services.server_service import ServerService
from workshop_tracker.services.subscription_service import SubscriptionService
from workshop_tracker.services.item_service import ItemService

__all__ = [
    "ServerService",
    "SubscriptionService",
    "ItemService",
]
