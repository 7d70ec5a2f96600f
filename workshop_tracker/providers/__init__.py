"""Abstract interface for Workshop catalog sources."""
from abc import ABC, abstractmethod
from typing import List
from workshop_tracker.providers.models import ItemSnapshot


class CatalogSource(ABC):
    """Abstract base class for authoritative item metadata sources."""

    @abstractmethod
    async def fetch_item(self, item_id: int) -> ItemSnapshot:
        """
        Fetch the current metadata for an item.

        Args:
            item_id: Workshop item id

        Returns:
            ItemSnapshot as reported by the catalog right now

        Raises:
            CatalogError: If the call fails or the response cannot be parsed
        """
        pass

    @abstractmethod
    async def fetch_collection(self, collection_id: int) -> List[int]:
        """
        Fetch the item ids that belong to a Workshop collection.

        Raises:
            CatalogError: If the call fails or the response cannot be parsed
        """
        pass

    async def close(self):
        """Release any held connections."""
        pass


class CatalogError(Exception):
    """Exception raised when a catalog call fails."""
    pass
