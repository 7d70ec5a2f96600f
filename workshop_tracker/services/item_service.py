"""Item service: cached-then-catalog lookups of Workshop items."""
import logging
from typing import Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from workshop_tracker.core.config import settings
from workshop_tracker.models import Item, Subscription
from workshop_tracker.providers import CatalogSource
from workshop_tracker.providers.models import ItemSnapshot
from workshop_tracker.utils.time import unix_now

logger = logging.getLogger(__name__)


class ItemService:
    """Service for the shared item snapshot cache."""

    @staticmethod
    async def get_cached(db: AsyncSession, item_id: int) -> Optional[Item]:
        """Get the cached row for an item."""
        result = await db.execute(
            select(Item).where(Item.id == item_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert_item(db: AsyncSession, snapshot: ItemSnapshot, fetched_at: Optional[int] = None) -> Item:
        """
        Write a catalog snapshot through to the cache.

        Args:
            db: Database session
            snapshot: Snapshot returned by the catalog
            fetched_at: When the snapshot was fetched (defaults to now)

        Returns:
            The cached Item row
        """
        if fetched_at is None:
            fetched_at = unix_now()

        item = await ItemService.get_cached(db, snapshot.id)
        if item is None:
            item = Item(id=snapshot.id)
            db.add(item)

        item.name = snapshot.name
        # The catalog may lag; never move the cached timestamp backwards
        item.updated_at = max(snapshot.updated_at, item.updated_at or 0)
        item.preview_url = snapshot.preview_url
        item.fetched_at = fetched_at

        await db.commit()
        await db.refresh(item)

        return item

    @staticmethod
    async def get_item(
        db: AsyncSession,
        catalog: CatalogSource,
        item_id: int,
        max_age_minutes: Optional[int] = None
    ) -> ItemSnapshot:
        """
        Look an item up in the cache, falling back to the catalog.

        A cached row older than max_age_minutes counts as a miss.

        Raises:
            CatalogError: If the cache misses and the catalog call fails
        """
        if max_age_minutes is None:
            max_age_minutes = settings.item_cache_ttl_minutes

        item = await ItemService.get_cached(db, item_id)
        now = unix_now()

        if item is not None and now - item.fetched_at < max_age_minutes * 60:
            logger.debug(f"Found item {item_id} in cache")
            return ItemSnapshot.from_row(item)

        snapshot = await catalog.fetch_item(item_id)
        await ItemService.upsert_item(db, snapshot, fetched_at=now)

        return snapshot

    @staticmethod
    async def get_latest_item(
        db: AsyncSession,
        catalog: CatalogSource,
        item_id: int
    ) -> ItemSnapshot:
        """
        Fetch an item from the catalog, bypassing the cache, and write it through.

        Raises:
            CatalogError: If the catalog call fails
        """
        snapshot = await catalog.fetch_item(item_id)
        await ItemService.upsert_item(db, snapshot)

        return snapshot

    @staticmethod
    async def get_item_by_name(
        db: AsyncSession,
        name: str,
        server_id: Optional[int] = None
    ) -> Optional[Item]:
        """
        Find a cached item by its (case-insensitive) name.

        When server_id is given only items tracked by that server match.
        """
        query = select(Item).where(func.lower(Item.name) == name.strip().lower())

        if server_id is not None:
            query = query.join(Subscription, Subscription.item_id == Item.id).where(
                Subscription.server_id == server_id
            )

        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()
