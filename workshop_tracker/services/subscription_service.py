"""Subscription service for managing tracked items per server."""
from typing import Iterable, List, Optional
from sqlalchemy import select, delete, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from workshop_tracker.models import Subscription, Item
from workshop_tracker.utils.time import unix_now


class SubscriptionService:
    """Service for subscription management."""

    @staticmethod
    async def get_subscription(
        db: AsyncSession,
        server_id: int,
        item_id: int
    ) -> Optional[Subscription]:
        """Get a single subscription."""
        result = await db.execute(
            select(Subscription).where(
                Subscription.server_id == server_id,
                Subscription.item_id == item_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def add_subscription(
        db: AsyncSession,
        server_id: int,
        item_id: int
    ) -> Subscription:
        """
        Track an item for a server.

        The item must already be cached. New subscriptions start with
        last_notified_at set to now, so only later updates are reported.

        Args:
            db: Database session
            server_id: Server id
            item_id: Workshop item id

        Returns:
            Subscription object (the existing one if already tracked)
        """
        existing = await SubscriptionService.get_subscription(db, server_id, item_id)
        if existing:
            return existing

        subscription = Subscription(
            server_id=server_id,
            item_id=item_id,
            last_notified_at=unix_now()
        )
        db.add(subscription)
        await db.commit()
        await db.refresh(subscription)

        return subscription

    @staticmethod
    async def remove_subscription(
        db: AsyncSession,
        server_id: int,
        item_id: int
    ) -> bool:
        """
        Stop tracking an item.

        Returns:
            True if removed, False if not found
        """
        result = await db.execute(
            delete(Subscription).where(
                Subscription.server_id == server_id,
                Subscription.item_id == item_id
            )
        )
        await db.commit()

        return result.rowcount > 0

    @staticmethod
    async def remove_all_subscriptions(db: AsyncSession, server_id: int) -> int:
        """Stop tracking every item of a server. Returns the number removed."""
        result = await db.execute(
            delete(Subscription).where(Subscription.server_id == server_id)
        )
        await db.commit()

        return result.rowcount

    @staticmethod
    async def get_subscriptions(
        db: AsyncSession,
        server_id: int
    ) -> List[Subscription]:
        """
        Get all subscriptions of a server with their cached items loaded.

        Args:
            db: Database session
            server_id: Server id

        Returns:
            List of Subscription objects ordered by item id
        """
        result = await db.execute(
            select(Subscription)
            .where(Subscription.server_id == server_id)
            .order_by(Subscription.item_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def count_subscriptions(db: AsyncSession, server_id: int) -> int:
        """Count the items tracked by a server."""
        result = await db.execute(
            select(func.count()).select_from(Subscription).where(
                Subscription.server_id == server_id
            )
        )
        return result.scalar_one()

    @staticmethod
    async def advance_last_notified(
        db: AsyncSession,
        server_id: int,
        item_ids: Iterable[int],
        notified_at: int
    ) -> int:
        """
        Move last_notified_at forward for delivered items.

        Rows already at or past notified_at are left untouched, so the
        marker never moves backwards.

        Returns:
            Number of rows updated
        """
        item_ids = list(item_ids)
        if not item_ids:
            return 0

        result = await db.execute(
            update(Subscription)
            .where(
                Subscription.server_id == server_id,
                Subscription.item_id.in_(item_ids),
                Subscription.last_notified_at < notified_at
            )
            .values(last_notified_at=notified_at)
        )
        await db.commit()

        return result.rowcount

    @staticmethod
    async def get_note(db: AsyncSession, server_id: int, item_id: int) -> Optional[str]:
        """Get the note attached to a subscription."""
        result = await db.execute(
            select(Subscription.note).where(
                Subscription.server_id == server_id,
                Subscription.item_id == item_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def update_note(
        db: AsyncSession,
        server_id: int,
        item_id: int,
        note: Optional[str]
    ) -> bool:
        """
        Attach a note to a subscription. An empty note clears it.

        Returns:
            True if the subscription exists
        """
        result = await db.execute(
            update(Subscription)
            .where(
                Subscription.server_id == server_id,
                Subscription.item_id == item_id
            )
            .values(note=note or None)
        )
        await db.commit()

        return result.rowcount > 0

    @staticmethod
    async def get_changes_since(
        db: AsyncSession,
        server_id: int,
        since: int
    ) -> List[Subscription]:
        """Get subscriptions whose cached item was updated after a timestamp."""
        result = await db.execute(
            select(Subscription)
            .join(Item, Subscription.item_id == Item.id)
            .where(
                Subscription.server_id == server_id,
                Item.updated_at > since
            )
            .order_by(Item.updated_at.desc())
        )
        return list(result.scalars().all())
