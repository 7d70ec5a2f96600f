"""Change detection for the items a server tracks."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from workshop_tracker.models import Subscription
from workshop_tracker.providers import CatalogSource, CatalogError
from workshop_tracker.providers.models import ItemSnapshot
from workshop_tracker.services import ItemService, SubscriptionService

logger = logging.getLogger(__name__)


@dataclass
class TrackedItem:
    """A subscribed item together with the subscription's notification state."""
    snapshot: ItemSnapshot
    last_notified_at: int
    note: Optional[str] = None

    @property
    def item_id(self) -> int:
        return self.snapshot.id

    @property
    def is_updated(self) -> bool:
        # Equal timestamps mean the update was already reported
        return self.snapshot.updated_at > self.last_notified_at

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "TrackedItem":
        return cls(
            snapshot=ItemSnapshot.from_row(subscription.item),
            last_notified_at=subscription.last_notified_at,
            note=subscription.note
        )


@dataclass
class DetectionResult:
    """Partition of a server's tracked items after one detection pass."""
    updated: List[TrackedItem] = field(default_factory=list)
    failed: List[TrackedItem] = field(default_factory=list)
    unchanged: List[TrackedItem] = field(default_factory=list)

    @property
    def has_updates(self) -> bool:
        return bool(self.updated)


class ChangeDetector:
    """Decide which tracked items changed since they were last reported.

    The first pass uses the shared item cache, which is cheap but may be
    stale. Every item that does not look updated is then fetched again from
    the catalog with the cache bypassed, since the cache (or the catalog
    itself) may lag behind a real update. Only the ambiguous items pay for
    the forced fetch.
    """

    def __init__(self, catalog: CatalogSource, cache_ttl_minutes: Optional[int] = None):
        self.catalog = catalog
        self.cache_ttl_minutes = cache_ttl_minutes

    async def detect(self, db: AsyncSession, tracked: List[TrackedItem]) -> DetectionResult:
        """
        Classify tracked items into updated, failed and unchanged.

        Args:
            db: Database session used for cache reads and write-through
            tracked: The server's subscriptions with their stored snapshots

        Returns:
            DetectionResult; updated items carry the freshest snapshot
        """
        result = DetectionResult()
        unknown: List[TrackedItem] = []

        for entry in tracked:
            try:
                snapshot = await ItemService.get_item(
                    db, self.catalog, entry.item_id, max_age_minutes=self.cache_ttl_minutes
                )
            except CatalogError as e:
                # The forced re-check below decides whether this item failed
                logger.debug(f"Cached lookup of item {entry.item_id} failed: {e}")
                unknown.append(entry)
                continue

            candidate = TrackedItem(snapshot=snapshot, last_notified_at=entry.last_notified_at, note=entry.note)
            if candidate.is_updated:
                result.updated.append(candidate)
            else:
                unknown.append(candidate)

        for entry in unknown:
            try:
                snapshot = await ItemService.get_latest_item(db, self.catalog, entry.item_id)
            except CatalogError as e:
                logger.warning(f"Could not fetch item {entry.item_id}: {e}")
                result.failed.append(entry)
                continue

            candidate = TrackedItem(snapshot=snapshot, last_notified_at=entry.last_notified_at, note=entry.note)
            if candidate.is_updated:
                result.updated.append(candidate)
            else:
                result.unchanged.append(candidate)

        logger.debug(
            f"Detection finished: {len(result.updated)} updated, "
            f"{len(result.failed)} failed, {len(result.unchanged)} unchanged "
            f"({len(unknown)} forced re-checks)"
        )
        return result

    async def detect_for_server(self, db: AsyncSession, server_id: int) -> DetectionResult:
        """Load a server's subscriptions and run detection on them."""
        subscriptions = await SubscriptionService.get_subscriptions(db, server_id)
        tracked = [TrackedItem.from_subscription(sub) for sub in subscriptions]

        return await self.detect(db, tracked)
