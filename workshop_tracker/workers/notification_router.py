"""Notification router for delivering item update batches to servers."""
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional, Sequence
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from telegram import Bot, InputMediaPhoto
from telegram.constants import MediaGroupLimit, ParseMode
from telegram.error import TelegramError
from workshop_tracker.core.config import settings
from workshop_tracker.core.exceptions import DeliveryError, NoDestinationConfigured, PersistenceError
from workshop_tracker.services import ServerService, SubscriptionService
from workshop_tracker.utils.formatting import (
    FAILED_HEADING,
    UPDATED_HEADING,
    MessageBatch,
    MessageEntry,
    build_batches,
    chunk,
    failed_entry,
    item_entry,
    render_batch_html
)
from workshop_tracker.utils.time import unix_now

if TYPE_CHECKING:
    from workshop_tracker.scheduler.detector import DetectionResult

logger = logging.getLogger(__name__)

MEDIA_GROUP_LIMIT = int(MediaGroupLimit.MAX_MEDIA_LENGTH)


class Notifier(ABC):
    """Delivers rendered batches to a destination chat."""

    @abstractmethod
    async def deliver(self, destination_id: int, batch: MessageBatch):
        """
        Deliver one message batch.

        Raises:
            DeliveryError: If the destination did not accept the message
        """
        pass


class TelegramNotifier(Notifier):
    """Notifier that posts batches as HTML messages through the Bot API.

    Entries with a preview image are followed by the images: a single photo
    on its own, several as media groups. The text message is the delivery;
    an image Telegram cannot fetch is logged and skipped.
    """

    def __init__(self, bot: Optional[Bot] = None):
        self.bot = bot or Bot(token=settings.telegram_bot_token)

    async def deliver(self, destination_id: int, batch: MessageBatch):
        try:
            await self.bot.send_message(
                chat_id=destination_id,
                text=render_batch_html(batch),
                parse_mode=ParseMode.HTML
            )
        except TelegramError as e:
            raise DeliveryError(
                destination_id, f"Telegram rejected message for chat {destination_id}: {e}"
            ) from e

        await self._send_previews(destination_id, [entry for entry in batch.entries if entry.image_url])

        logger.debug(f"Delivered batch '{batch.heading}' ({len(batch.entries)} entries) to {destination_id}")

    async def _send_previews(self, destination_id: int, entries: List[MessageEntry]):
        for group in chunk(entries, MEDIA_GROUP_LIMIT):
            try:
                if len(group) == 1:
                    await self.bot.send_photo(
                        chat_id=destination_id,
                        photo=group[0].image_url,
                        caption=group[0].title
                    )
                else:
                    await self.bot.send_media_group(
                        chat_id=destination_id,
                        media=[InputMediaPhoto(media=entry.image_url, caption=entry.title) for entry in group]
                    )
            except TelegramError as e:
                logger.warning(f"Could not send {len(group)} preview images to chat {destination_id}: {e}")


class NotificationRouter:
    """Turn detection results into batched notifications.

    Updated items are sent in chunks; after each chunk is confirmed the
    subscriptions in that chunk get their last_notified_at advanced. A failed
    chunk stops the rest, so a crash or delivery error can repeat an update
    on the next cycle but never drop one.
    """

    def __init__(self, notifier: Notifier, chunk_size: Optional[int] = None):
        self.notifier = notifier
        self.chunk_size = chunk_size or settings.notification_chunk_size

    async def send_batches(self, destination_id: int, heading: str, entries: Sequence[MessageEntry]) -> int:
        """
        Deliver entries under a heading, chunked when needed.

        Returns:
            Number of messages delivered

        Raises:
            DeliveryError: On the first chunk that fails; delivered_chunks
                tells how many went out before it
        """
        batches = build_batches(heading, entries, self.chunk_size)

        for index, batch in enumerate(batches):
            try:
                await self.notifier.deliver(destination_id, batch)
            except DeliveryError as e:
                raise DeliveryError(destination_id, str(e), delivered_chunks=index) from e

        return len(batches)

    async def dispatch(self, db: AsyncSession, server_id: int, result: "DetectionResult") -> List[int]:
        """
        Notify a server about its updated and failed items.

        Args:
            db: Database session
            server_id: Server id
            result: Output of the change detector

        Returns:
            Ids of items whose last_notified_at was advanced

        Raises:
            NoDestinationConfigured: If the server has no update channel
            DeliveryError: If a chunk could not be delivered
            PersistenceError: If advancing notification marks failed
        """
        destination_id = await ServerService.get_destination(db, server_id)
        if destination_id is None:
            raise NoDestinationConfigured(server_id)

        advanced: List[int] = []

        if not result.updated:
            logger.info(f"No updates for server: {server_id}")
        else:
            logger.info(f"Found {len(result.updated)} updates for server: {server_id}")
            entries = [item_entry(tracked.snapshot, tracked.note) for tracked in result.updated]
            batches = build_batches(UPDATED_HEADING, entries, self.chunk_size)
            groups = chunk(result.updated, self.chunk_size)

            for index, (batch, group) in enumerate(zip(batches, groups)):
                try:
                    await self.notifier.deliver(destination_id, batch)
                except DeliveryError as e:
                    logger.error(
                        f"Delivery to server {server_id} failed on part {index + 1}/{len(batches)}: {e}"
                    )
                    raise DeliveryError(destination_id, str(e), delivered_chunks=index) from e

                item_ids = [tracked.item_id for tracked in group]
                try:
                    await SubscriptionService.advance_last_notified(db, server_id, item_ids, unix_now())
                except SQLAlchemyError as e:
                    raise PersistenceError(
                        f"Could not advance notification marks for server {server_id}: {e}"
                    ) from e
                advanced.extend(item_ids)

        if result.failed:
            logger.warning(f"{len(result.failed)} items could not be checked for server: {server_id}")
            await self.send_batches(
                destination_id,
                FAILED_HEADING,
                [failed_entry(tracked.snapshot) for tracked in result.failed]
            )

        return advanced
