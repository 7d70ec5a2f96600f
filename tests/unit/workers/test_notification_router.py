"""Unit tests for NotificationRouter and TelegramNotifier.

This module tests chunked delivery, per-chunk advancement of
last_notified_at and delivery failure handling.
"""
import pytest
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import select
from telegram.constants import ParseMode
from telegram.error import TelegramError

from workshop_tracker.core.exceptions import DeliveryError, NoDestinationConfigured
from workshop_tracker.models import Subscription
from workshop_tracker.providers.models import ItemSnapshot
from workshop_tracker.scheduler.detector import DetectionResult, TrackedItem
from workshop_tracker.utils.formatting import FAILED_HEADING, UPDATED_HEADING, MessageBatch, MessageEntry
from workshop_tracker.utils.time import unix_now
from workshop_tracker.workers.notification_router import NotificationRouter, Notifier, TelegramNotifier


class RecordingNotifier(Notifier):
    """Notifier that records batches and can fail on a given delivery."""

    def __init__(self, fail_on: Optional[int] = None):
        self.delivered: List[MessageBatch] = []
        self.fail_on = fail_on
        self.attempts = 0

    async def deliver(self, destination_id: int, batch: MessageBatch):
        self.attempts += 1
        if self.fail_on is not None and self.attempts == self.fail_on:
            raise DeliveryError(destination_id, "chat unavailable")
        self.delivered.append(batch)


def tracked(item_id: int, updated_at: int = 5000, last_notified_at: int = 0, note=None) -> TrackedItem:
    return TrackedItem(
        snapshot=ItemSnapshot(id=item_id, name=f"Item {item_id}", updated_at=updated_at),
        last_notified_at=last_notified_at,
        note=note
    )


async def notified_marks(session_factory, server_id: int) -> dict:
    async with session_factory() as session:
        result = await session.execute(
            select(Subscription.item_id, Subscription.last_notified_at)
            .where(Subscription.server_id == server_id)
        )
        return dict(result.all())


# ============================================================================
# Tests for dispatch
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestDispatch:
    """Test dispatch method."""

    async def test_single_message(self, db, seed, session_factory):
        """✅ Up to five updates → one unlabelled message, marks advanced."""
        item_ids = [1, 2, 3]
        await seed(42, items={i: 5000 for i in item_ids}, last_notified={i: 0 for i in item_ids}, destination_id=99)
        notifier = RecordingNotifier()
        before = unix_now()

        advanced = await NotificationRouter(notifier, chunk_size=5).dispatch(
            db, 42, DetectionResult(updated=[tracked(i) for i in item_ids])
        )

        assert advanced == item_ids
        assert len(notifier.delivered) == 1
        assert notifier.delivered[0].heading == UPDATED_HEADING
        marks = await notified_marks(session_factory, 42)
        assert all(mark >= before for mark in marks.values())

    @pytest.mark.critical
    async def test_twelve_items_three_parts(self, db, seed, session_factory):
        """✅ 12 updates with chunk size 5 → parts 1/3, 2/3, 3/3; all 12 advanced."""
        item_ids = list(range(1, 13))
        await seed(42, items={i: 5000 for i in item_ids}, last_notified={i: 0 for i in item_ids}, destination_id=99)
        notifier = RecordingNotifier()

        advanced = await NotificationRouter(notifier, chunk_size=5).dispatch(
            db, 42, DetectionResult(updated=[tracked(i) for i in item_ids])
        )

        headings = [batch.heading for batch in notifier.delivered]
        assert headings == [
            f"{UPDATED_HEADING} Part 1/3",
            f"{UPDATED_HEADING} Part 2/3",
            f"{UPDATED_HEADING} Part 3/3",
        ]
        assert [len(batch.entries) for batch in notifier.delivered] == [5, 5, 2]
        assert sorted(advanced) == item_ids
        marks = await notified_marks(session_factory, 42)
        assert all(mark > 0 for mark in marks.values())

    @pytest.mark.critical
    async def test_failure_on_second_chunk(self, db, seed, session_factory):
        """✅ Chunk 2 of 3 fails → only chunk 1 advanced, DeliveryError raised."""
        item_ids = list(range(1, 13))
        await seed(42, items={i: 5000 for i in item_ids}, last_notified={i: 0 for i in item_ids}, destination_id=99)
        notifier = RecordingNotifier(fail_on=2)

        with pytest.raises(DeliveryError) as exc_info:
            await NotificationRouter(notifier, chunk_size=5).dispatch(
                db, 42, DetectionResult(updated=[tracked(i) for i in item_ids])
            )

        assert exc_info.value.delivered_chunks == 1
        assert notifier.attempts == 2
        marks = await notified_marks(session_factory, 42)
        assert {i for i, mark in marks.items() if mark > 0} == {1, 2, 3, 4, 5}
        assert all(marks[i] == 0 for i in range(6, 13))

    async def test_failed_and_unchanged_not_advanced(self, db, seed, session_factory):
        """✅ Failed items are reported but keep their marks."""
        await seed(42, items={1: 5000, 2: 5000, 3: 100}, last_notified={1: 0, 2: 0, 3: 100}, destination_id=99)
        notifier = RecordingNotifier()

        result = DetectionResult(updated=[tracked(1)], failed=[tracked(2)], unchanged=[tracked(3, 100, 100)])
        advanced = await NotificationRouter(notifier).dispatch(db, 42, result)

        assert advanced == [1]
        assert [batch.heading for batch in notifier.delivered] == [UPDATED_HEADING, FAILED_HEADING]
        assert notifier.delivered[1].entries[0].title == "Item 2, Id: 2"
        marks = await notified_marks(session_factory, 42)
        assert marks[2] == 0
        assert marks[3] == 100

    async def test_nothing_to_send(self, db, seed):
        """✅ No updated and no failed items → no messages."""
        await seed(42, destination_id=99)
        notifier = RecordingNotifier()

        advanced = await NotificationRouter(notifier).dispatch(db, 42, DetectionResult())

        assert advanced == []
        assert notifier.delivered == []

    async def test_no_destination(self, db, seed):
        """✅ Missing update channel → NoDestinationConfigured."""
        await seed(42)

        with pytest.raises(NoDestinationConfigured):
            await NotificationRouter(RecordingNotifier()).dispatch(
                db, 42, DetectionResult(updated=[tracked(1)])
            )

    async def test_note_carried_into_entry(self, db, seed):
        """✅ Subscription note appears on the entry."""
        await seed(42, items={1: 5000}, last_notified={1: 0}, destination_id=99)
        notifier = RecordingNotifier()

        await NotificationRouter(notifier).dispatch(
            db, 42, DetectionResult(updated=[tracked(1, note="check config")])
        )

        assert notifier.delivered[0].entries[0].note == "check config"

    async def test_preview_carried_into_entry(self, db, seed):
        """✅ Snapshot preview image appears on the entry."""
        await seed(42, items={1: 5000}, last_notified={1: 0}, destination_id=99)
        notifier = RecordingNotifier()
        entry = TrackedItem(
            snapshot=ItemSnapshot(id=1, name="Item 1", updated_at=5000, preview_url="https://img/1.jpg"),
            last_notified_at=0
        )

        await NotificationRouter(notifier).dispatch(db, 42, DetectionResult(updated=[entry]))

        assert notifier.delivered[0].entries[0].image_url == "https://img/1.jpg"


# ============================================================================
# Tests for send_batches
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestSendBatches:
    """Test send_batches method."""

    async def test_counts_messages(self):
        """✅ Returns the number of delivered messages."""
        notifier = RecordingNotifier()
        entries = [MessageEntry(title=str(i), url="https://example.com") for i in range(7)]

        sent = await NotificationRouter(notifier, chunk_size=5).send_batches(1, "Heading", entries)

        assert sent == 2

    async def test_empty(self):
        """✅ No entries → nothing sent."""
        notifier = RecordingNotifier()

        assert await NotificationRouter(notifier).send_batches(1, "Heading", []) == 0
        assert notifier.attempts == 0


# ============================================================================
# Tests for TelegramNotifier
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestTelegramNotifier:
    """Test TelegramNotifier."""

    async def test_sends_html(self):
        """✅ Batch rendered as HTML and sent to the destination."""
        bot = MagicMock()
        bot.send_message = AsyncMock()
        batch = MessageBatch("Heading", [MessageEntry(title="A & B", url="https://example.com/?id=1")])

        await TelegramNotifier(bot).deliver(99, batch)

        kwargs = bot.send_message.call_args.kwargs
        assert kwargs["chat_id"] == 99
        assert kwargs["parse_mode"] == ParseMode.HTML
        assert "A &amp; B" in kwargs["text"]

    async def test_telegram_error(self):
        """✅ TelegramError → DeliveryError."""
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=TelegramError("Forbidden"))

        with pytest.raises(DeliveryError) as exc_info:
            await TelegramNotifier(bot).deliver(99, MessageBatch("Heading"))

        assert exc_info.value.destination_id == 99
        assert isinstance(exc_info.value.__cause__, TelegramError)

    async def test_single_preview_sent_as_photo(self):
        """✅ One entry with a preview image → text, then the photo."""
        bot = MagicMock()
        bot.send_message = AsyncMock()
        bot.send_photo = AsyncMock()
        bot.send_media_group = AsyncMock()
        batch = MessageBatch("h", [
            MessageEntry(title="Map", url="https://x/1", image_url="https://img/preview.jpg"),
            MessageEntry(title="No image", url="https://x/2"),
        ])

        await TelegramNotifier(bot).deliver(99, batch)

        bot.send_message.assert_awaited_once()
        bot.send_photo.assert_awaited_once_with(chat_id=99, photo="https://img/preview.jpg", caption="Map")
        bot.send_media_group.assert_not_awaited()

    async def test_several_previews_sent_as_media_group(self):
        """✅ Several preview images → one media group in entry order."""
        bot = MagicMock()
        bot.send_message = AsyncMock()
        bot.send_photo = AsyncMock()
        bot.send_media_group = AsyncMock()
        batch = MessageBatch("h", [
            MessageEntry(title=f"Item {i}", url=f"https://x/{i}", image_url=f"https://img/{i}.jpg")
            for i in range(3)
        ])

        await TelegramNotifier(bot).deliver(99, batch)

        kwargs = bot.send_media_group.call_args.kwargs
        assert kwargs["chat_id"] == 99
        assert [media.media for media in kwargs["media"]] == [f"https://img/{i}.jpg" for i in range(3)]
        assert [media.caption for media in kwargs["media"]] == ["Item 0", "Item 1", "Item 2"]
        bot.send_photo.assert_not_awaited()

    async def test_no_previews(self):
        """✅ Entries without images → text only."""
        bot = MagicMock()
        bot.send_message = AsyncMock()
        bot.send_photo = AsyncMock()
        bot.send_media_group = AsyncMock()

        await TelegramNotifier(bot).deliver(99, MessageBatch("h", [MessageEntry(title="A", url="https://x/1")]))

        bot.send_photo.assert_not_awaited()
        bot.send_media_group.assert_not_awaited()

    async def test_preview_failure_keeps_delivery(self):
        """✅ Telegram cannot fetch the image → batch still counts as delivered."""
        bot = MagicMock()
        bot.send_message = AsyncMock()
        bot.send_photo = AsyncMock(side_effect=TelegramError("Wrong file identifier/HTTP URL specified"))
        batch = MessageBatch("h", [MessageEntry(title="Map", url="https://x/1", image_url="https://img/bad.jpg")])

        await TelegramNotifier(bot).deliver(99, batch)

        bot.send_message.assert_awaited_once()
        bot.send_photo.assert_awaited_once()
