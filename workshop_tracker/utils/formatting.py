"""Message batch construction and Telegram rendering."""
from dataclasses import dataclass, field
from html import escape
from typing import List, Optional, Sequence, TypeVar
from workshop_tracker.core.config import settings
from workshop_tracker.providers.models import ItemSnapshot


UPDATED_HEADING = "The following items have been updated:"
FAILED_HEADING = "The following items could not be checked:"
CHANGES_HEADING = "Items updated since {since}:"

T = TypeVar("T")


@dataclass
class MessageEntry:
    """One item inside a notification message."""
    title: str
    url: str
    image_url: Optional[str] = None
    note: Optional[str] = None


@dataclass
class MessageBatch:
    """A single message: a heading followed by ordered entries."""
    heading: str
    entries: List[MessageEntry] = field(default_factory=list)


def item_entry(snapshot: ItemSnapshot, note: Optional[str] = None) -> MessageEntry:
    """Entry for an updated item, with preview image and note."""
    return MessageEntry(
        title=snapshot.name,
        url=settings.item_url(snapshot.id),
        image_url=snapshot.preview_url,
        note=note
    )


def failed_entry(snapshot: ItemSnapshot) -> MessageEntry:
    """Entry for an item that could not be checked."""
    return MessageEntry(
        title=f"{snapshot.name}, Id: {snapshot.id}",
        url=settings.item_url(snapshot.id)
    )


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """Split a sequence into consecutive chunks of at most size elements."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def build_batches(heading: str, entries: Sequence[MessageEntry], chunk_size: int) -> List[MessageBatch]:
    """
    Group entries into messages.

    Up to chunk_size entries go out as one message. Longer lists are split
    into chunks of chunk_size, each heading labelled "Part i/n".

    Args:
        heading: Heading shared by all messages
        entries: Entries in delivery order
        chunk_size: Maximum entries per message

    Returns:
        Batches in delivery order (empty if there are no entries)
    """
    if not entries:
        return []

    if len(entries) <= chunk_size:
        return [MessageBatch(heading=heading, entries=list(entries))]

    parts = chunk(entries, chunk_size)
    return [
        MessageBatch(heading=f"{heading} Part {index}/{len(parts)}", entries=part)
        for index, part in enumerate(parts, start=1)
    ]


def render_batch_html(batch: MessageBatch) -> str:
    """Render a batch as Telegram HTML."""
    lines = [f"<b>{escape(batch.heading)}</b>", ""]

    for entry in batch.entries:
        lines.append(f'• <a href="{escape(entry.url)}">{escape(entry.title)}</a>')
        if entry.note:
            lines.append(f"  <i>Note:</i> {escape(entry.note)}")

    return "\n".join(lines)


def format_item_added(snapshot: ItemSnapshot) -> str:
    """Confirmation posted to the update channel when an item is added."""
    return f'Added item <a href="{escape(settings.item_url(snapshot.id))}">{escape(snapshot.name)}</a> to the tracked items.'


def format_item_removed(name: str, item_id: int) -> str:
    """Confirmation posted to the update channel when an item is removed."""
    return f'Removed item <a href="{escape(settings.item_url(item_id))}">{escape(name)}</a> from the tracked items.'


def format_tracked_list(snapshots: Sequence[ItemSnapshot], heading: str = "Currently tracked items:") -> str:
    """
    Format the tracked items of a server.

    Args:
        snapshots: Cached snapshots of tracked items
        heading: Title line of the list

    Returns:
        Formatted HTML message
    """
    if not snapshots:
        return "There are no tracked items."

    lines = [f"<b>{escape(heading)}</b>", ""]
    for snapshot in snapshots:
        lines.append(
            f'• <a href="{escape(settings.item_url(snapshot.id))}">{escape(snapshot.name)}</a> ({snapshot.id})'
        )

    return "\n".join(lines)


def format_info(count: int, is_running: bool, schedule_hours: Optional[int], last_ran: str) -> str:
    """Format the /info status message."""
    status = "running" if is_running else "not running"
    schedule = f"every {schedule_hours} h" if schedule_hours else "not set"

    return (
        f"This chat is subscribed to {count} items\n"
        f"The tracking job is {status}\n"
        f"Schedule: {schedule}\n"
        f"The last update was: {last_ran}"
    )
