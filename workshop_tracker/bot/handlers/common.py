"""Helpers shared by the command handlers."""
from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from telegram import Update
from telegram.ext import ContextTypes
from workshop_tracker.providers import CatalogError
from workshop_tracker.providers.models import ItemSnapshot
from workshop_tracker.scheduler import TrackingScheduler
from workshop_tracker.services import ServerService, ItemService, SubscriptionService

ERROR_MESSAGE = "❌ An error occurred processing your request. Please try again later."
NO_CHANNEL_MESSAGE = "Please set an update channel first with /register_channel."
NOT_STARTED_MESSAGE = "❌ The tracking job could not be started yet. Please try again in a minute."


def get_scheduler(context: ContextTypes.DEFAULT_TYPE) -> TrackingScheduler:
    """The scheduler created at startup."""
    return context.bot_data["scheduler"]


async def require_destination(update: Update, db: AsyncSession) -> Optional[int]:
    """Return the chat's update channel, or tell the user to register one."""
    destination_id = await ServerService.get_destination(db, update.effective_chat.id)
    if destination_id is None:
        await update.message.reply_text(NO_CHANNEL_MESSAGE)
    return destination_id


def parse_item_ids(raw: str) -> Tuple[List[int], List[str]]:
    """
    Parse a comma separated list of item ids.

    Returns:
        (ids, invalid) where invalid holds the pieces that are not ids
    """
    ids: List[int] = []
    invalid: List[str] = []

    for piece in raw.split(","):
        piece = piece.strip()
        if not piece:
            continue
        if piece.isdigit():
            ids.append(int(piece))
        else:
            invalid.append(piece)

    return ids, invalid


async def subscribe_items(
    db: AsyncSession,
    scheduler: TrackingScheduler,
    server_id: int,
    item_ids: List[int]
) -> Tuple[List[ItemSnapshot], List[int]]:
    """
    Look up and subscribe to several items, continuing past failures.

    Returns:
        (added snapshots, ids that could not be fetched)
    """
    added: List[ItemSnapshot] = []
    failed: List[int] = []

    for item_id in item_ids:
        try:
            snapshot = await ItemService.get_item(db, scheduler.catalog, item_id)
        except CatalogError:
            failed.append(item_id)
            continue

        await SubscriptionService.add_subscription(db, server_id, item_id)
        added.append(snapshot)

    return added, failed
