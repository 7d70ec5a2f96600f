"""Watchlist management command handlers."""
import logging
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.ext import ContextTypes
from workshop_tracker.bot.handlers.common import (
    ERROR_MESSAGE,
    get_scheduler,
    parse_item_ids,
    require_destination,
    subscribe_items
)
from workshop_tracker.core.config import settings
from workshop_tracker.core.database import AsyncSessionLocal
from workshop_tracker.core.exceptions import DeliveryError
from workshop_tracker.providers import CatalogError
from workshop_tracker.providers.models import ItemSnapshot
from workshop_tracker.services import ItemService, SubscriptionService
from workshop_tracker.utils.formatting import (
    CHANGES_HEADING,
    format_item_added,
    format_item_removed,
    format_tracked_list,
    item_entry
)
from workshop_tracker.utils.time import parse_since_date
from workshop_tracker.workers import NotificationRouter, TelegramNotifier

logger = logging.getLogger(__name__)


async def _announce(update: Update, context: ContextTypes.DEFAULT_TYPE, destination_id: int, text: str):
    """Post a confirmation to the update channel and, if different, to this chat."""
    await context.bot.send_message(chat_id=destination_id, text=text, parse_mode=ParseMode.HTML)
    if destination_id != update.effective_chat.id:
        await update.message.reply_text(text, parse_mode=ParseMode.HTML)


async def add_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /add <item_id> command.
    Starts tracking a single Workshop item.
    """
    try:
        server_id = update.effective_chat.id

        if not context.args or not context.args[0].isdigit():
            await update.message.reply_text(
                "Please provide an item id.\nUsage: /add ITEM_ID\nExample: /add 2503622437"
            )
            return

        item_id = int(context.args[0])

        async with AsyncSessionLocal() as db:
            destination_id = await require_destination(update, db)
            if destination_id is None:
                return

            try:
                snapshot = await ItemService.get_item(db, get_scheduler(context).catalog, item_id)
            except CatalogError as e:
                logger.warning(f"Could not look up item {item_id}: {e}")
                await update.message.reply_text(f"❌ Could not find item {item_id}.")
                return

            await SubscriptionService.add_subscription(db, server_id, item_id)

        logger.info(f"Server {server_id} is now tracking item {item_id}")
        await _announce(update, context, destination_id, format_item_added(snapshot))
    except Exception as e:
        logger.error(f"Error in add_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def add_multiple_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /add_multiple <id,id,...> command.
    Starts tracking several items; unknown ids are reported, not fatal.
    """
    try:
        server_id = update.effective_chat.id
        item_ids, invalid = parse_item_ids(" ".join(context.args or []).replace(" ", ","))

        if not item_ids:
            await update.message.reply_text(
                "Please provide item ids.\nUsage: /add_multiple ID,ID,...\n"
                "Example: /add_multiple 2503622437,2285346337"
            )
            return

        async with AsyncSessionLocal() as db:
            destination_id = await require_destination(update, db)
            if destination_id is None:
                return

            added, failed = await subscribe_items(db, get_scheduler(context), server_id, item_ids)

        await _report_added(update, context, destination_id, added, failed + invalid)
    except Exception as e:
        logger.error(f"Error in add_multiple_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def add_collection_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /add_collection <collection_id> command.
    Starts tracking every item in a Workshop collection.
    """
    try:
        server_id = update.effective_chat.id

        if not context.args or not context.args[0].isdigit():
            await update.message.reply_text(
                "Please provide a collection id.\nUsage: /add_collection COLLECTION_ID"
            )
            return

        collection_id = int(context.args[0])
        scheduler = get_scheduler(context)

        async with AsyncSessionLocal() as db:
            destination_id = await require_destination(update, db)
            if destination_id is None:
                return

            try:
                item_ids = await scheduler.catalog.fetch_collection(collection_id)
            except CatalogError as e:
                logger.warning(f"Could not look up collection {collection_id}: {e}")
                await update.message.reply_text(f"❌ Could not find collection {collection_id}.")
                return

            if not item_ids:
                await update.message.reply_text("That collection has no items.")
                return

            added, failed = await subscribe_items(db, scheduler, server_id, item_ids)

        await _report_added(update, context, destination_id, added, failed)
    except Exception as e:
        logger.error(f"Error in add_collection_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def _report_added(update, context, destination_id, added, failed):
    logger.info(f"Server {update.effective_chat.id} added {len(added)} items ({len(failed)} failed)")

    if added:
        await _announce(
            update, context, destination_id,
            format_tracked_list(added, heading=f"Added {len(added)} items:")
        )

    if failed:
        await update.message.reply_text(
            "Could not add: " + ", ".join(str(item_id) for item_id in failed)
        )
    elif not added:
        await update.message.reply_text("No items were added.")


async def remove_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /remove <item_id|name> command.
    Stops tracking an item, looked up by id or by its exact name.
    """
    try:
        server_id = update.effective_chat.id

        if not context.args:
            await update.message.reply_text(
                "Please provide an item id or name.\nUsage: /remove ITEM_ID_OR_NAME"
            )
            return

        query = " ".join(context.args)

        async with AsyncSessionLocal() as db:
            destination_id = await require_destination(update, db)
            if destination_id is None:
                return

            if query.isdigit():
                item_id = int(query)
                cached = await ItemService.get_cached(db, item_id)
                name = cached.name if cached else str(item_id)
            else:
                cached = await ItemService.get_item_by_name(db, query, server_id=server_id)
                if cached is None:
                    await update.message.reply_text(f"No tracked item named '{query}'.")
                    return
                item_id, name = cached.id, cached.name

            removed = await SubscriptionService.remove_subscription(db, server_id, item_id)

        if not removed:
            await update.message.reply_text(f"Item {item_id} is not being tracked.")
            return

        logger.info(f"Server {server_id} stopped tracking item {item_id}")
        await _announce(update, context, destination_id, format_item_removed(name, item_id))
    except Exception as e:
        logger.error(f"Error in remove_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def remove_all_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /remove_all command.
    Asks for confirmation with inline buttons; see callbacks.button_callback.
    """
    try:
        keyboard = InlineKeyboardMarkup([[
            InlineKeyboardButton("Yes, remove all", callback_data="remove_all:yes"),
            InlineKeyboardButton("Cancel", callback_data="remove_all:no")
        ]])

        await update.message.reply_text(
            "Are you sure you want to stop tracking every item?",
            reply_markup=keyboard
        )
    except Exception as e:
        logger.error(f"Error in remove_all_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def list_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /list command.
    Shows all tracked items from the cache.
    """
    try:
        async with AsyncSessionLocal() as db:
            subscriptions = await SubscriptionService.get_subscriptions(db, update.effective_chat.id)
            snapshots = [ItemSnapshot.from_row(sub.item) for sub in subscriptions]

        await update.message.reply_text(
            format_tracked_list(snapshots),
            parse_mode=ParseMode.HTML
        )
    except Exception as e:
        logger.error(f"Error in list_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def note_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /note <item_id> [text] command.
    Attaches a note shown with the item's update notifications.
    Without text the note is cleared.
    """
    try:
        server_id = update.effective_chat.id

        if not context.args or not context.args[0].isdigit():
            await update.message.reply_text(
                "Please provide an item id.\nUsage: /note ITEM_ID [TEXT]"
            )
            return

        item_id = int(context.args[0])
        note = " ".join(context.args[1:]).strip()

        if len(note) > settings.note_max_length:
            await update.message.reply_text(
                f"Notes can be at most {settings.note_max_length} characters."
            )
            return

        async with AsyncSessionLocal() as db:
            updated = await SubscriptionService.update_note(db, server_id, item_id, note)

        if not updated:
            await update.message.reply_text(f"Item {item_id} is not being tracked.")
        elif note:
            await update.message.reply_text(f"✅ Note saved for item {item_id}.")
        else:
            await update.message.reply_text(f"✅ Note cleared for item {item_id}.")
    except Exception as e:
        logger.error(f"Error in note_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def changes_since_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /changes_since <mm/dd/yy> command.
    Lists tracked items whose cached update time is after the given UTC date.
    """
    try:
        server_id = update.effective_chat.id

        if not context.args:
            await update.message.reply_text(
                "Please provide a date.\nUsage: /changes_since MM/DD/YY"
            )
            return

        try:
            since = parse_since_date(context.args[0])
        except ValueError as e:
            await update.message.reply_text(f"❌ {e}")
            return

        async with AsyncSessionLocal() as db:
            destination_id = await require_destination(update, db)
            if destination_id is None:
                return

            subscriptions = await SubscriptionService.get_changes_since(db, server_id, since)
            entries = [
                item_entry(ItemSnapshot.from_row(sub.item), sub.note)
                for sub in subscriptions
            ]

        if not entries:
            await update.message.reply_text(f"No tracked items were updated since {context.args[0]}.")
            return

        router = NotificationRouter(TelegramNotifier(context.bot))
        try:
            await router.send_batches(
                destination_id,
                CHANGES_HEADING.format(since=context.args[0]),
                entries
            )
        except DeliveryError as e:
            logger.warning(f"Could not deliver changes for server {server_id}: {e}")
            await update.message.reply_text("❌ Could not post the changes to the update channel.")
            return

        if destination_id != server_id:
            await update.message.reply_text(f"✅ Posted {len(entries)} changed items to the update channel.")
    except Exception as e:
        logger.error(f"Error in changes_since_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)
