"""Start and help command handlers."""
import logging
from telegram import Update
from telegram.ext import ContextTypes
from workshop_tracker.bot.handlers.common import ERROR_MESSAGE
from workshop_tracker.core.database import AsyncSessionLocal
from workshop_tracker.services import ServerService

logger = logging.getLogger(__name__)

HELP_MESSAGE = """
Workshop Update Tracker

I watch Steam Workshop items and post here when they are updated.

Setup:
/register_channel [chat_id] - Send updates to this chat (or another one)
/set_schedule <hours> - Check for updates every N hours

Tracking:
/add <item_id> - Track an item
/add_multiple <id,id,...> - Track several items
/add_collection <collection_id> - Track every item of a collection
/remove <item_id|name> - Stop tracking an item
/remove_all - Stop tracking everything
/list - Show tracked items
/note <item_id> [text] - Attach a note to an item (empty clears it)

Status:
/info - Tracking status
/restart - Restart the tracking job
/changes_since <mm/dd/yy> - Items updated since a date (UTC)
""".strip()


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /start command.
    Registers the chat and shows the help text.
    """
    try:
        async with AsyncSessionLocal() as db:
            await ServerService.add_server(db, update.effective_chat.id)

        await update.message.reply_text(HELP_MESSAGE)
    except Exception as e:
        logger.error(f"Error in start_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handle /help command."""
    await update.message.reply_text(HELP_MESSAGE)
