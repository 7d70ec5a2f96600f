"""Callback query handlers for inline buttons."""
import logging
from telegram import Update
from telegram.ext import ContextTypes
from workshop_tracker.core.database import AsyncSessionLocal
from workshop_tracker.services import SubscriptionService

logger = logging.getLogger(__name__)


async def button_callback(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle callback queries from confirmation buttons.

    Callback data format: "<action>:<answer>"
    Currently only "remove_all:yes" and "remove_all:no" are sent.
    """
    try:
        query = update.callback_query
        await query.answer()

        action, _, answer = (query.data or "").partition(":")
        if action != "remove_all" or answer not in ("yes", "no"):
            await query.edit_message_text("Invalid callback data")
            return

        if answer == "no":
            await query.edit_message_text("Cancelled.")
            return

        server_id = update.effective_chat.id
        async with AsyncSessionLocal() as db:
            removed = await SubscriptionService.remove_all_subscriptions(db, server_id)

        logger.info(f"Server {server_id} stopped tracking all {removed} items")
        await query.edit_message_text(f"Done! Removed {removed} items.")
    except Exception as e:
        logger.error(f"Error in button_callback: {e}", exc_info=True)
        try:
            await update.callback_query.edit_message_text("❌ An error occurred")
        except Exception:
            logger.debug("Could not edit callback message after error")
