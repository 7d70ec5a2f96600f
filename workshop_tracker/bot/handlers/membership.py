"""Handlers for the bot being added to or removed from chats."""
import logging
from telegram import ChatMember, Update
from telegram.ext import ContextTypes
from workshop_tracker.bot.handlers.common import get_scheduler
from workshop_tracker.core.database import AsyncSessionLocal
from workshop_tracker.services import ServerService

logger = logging.getLogger(__name__)

PRESENT_STATUSES = {ChatMember.MEMBER, ChatMember.ADMINISTRATOR, ChatMember.OWNER}


def membership_change(update: Update):
    """
    Tell whether the bot joined or left a chat.

    Returns:
        (was_member, is_member), or None if this is not a membership update
    """
    change = update.my_chat_member
    if change is None:
        return None

    was_member = change.old_chat_member.status in PRESENT_STATUSES
    is_member = change.new_chat_member.status in PRESENT_STATUSES
    return was_member, is_member


async def chat_member_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Register chats the bot joins and forget chats it leaves.

    Leaving stops the chat's tracking job and deletes its data.
    """
    result = membership_change(update)
    if result is None:
        return

    was_member, is_member = result
    server_id = update.effective_chat.id

    try:
        if is_member and not was_member:
            async with AsyncSessionLocal() as db:
                await ServerService.add_server(db, server_id)
            logger.info(f"Joined chat: {server_id}")

        elif was_member and not is_member:
            get_scheduler(context).stop(server_id)
            async with AsyncSessionLocal() as db:
                await ServerService.remove_server(db, server_id)
            logger.info(f"Left chat: {server_id}")
    except Exception as e:
        logger.error(f"Error handling membership change for chat {server_id}: {e}", exc_info=True)
