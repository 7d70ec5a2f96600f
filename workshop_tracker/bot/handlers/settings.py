"""Tracking settings handlers: update channel, schedule, restart and status."""
import logging
from telegram import Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes
from workshop_tracker.bot.handlers.common import (
    ERROR_MESSAGE,
    NOT_STARTED_MESSAGE,
    get_scheduler,
    require_destination
)
from workshop_tracker.core.config import settings
from workshop_tracker.core.database import AsyncSessionLocal
from workshop_tracker.core.exceptions import NoScheduleConfigured
from workshop_tracker.services import ServerService, SubscriptionService
from workshop_tracker.utils.formatting import format_info
from workshop_tracker.utils.time import format_relative

logger = logging.getLogger(__name__)


async def register_channel_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /register_channel [chat_id] command.
    Sets the chat that receives update batches (defaults to this chat).
    """
    try:
        server_id = update.effective_chat.id

        if context.args:
            try:
                destination_id = int(context.args[0])
            except ValueError:
                await update.message.reply_text("Please provide a valid chat id.")
                return

            try:
                await context.bot.get_chat(destination_id)
            except TelegramError:
                await update.message.reply_text("Please provide a valid chat id.")
                return
        else:
            destination_id = server_id

        async with AsyncSessionLocal() as db:
            await ServerService.add_server(db, server_id)
            await ServerService.set_destination(db, server_id, destination_id)

        await update.message.reply_text("✅ Update channel set.")
    except Exception as e:
        logger.error(f"Error in register_channel_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def set_schedule_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /set_schedule <hours> command.
    Saves the polling interval and (re)starts the tracking job.
    """
    try:
        server_id = update.effective_chat.id

        if not context.args:
            await update.message.reply_text(
                "Please provide an interval.\nUsage: /set_schedule HOURS\nExample: /set_schedule 6"
            )
            return

        try:
            hours = int(context.args[0])
        except ValueError:
            await update.message.reply_text("The interval must be a whole number of hours.")
            return

        if not settings.min_schedule_hours <= hours <= settings.max_schedule_hours:
            await update.message.reply_text(
                f"The interval must be between {settings.min_schedule_hours} "
                f"and {settings.max_schedule_hours} hours."
            )
            return

        async with AsyncSessionLocal() as db:
            if await require_destination(update, db) is None:
                return
            await ServerService.set_schedule(db, server_id, hours)

        if await get_scheduler(context).start_or_restart(server_id) is None:
            logger.warning(f"Schedule saved but no tracking job started for server: {server_id}")
            await update.message.reply_text(f"Schedule saved. {NOT_STARTED_MESSAGE}")
            return

        await update.message.reply_text(f"✅ Schedule set. Checking for updates every {hours} hours.")
    except Exception as e:
        logger.error(f"Error in set_schedule_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def restart_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /restart command.
    Replaces the running tracking job with a fresh one.
    """
    try:
        if await get_scheduler(context).start_or_restart(update.effective_chat.id) is None:
            await update.message.reply_text(NOT_STARTED_MESSAGE)
            return

        await update.message.reply_text("✅ Restarted tracking job.")
    except NoScheduleConfigured:
        await update.message.reply_text("Please set a schedule first with /set_schedule.")
    except Exception as e:
        logger.error(f"Error in restart_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)


async def info_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """
    Handle /info command.
    Shows item count, job status and the time of the last run.
    """
    try:
        server_id = update.effective_chat.id

        async with AsyncSessionLocal() as db:
            count = await SubscriptionService.count_subscriptions(db, server_id)
            hours = await ServerService.get_schedule(db, server_id)
            last_ran = await ServerService.get_last_ran(db, server_id)

        is_running = get_scheduler(context).is_running(server_id)

        await update.message.reply_text(
            format_info(count, is_running, hours, format_relative(last_ran))
        )
    except Exception as e:
        logger.error(f"Error in info_command: {e}", exc_info=True)
        await update.message.reply_text(ERROR_MESSAGE)
