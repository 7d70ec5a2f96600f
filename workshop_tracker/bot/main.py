"""Telegram bot main entry point."""
import asyncio
import logging
import traceback
from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    ChatMemberHandler,
    CommandHandler,
    ContextTypes
)
from workshop_tracker.core.config import settings
from workshop_tracker.core.database import init_db, close_db
from workshop_tracker.core.exceptions import BootstrapError
from workshop_tracker.scheduler import TrackingScheduler
from workshop_tracker.workers import TelegramNotifier
from workshop_tracker.bot.handlers.start import start_command, help_command
from workshop_tracker.bot.handlers.settings import (
    register_channel_command,
    set_schedule_command,
    restart_command,
    info_command
)
from workshop_tracker.bot.handlers.watchlist import (
    add_command,
    add_multiple_command,
    add_collection_command,
    remove_command,
    remove_all_command,
    list_command,
    note_command,
    changes_since_command
)
from workshop_tracker.bot.handlers.callbacks import button_callback
from workshop_tracker.bot.handlers.membership import chat_member_handler

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, settings.log_level)
)
logger = logging.getLogger(__name__)


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors globally for the Telegram bot.

    Logs the error and tells the user something went wrong.
    """
    tb_list = traceback.format_exception(None, context.error, context.error.__traceback__)
    logger.error(f"Exception while handling an update: {context.error}")
    logger.error(f"Traceback:\n{''.join(tb_list)}")

    if isinstance(update, Update) and update.effective_chat:
        logger.error(f"Chat: {update.effective_chat.id}")

    if isinstance(update, Update) and update.effective_message:
        try:
            await update.effective_message.reply_text(
                "Sorry, an error occurred while processing your request. "
                "Please try again later."
            )
        except Exception as e:
            logger.error(f"Failed to send error message to user: {e}")


async def _delayed_bootstrap(scheduler: TrackingScheduler, notifier: TelegramNotifier):
    # Let polling come up before the first jobs start
    await asyncio.sleep(settings.bootstrap_delay_seconds)
    try:
        await scheduler.bootstrap(notifier)
    except BootstrapError as e:
        logger.error(f"Failed to bootstrap tracking jobs: {e}", exc_info=True)


async def post_init(application: Application):
    """Create tables, build the scheduler and schedule job bootstrap."""
    await init_db()

    scheduler = TrackingScheduler()
    notifier = TelegramNotifier(application.bot)
    scheduler.bind_notifier(notifier)
    application.bot_data["scheduler"] = scheduler

    application.bot_data["bootstrap_task"] = asyncio.create_task(
        _delayed_bootstrap(scheduler, notifier)
    )


async def post_shutdown(application: Application):
    """Stop every tracking job and close the database."""
    task = application.bot_data.get("bootstrap_task")
    if task is not None and not task.done():
        task.cancel()

    scheduler = application.bot_data.get("scheduler")
    if scheduler is not None:
        await scheduler.shutdown()

    await close_db()


def build_application() -> Application:
    """Create the bot application with all handlers registered."""
    application = (
        Application.builder()
        .token(settings.telegram_bot_token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    application.add_error_handler(error_handler)

    # Register command handlers
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("register_channel", register_channel_command))
    application.add_handler(CommandHandler("set_schedule", set_schedule_command))
    application.add_handler(CommandHandler("restart", restart_command))
    application.add_handler(CommandHandler("info", info_command))
    application.add_handler(CommandHandler("add", add_command))
    application.add_handler(CommandHandler("add_multiple", add_multiple_command))
    application.add_handler(CommandHandler("add_collection", add_collection_command))
    application.add_handler(CommandHandler("remove", remove_command))
    application.add_handler(CommandHandler("remove_all", remove_all_command))
    application.add_handler(CommandHandler("list", list_command))
    application.add_handler(CommandHandler("note", note_command))
    application.add_handler(CommandHandler("changes_since", changes_since_command))

    # Register callback query and membership handlers
    application.add_handler(CallbackQueryHandler(button_callback))
    application.add_handler(ChatMemberHandler(chat_member_handler, ChatMemberHandler.MY_CHAT_MEMBER))

    return application


def main():
    """Start the Telegram bot."""
    logger.info("=" * 60)
    logger.info("Starting workshop tracker bot...")
    logger.info(f"Log level: {settings.log_level}")
    logger.info("=" * 60)

    application = build_application()

    logger.info("All handlers registered successfully, polling for updates")
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
