"""Telegram bot: command handlers and entry point."""
