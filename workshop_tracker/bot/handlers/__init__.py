"""Telegram command, callback and membership handlers."""
