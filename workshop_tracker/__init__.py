"""Steam Workshop update tracker for Telegram chats."""

__version__ = "0.1.0"
