"""Core package initialization."""
from workshop_tracker.core.config import settings
from workshop_tracker.core.database import Base, AsyncSessionLocal, init_db, close_db

__all__ = ["settings", "Base", "AsyncSessionLocal", "init_db", "close_db"]
