"""Shared pytest fixtures for workshop tracker tests."""
import os

# Settings are read at import time
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:test-token")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from workshop_tracker.core.database import Base
from workshop_tracker.models import Item, Server, Subscription
from workshop_tracker.providers import CatalogError, CatalogSource
from workshop_tracker.providers.models import ItemSnapshot


class FakeCatalog(CatalogSource):
    """In-memory catalog source that records every call."""

    def __init__(self):
        self.items: Dict[int, ItemSnapshot] = {}
        self.collections: Dict[int, List[int]] = {}
        self.failing = set()
        self.calls: List[int] = []
        self.closed = False

    def put(self, item_id: int, updated_at: int, name: Optional[str] = None) -> ItemSnapshot:
        snapshot = ItemSnapshot(id=item_id, name=name or f"Item {item_id}", updated_at=updated_at)
        self.items[item_id] = snapshot
        return snapshot

    async def fetch_item(self, item_id: int) -> ItemSnapshot:
        self.calls.append(item_id)
        if item_id in self.failing or item_id not in self.items:
            raise CatalogError(f"Item {item_id} is not available")
        return self.items[item_id]

    async def fetch_collection(self, collection_id: int) -> List[int]:
        if collection_id not in self.collections:
            raise CatalogError(f"Collection {collection_id} is not available")
        return self.collections[collection_id]

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_catalog():
    """Empty in-memory catalog."""
    return FakeCatalog()


@pytest_asyncio.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    """Database session on the in-memory database."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(db):
    """Factory for servers, cached items and subscriptions."""

    async def _seed(
        server_id: int,
        items: Optional[Dict[int, int]] = None,
        last_notified: Optional[Dict[int, int]] = None,
        destination_id: Optional[int] = None,
        schedule_hours: Optional[int] = None,
        fetched_at: int = 0
    ) -> Server:
        """
        Args:
            server_id: Server to create
            items: item_id -> cached updated_at
            last_notified: item_id -> last_notified_at (subscribes the server)
            destination_id: Update channel
            schedule_hours: Polling interval
            fetched_at: Cache write time of every seeded item
        """
        server = Server(id=server_id, destination_id=destination_id, schedule_hours=schedule_hours)
        db.add(server)

        for item_id, updated_at in (items or {}).items():
            db.add(Item(id=item_id, name=f"Item {item_id}", updated_at=updated_at, fetched_at=fetched_at))

        for item_id, notified_at in (last_notified or {}).items():
            db.add(Subscription(server_id=server_id, item_id=item_id, last_notified_at=notified_at))

        await db.commit()
        return server

    return _seed
