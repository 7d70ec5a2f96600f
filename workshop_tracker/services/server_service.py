"""Server service for tracking configuration of each chat."""
from typing import List, Optional, Tuple
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from workshop_tracker.models import Server, Subscription


class ServerService:
    """Service for server (tenant) configuration."""

    @staticmethod
    async def get_server(db: AsyncSession, server_id: int) -> Optional[Server]:
        """Get a server by id."""
        result = await db.execute(
            select(Server).where(Server.id == server_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def add_server(db: AsyncSession, server_id: int) -> Server:
        """
        Register a server, or return it if it is already known.

        Args:
            db: Database session
            server_id: Chat id of the server

        Returns:
            Server object
        """
        existing = await ServerService.get_server(db, server_id)
        if existing:
            return existing

        server = Server(id=server_id)
        db.add(server)
        await db.commit()
        await db.refresh(server)

        return server

    @staticmethod
    async def remove_server(db: AsyncSession, server_id: int) -> bool:
        """
        Delete a server together with its subscriptions.

        Returns:
            True if the server existed
        """
        await db.execute(
            delete(Subscription).where(Subscription.server_id == server_id)
        )
        result = await db.execute(
            delete(Server).where(Server.id == server_id)
        )
        await db.commit()

        return result.rowcount > 0

    @staticmethod
    async def check_still_present(db: AsyncSession, server_id: int) -> bool:
        """Check whether the bot is still a member of the server."""
        result = await db.execute(
            select(Server.id).where(Server.id == server_id)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def set_destination(db: AsyncSession, server_id: int, destination_id: int) -> bool:
        """Set the chat that receives update batches. Returns False for unknown servers."""
        server = await ServerService.get_server(db, server_id)
        if not server:
            return False

        server.destination_id = destination_id
        await db.commit()
        return True

    @staticmethod
    async def get_destination(db: AsyncSession, server_id: int) -> Optional[int]:
        """Get the update channel of a server, if any."""
        result = await db.execute(
            select(Server.destination_id).where(Server.id == server_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def set_schedule(db: AsyncSession, server_id: int, hours: int) -> bool:
        """Set the polling interval in hours. Returns False for unknown servers."""
        server = await ServerService.get_server(db, server_id)
        if not server:
            return False

        server.schedule_hours = hours
        await db.commit()
        return True

    @staticmethod
    async def get_schedule(db: AsyncSession, server_id: int) -> Optional[int]:
        """Get the polling interval in hours, if any."""
        result = await db.execute(
            select(Server.schedule_hours).where(Server.id == server_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_all_schedules(db: AsyncSession) -> List[Tuple[int, Optional[int]]]:
        """Get (server_id, schedule_hours) for every known server."""
        result = await db.execute(
            select(Server.id, Server.schedule_hours).order_by(Server.id)
        )
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def set_last_ran(db: AsyncSession, server_id: int, timestamp: int):
        """Record when the tracking job last completed a cycle."""
        server = await ServerService.get_server(db, server_id)
        if server:
            server.last_ran_at = timestamp
            await db.commit()

    @staticmethod
    async def get_last_ran(db: AsyncSession, server_id: int) -> Optional[int]:
        """Get when the tracking job last completed a cycle."""
        result = await db.execute(
            select(Server.last_ran_at).where(Server.id == server_id)
        )
        return result.scalar_one_or_none()
