"""Database setup with async SQLAlchemy (SQLite or PostgreSQL)."""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from workshop_tracker.core.config import settings
import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

# Mask password in database URL for logging
def mask_db_url(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r'://([^:]+):([^@]+)@', r'://\1:****@', url)

logger.info(f"Connecting to database: {mask_db_url(settings.database_url)}")
logger.debug(f"Database URL scheme: {settings.database_url.split(':')[0]}")

engine_args = {
    "echo": settings.log_level == "DEBUG",  # Log all SQL if DEBUG
    "pool_pre_ping": True,  # Verify connections before using
}

# SQLite pools do not take sizing arguments
if not settings.database_url.startswith("sqlite"):
    engine_args.update({
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 3600,
    })
    logger.info(
        "Configuring connection pool: pool_size=10, max_overflow=20, "
        "pool_timeout=30s, pool_recycle=3600s"
    )

# Create async engine
engine = create_async_engine(
    settings.database_url,
    **engine_args
)

logger.info("Database engine created")

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def init_db():
    """Initialize database tables."""
    logger.info("Initializing database tables...")

    # SQLite will not create missing parent directories
    if engine.url.get_backend_name() == "sqlite" and engine.url.database:
        Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✓ Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database tables: {str(e)}", exc_info=True)
        logger.debug(f"Database URL (masked): {mask_db_url(settings.database_url)}")
        raise


async def close_db():
    """Dispose of the engine's connection pool."""
    await engine.dispose()
    logger.info("Database engine disposed")
