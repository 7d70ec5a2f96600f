"""Server (tenant) model holding tracking configuration."""
from sqlalchemy import Column, BigInteger, Integer, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from workshop_tracker.core.database import Base


class Server(Base):
    """A chat the bot serves, with its polling schedule and update channel."""

    __tablename__ = "servers"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    schedule_hours = Column(Integer, nullable=True)
    destination_id = Column(BigInteger, nullable=True)  # Chat that receives update batches
    last_ran_at = Column(BigInteger, nullable=True)  # Unix seconds
    joined_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    subscriptions = relationship("Subscription", back_populates="server", cascade="all, delete-orphan")
