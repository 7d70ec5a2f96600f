"""Subscription model linking servers to tracked items."""
from sqlalchemy import Column, BigInteger, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from workshop_tracker.core.database import Base


class Subscription(Base):
    """Subscription of a server to a Workshop item."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("server_id", "item_id", name="uq_server_item"),
    )

    server_id = Column(BigInteger, ForeignKey("servers.id", ondelete="CASCADE"), primary_key=True)
    item_id = Column(BigInteger, ForeignKey("items.id"), primary_key=True, index=True)
    last_notified_at = Column(BigInteger, nullable=False)  # Unix seconds, only ever increases
    note = Column(Text, nullable=True)

    # Relationships
    server = relationship("Server", back_populates="subscriptions")
    item = relationship("Item", lazy="joined")
