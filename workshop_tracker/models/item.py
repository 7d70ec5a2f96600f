"""Cached Workshop item snapshot shared by all servers."""
from sqlalchemy import Column, BigInteger, String
from workshop_tracker.core.database import Base


class Item(Base):
    """Last known catalog metadata for a Workshop item."""

    __tablename__ = "items"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    name = Column(String, nullable=False, index=True)
    updated_at = Column(BigInteger, nullable=False)  # Catalog time_updated, Unix seconds
    preview_url = Column(String, nullable=True)
    fetched_at = Column(BigInteger, nullable=False)  # When this row was last written from the catalog
