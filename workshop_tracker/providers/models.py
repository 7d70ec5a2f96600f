"""Data models for catalog item snapshots."""
from dataclasses import dataclass
from typing import Optional


@dataclass
class ItemSnapshot:
    """Metadata of a Workshop item as reported by the catalog."""
    id: int
    name: str
    updated_at: int  # Unix seconds
    preview_url: Optional[str] = None

    @classmethod
    def from_row(cls, item) -> "ItemSnapshot":
        """Build a snapshot from a cached Item row."""
        return cls(
            id=item.id,
            name=item.name,
            updated_at=item.updated_at,
            preview_url=item.preview_url
        )
