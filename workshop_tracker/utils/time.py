"""Time utilities for Unix timestamps and user supplied dates."""
from datetime import datetime, timezone
from typing import Optional
import time


def unix_now() -> int:
    """Current time as whole Unix seconds."""
    return int(time.time())


def parse_since_date(value: str, now: Optional[datetime] = None) -> int:
    """
    Parse a mm/dd/yy (or mm/dd/yyyy) date into a UTC Unix timestamp.

    Args:
        value: Date string supplied by a user
        now: Reference time (defaults to the current UTC time)

    Returns:
        Unix seconds at midnight UTC of that date

    Raises:
        ValueError: If the date cannot be parsed or lies in the future
    """
    if now is None:
        now = datetime.now(timezone.utc)

    value = value.strip()
    parsed = None
    for fmt in ("%m/%d/%y", "%m/%d/%Y"):
        try:
            parsed = datetime.strptime(value, fmt)
            break
        except ValueError:
            continue

    if parsed is None:
        raise ValueError(f"Invalid date '{value}'. Format: mm/dd/yy")

    parsed = parsed.replace(tzinfo=timezone.utc)
    if parsed > now:
        raise ValueError("Date lies in the future")

    return int(parsed.timestamp())


def format_relative(timestamp: Optional[int], now: Optional[int] = None) -> str:
    """Render a Unix timestamp as a short 'N units ago' string."""
    if timestamp is None:
        return "never"

    if now is None:
        now = unix_now()

    delta = max(0, now - timestamp)
    if delta < 60:
        return "just now"
    if delta < 3600:
        return f"{delta // 60} min ago"
    if delta < 86400:
        return f"{delta // 3600} h ago"
    return f"{delta // 86400} d ago"
