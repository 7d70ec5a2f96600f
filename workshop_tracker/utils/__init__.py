"""Utilities package initialization."""
from workshop_tracker.utils.time import unix_now, parse_since_date, format_relative
from workshop_tracker.utils.formatting import (
    MessageBatch,
    MessageEntry,
    build_batches,
    render_batch_html
)

__all__ = [
    "unix_now",
    "parse_since_date",
    "format_relative",
    "MessageBatch",
    "MessageEntry",
    "build_batches",
    "render_batch_html"
]
