"""Utility functions for Thesis CLI."""

from __future__ import annotations

from datetime import UTC, datetime

from ..core.db_store import DatabaseEngineStore
from ..core.engine import OpinionEngine, create_engine


def get_engine() -> OpinionEngine:
    """Engine backed by the configured PostgreSQL database."""
    return create_engine(store=DatabaseEngineStore())


def format_age(dt: datetime | None) -> str:
    """Format datetime as human-readable age."""
    if not dt:
        return "?"

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    seconds = (datetime.now(UTC) - dt).total_seconds()
    if seconds < 60:
        return "now"
    if seconds < 3600:
        return f"{int(seconds / 60)}m"
    if seconds < 86400:
        return f"{int(seconds / 3600)}h"
    if seconds < 86400 * 30:
        return f"{int(seconds / 86400)}d"
    return f"{int(seconds / (86400 * 30))}mo"


def price_bar(support_price: float, width: int = 20) -> str:
    """Render a support price (0-100) as a fixed-width bar."""
    filled = round(support_price / 100 * width)
    return "█" * filled + "░" * (width - filled)
