"""
Shared declarative base for all database models.

All models should import Base from this module to ensure they
use the same metadata registry.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from backends without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards with a backslash."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
