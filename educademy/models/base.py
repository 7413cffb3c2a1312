"""
Shared SQLAlchemy DeclarativeBase for all models.

All models must inherit from this Base so SQLAlchemy can resolve
cross-model relationships via string references.
"""

from datetime import UTC, datetime

from sqlalchemy.orm import DeclarativeBase


def utc_now_naive() -> datetime:
    """Current UTC time as a naive datetime, the form persisted in all tables."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Shared declarative base for all Educademy models."""


def to_naive_utc(value: datetime | None) -> datetime:
    """Normalise to naive UTC; None means now."""
    if value is None:
        return utc_now_naive()
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value
