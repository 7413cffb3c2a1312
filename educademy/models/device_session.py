"""Device session audit record."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utc_now_naive


class DeviceSession(Base):
    """One row per realtime connection, closed when the connection ends."""

    __tablename__ = "device_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    connection_id: Mapped[str] = mapped_column(String(length=64), nullable=False, index=True)
    device_type: Mapped[str] = mapped_column(String(length=20), nullable=False)
    os: Mapped[str] = mapped_column(String(length=50), nullable=False)
    browser: Mapped[str] = mapped_column(String(length=50), nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(length=64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(length=500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    connected_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False, default=utc_now_naive)
    disconnected_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    disconnect_reason: Mapped[str | None] = mapped_column(String(length=100), nullable=True)
