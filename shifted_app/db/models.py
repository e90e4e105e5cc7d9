import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Text, Boolean, DateTime, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shifted_app.db.base import Base


class WaitlistSignup(Base):
    __tablename__ = "waitlist_signups"
    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(254), index=True)
    city: Mapped[Optional[str]] = mapped_column(String(200))
    is_shift_worker: Mapped[Optional[bool]] = mapped_column(Boolean)
    source: Mapped[Optional[str]] = mapped_column(String(200))
    referrer: Mapped[Optional[str]] = mapped_column(String(500))
    utm_source: Mapped[Optional[str]] = mapped_column(String(200))
    utm_medium: Mapped[Optional[str]] = mapped_column(String(200))
    utm_campaign: Mapped[Optional[str]] = mapped_column(String(200))
    utm_term: Mapped[Optional[str]] = mapped_column(String(200))
    utm_content: Mapped[Optional[str]] = mapped_column(String(200))
    ip: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    __table_args__ = (UniqueConstraint("email", name="uq_waitlist_signups_email"),)


class RecoveryBridge(Base):
    __tablename__ = "recovery_bridge"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
