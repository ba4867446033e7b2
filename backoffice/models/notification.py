"""
Notification model — user-facing messages about their requests and bets.

Notifications are written after the financial unit of work commits, in a
separate unit. Losing one never affects a balance.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # "withdrawal", "deposit", "bet"
    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    message: Mapped[str] = mapped_column(String(255), nullable=False)

    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
