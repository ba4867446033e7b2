"""
TradingSession model — a fixed-duration betting window.

Sessions are identified by a time-derived code, YYMMDDhhmm of the start
time (one session per minute by default). Bets are accepted while the
session is upcoming or active. Posting a result (up/down) completes the
session and triggers settlement of every open bet in it.

The aggregate columns (total bet, total win, participant count) are kept
up to date by the settlement engine inside the same unit of work as the
bet they describe.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base

BETTABLE_STATUSES = frozenset({"upcoming", "active"})


class TradingSession(Base):
    __tablename__ = "trading_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # YYMMDDhhmm of start_time
    code: Mapped[str] = mapped_column(
        String(10),
        unique=True,
        nullable=False,
        index=True,
    )

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # "upcoming", "active", "completed", "cancelled"
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="upcoming",
    )

    # "up", "down" or NULL until resolved
    result: Mapped[str | None] = mapped_column(String(4), nullable=True)

    total_bet_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_win_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
