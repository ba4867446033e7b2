"""
Bet model — a customer's stake on the direction of one trading session.

Lifecycle:
    pending/active  ──►  won | lost | cancelled

While a bet is pending or active its stake sits in the owner's
frozen balance. Settlement releases it:

  - won: stake leaves frozen, winnings (stake * payout multiplier) are
    credited to available and recorded as a bet_win transaction
  - lost: stake leaves frozen
  - cancelled: stake returns from frozen to available

An admin may move a settled bet to another status; the settlement engine
first restores the "stake held" position and then applies the new status,
writing a bet_win_reversal when the bet leaves "won".
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base

OPEN_STATUSES = frozenset({"pending", "active"})
TERMINAL_STATUSES = frozenset({"won", "lost", "cancelled"})


class Bet(Base):
    __tablename__ = "bets"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_bets_positive_stake"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("trading_sessions.id"),
        nullable=False,
        index=True,
    )

    # "up" or "down"
    direction: Mapped[str] = mapped_column(String(4), nullable=False)

    # Stake
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # "pending", "active", "won", "lost", "cancelled"
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="pending",
        index=True,
    )

    # "win", "lose" or NULL while unsettled
    result: Mapped[str | None] = mapped_column(String(4), nullable=True)

    # Winnings credited for a won bet, 0 otherwise
    payout_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
