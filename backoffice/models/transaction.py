"""
Transaction model — the record of every financial event.

Types:
  - deposit           customer asks to add funds; admin approves/rejects
  - withdrawal        customer asks to take funds out; admin approves/rejects
  - bet_win           winnings credited when a bet is settled as won
  - bet_win_reversal  compensating record when a won bet is moved elsewhere
  - admin_adjustment  an operator set a customer's balance directly

Two disciplines live side by side:

  Requests (deposit, withdrawal) are the workflow entity. Their status moves
  exactly once out of "pending" (withdrawals may pass through "processing"
  first), guarded so that two reviewers can never both process one request.

  Monetary effects are append-only. bet_win, bet_win_reversal and
  admin_adjustment rows are written once with status "completed" and never
  edited; a correction is a new compensating row. Every balance change also
  lands in the ledger_entries journal (see ledger_entry.py).

Reference:
  Each row carries a human-readable reference, PREFIX-username-epochms
  (e.g. NAP-alice-1718000000000). References are unique.

Amounts:
  amount_cents is positive for requests and wins, negative for reversals,
  and signed for adjustments (the direction of the change).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base

DEPOSIT = "deposit"
WITHDRAWAL = "withdrawal"
BET_WIN = "bet_win"
BET_WIN_REVERSAL = "bet_win_reversal"
ADMIN_ADJUSTMENT = "admin_adjustment"

REFERENCE_PREFIXES = {
    DEPOSIT: "NAP",
    WITHDRAWAL: "RUT",
    BET_WIN: "WIN",
    BET_WIN_REVERSAL: "RVS",
    ADMIN_ADJUSTMENT: "ADJ",
}


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_cents <> 0", name="ck_transactions_non_zero_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # PREFIX-username-epochms
    reference: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        index=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Withdrawals: what the customer actually receives (amount minus fees)
    received_amount_cents: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    # "pending", "processing", "approved", "completed", "rejected", "cancelled"
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
    )

    note: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Deposits: the code the customer put on the bank transfer
    transaction_code: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Withdrawals: snapshot of the destination at request time
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_account_holder: Mapped[str | None] = mapped_column(String(200), nullable=True)
    bank_account_number_encrypted: Mapped[bytes | None] = mapped_column(
        LargeBinary,
        nullable=True,
    )
    bank_account_last_four: Mapped[str | None] = mapped_column(String(4), nullable=True)

    # Bet settlement records point at the bet they settle
    bet_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("bets.id"),
        nullable=True,
        index=True,
    )

    # Admin adjustments: the change applied to each balance
    available_delta_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    frozen_delta_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # The admin who reviewed the request or made the adjustment
    processed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
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
