"""
LedgerEntry model — the append-only balance journal.

The ledger primitive writes exactly one LedgerEntry for every balance
mutation it applies, in the same unit of work as the mutation. Rows are
never updated or deleted, so for every account:

    sum(available_delta_cents) == accounts.available_cents
    sum(frozen_delta_cents)    == accounts.frozen_cents

The reconciliation endpoint recomputes both sums and reports whether they
match the cached balances.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.database import Base


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    # deposit | withdraw | freeze | unfreeze | settle
    operation: Mapped[str] = mapped_column(String(20), nullable=False)

    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    available_delta_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    frozen_delta_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # Balances immediately after this entry
    available_after_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    frozen_after_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # What caused the mutation
    transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("transactions.id"),
        nullable=True,
        index=True,
    )
    bet_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("bets.id"),
        nullable=True,
        index=True,
    )
    reason: Mapped[str] = mapped_column(String(100), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
