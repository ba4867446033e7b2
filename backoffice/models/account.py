"""
Account model — a customer's balance holder.

Each customer User owns exactly one Account with two balances, both in
integer minor units:

  - available_cents: funds the customer may withdraw or stake
  - frozen_cents: funds earmarked against a pending bet or a pending
    withdrawal request; not spendable

Balance management:
  Both columns are written ONLY by the ledger primitive
  (backoffice/services/ledger.py), which re-reads the row under the unit of
  work's write lock, applies the change and appends a LedgerEntry. No
  other code assigns to these attributes.

  CHECK constraints at the database level keep both balances non-negative.
  The ledger already refuses mutations that would go negative; the
  constraint is the final safety net.

Bank details:
  The withdrawal destination is stored with the account number encrypted
  (Fernet). Only the last four digits are kept in plaintext for display.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint("available_cents >= 0", name="ck_accounts_available_non_negative"),
        CheckConstraint("frozen_cents >= 0", name="ck_accounts_frozen_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # One account per customer
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )

    # Denormalized from User so references can be built without a JOIN
    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    full_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )

    phone: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )

    available_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    frozen_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Set by every ledger mutation
    balance_updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Withdrawal destination ---
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_account_holder: Mapped[str | None] = mapped_column(String(200), nullable=True)
    bank_account_number_encrypted: Mapped[bytes | None] = mapped_column(
        LargeBinary,
        nullable=True,
    )
    bank_account_last_four: Mapped[str | None] = mapped_column(String(4), nullable=True)

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

    # --- Relationships ---
    user: Mapped["User"] = relationship(
        back_populates="account",
    )
