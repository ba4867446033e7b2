"""
User model — the authentication identity.

Each User is a login credential (email + hashed password) with a role:

  - ADMIN: back-office operator. Reviews deposit/withdrawal requests,
    settles bets, adjusts balances. Every admin action records the admin's
    user ID as processed_by.
  - CUSTOMER: trading customer. Owns exactly one Account (the balance
    holder) and can request deposits/withdrawals and place bets.

The User is kept separate from the Account so that authentication data
never travels with balance data, and so admins (who have no balance) are
plain Users without an Account.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice.database import Base


class UserRole(str, enum.Enum):
    """
    The role a user holds within the back-office.

    Inherits from str so the value serializes naturally to JSON.
    """
    ADMIN = "admin"
    CUSTOMER = "customer"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Used in human-readable transaction references (NAP-<username>-<ms>)
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    # Argon2id hash of the password
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.CUSTOMER,
        nullable=False,
    )

    # Soft-disable: deactivated users can't log in but their records are preserved
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

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
    account: Mapped["Account"] = relationship(
        back_populates="user",
        uselist=False,
    )
