"""
Account service — balances, bank details and admin adjustments.

Reconciliation:
  Accounts open with zero balances and only the ledger changes them, so the
  sum of an account's ledger_entries deltas must equal its cached
  available/frozen balances. get_balance() returns both and a `match`
  flag; a mismatch signals a write that bypassed the ledger.

Admin adjustments:
  An operator sets target balances rather than deltas ("this customer
  should have 50000 available"). The differences still go through the
  ledger, so the journal stays complete:

    available up        deposit(diff)
    available down      withdraw(diff)
    frozen down         settle(diff)
    frozen up           deposit(diff) then freeze(diff)

  One admin_adjustment record is written per adjustment, carrying both
  deltas. An adjustment that changes nothing writes nothing.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.exceptions import AccountNotFoundError
from backoffice.models.account import Account
from backoffice.models.ledger_entry import LedgerEntry
from backoffice.models.transaction import Transaction, ADMIN_ADJUSTMENT
from backoffice.models.user import User, UserRole
from backoffice.security import encrypt_value, decrypt_value
from backoffice.services import ledger, transaction_service

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentResult:
    account: Account
    transaction: Transaction | None
    available_delta_cents: int
    frozen_delta_cents: int


async def get_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Account:
    """
    Get an account by ID.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    query = select(Account).where(Account.id == account_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def list_accounts(db: AsyncSession, limit: int = 50, offset: int = 0) -> list[Account]:
    """Customer accounts, oldest first. Admin accounts hold no money and are left out."""
    result = await db.execute(
        select(Account)
        .join(User, Account.user_id == User.id)
        .where(User.role == UserRole.CUSTOMER)
        .order_by(Account.created_at)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def update_bank_details(
    db: AsyncSession,
    account: Account,
    bank_name: str,
    bank_account_holder: str,
    bank_account_number: str,
) -> Account:
    """Store bank details; the account number is encrypted, last four kept in clear."""
    account.bank_name = bank_name
    account.bank_account_holder = bank_account_holder
    account.bank_account_number_encrypted = encrypt_value(bank_account_number)
    account.bank_account_last_four = bank_account_number[-4:]
    await db.flush()
    return account


def reveal_account_number(encrypted: bytes | None) -> str | None:
    """Decrypt a stored bank account number (admin payout view only)."""
    if encrypted is None:
        return None
    return decrypt_value(encrypted)


async def get_balance(db: AsyncSession, account_id: uuid.UUID) -> dict:
    """
    Cached balances next to the balances recomputed from the ledger journal.

    Returns:
        Dict with available/frozen cached and computed values and `match`.
    """
    account = await get_account(db, account_id)

    totals = await db.execute(
        select(
            func.coalesce(func.sum(LedgerEntry.available_delta_cents), 0),
            func.coalesce(func.sum(LedgerEntry.frozen_delta_cents), 0),
        ).where(LedgerEntry.account_id == account_id)
    )
    computed_available, computed_frozen = totals.one()

    return {
        "account_id": account.id,
        "username": account.username,
        "available_cents": account.available_cents,
        "frozen_cents": account.frozen_cents,
        "computed_available_cents": computed_available,
        "computed_frozen_cents": computed_frozen,
        "match": (
            account.available_cents == computed_available
            and account.frozen_cents == computed_frozen
        ),
        "balance_updated_at": account.balance_updated_at,
    }


async def adjust_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
    admin_id: uuid.UUID,
    available_cents: int | None = None,
    frozen_cents: int | None = None,
    note: str | None = None,
) -> AdjustmentResult:
    """
    Set an account's balances to the given targets.

    Args:
        db: The caller's unit-of-work session.
        account_id: Account to adjust.
        admin_id: Operator making the change (recorded on the record).
        available_cents: Target available balance, or None to leave it.
        frozen_cents: Target frozen balance, or None to leave it.
        note: Reason for the adjustment.

    Raises:
        AccountNotFoundError: Unknown account, or an admin's account.
        ValueError: Neither target given, or a negative target.
    """
    if available_cents is None and frozen_cents is None:
        raise ValueError("At least one of available_cents or frozen_cents is required")
    for target in (available_cents, frozen_cents):
        if target is not None and target < 0:
            raise ValueError(f"Balance targets cannot be negative, got {target}")

    account = await get_account(db, account_id, for_update=True)
    role = await db.scalar(select(User.role).where(User.id == account.user_id))
    if role != UserRole.CUSTOMER:
        raise AccountNotFoundError(account_id)

    available_delta = 0 if available_cents is None else available_cents - account.available_cents
    frozen_delta = 0 if frozen_cents is None else frozen_cents - account.frozen_cents

    if available_delta == 0 and frozen_delta == 0:
        return AdjustmentResult(account, None, 0, 0)

    record = await transaction_service.create_transaction(
        db,
        account,
        ADMIN_ADJUSTMENT,
        available_delta if available_delta != 0 else frozen_delta,
        status="completed",
        note=note,
        available_delta_cents=available_delta,
        frozen_delta_cents=frozen_delta,
        processed_by_id=admin_id,
        processed_at=datetime.now(timezone.utc),
    )

    steps: list[tuple[str, int]] = []
    if frozen_delta < 0:
        steps.append((ledger.SETTLE, -frozen_delta))
    elif frozen_delta > 0:
        steps += [(ledger.DEPOSIT, frozen_delta), (ledger.FREEZE, frozen_delta)]
    if available_delta > 0:
        steps.append((ledger.DEPOSIT, available_delta))
    elif available_delta < 0:
        steps.append((ledger.WITHDRAW, -available_delta))

    for operation, amount in steps:
        result = await ledger.mutate(
            db, account.id, amount, operation,
            reason="admin_adjustment", transaction_id=record.id,
        )
        result.raise_for_error()

    logger.info(
        "Admin %s adjusted account %s: available %+d, frozen %+d",
        admin_id, account.username, available_delta, frozen_delta,
    )
    return AdjustmentResult(account, record, available_delta, frozen_delta)
