"""
Transaction record store — creating, finding and status-guarding records.

References:
  Every record gets a human-readable reference PREFIX-username-epochms
  (NAP deposit, RUT withdrawal, WIN bet win, RVS bet win reversal,
  ADJ admin adjustment). Two records for the same user and type created in
  the same millisecond would collide, so on collision the timestamp is
  bumped by one millisecond and tried again, up to REFERENCE_RETRY_LIMIT
  times. The UNIQUE constraint on transactions.reference is the final
  guard: a race that slips past the check fails the commit.

Status guard:
  update_status() is a single UPDATE ... WHERE status IN (<source states>).
  When two reviewers race on one request, the database decides: one UPDATE
  matches the row, the other matches nothing and gets AlreadyProcessedError.
  Combined with the unit of work, the loser's ledger effects roll back too.
"""

import logging
import time
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.exceptions import AlreadyProcessedError, StorageFailureError, TransactionNotFoundError
from backoffice.models.account import Account
from backoffice.models.transaction import Transaction, REFERENCE_PREFIXES, WITHDRAWAL

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def build_reference(txn_type: str, username: str, epoch_ms: int) -> str:
    """Format a reference, e.g. build_reference("deposit", "alice", 1718000000000) -> "NAP-alice-1718000000000"."""
    return f"{REFERENCE_PREFIXES[txn_type]}-{username}-{epoch_ms}"


async def _allocate_reference(db: AsyncSession, txn_type: str, username: str) -> str:
    epoch_ms = _epoch_ms()
    for _ in range(settings.REFERENCE_RETRY_LIMIT):
        reference = build_reference(txn_type, username, epoch_ms)
        existing = await db.execute(
            select(Transaction.id).where(Transaction.reference == reference)
        )
        if existing.scalar_one_or_none() is None:
            return reference
        epoch_ms += 1

    logger.error("Could not allocate a unique %s reference for %s", txn_type, username)
    raise StorageFailureError("Could not allocate a unique transaction reference")


async def create_transaction(
    db: AsyncSession,
    account: Account,
    txn_type: str,
    amount_cents: int,
    *,
    status: str = "pending",
    note: str | None = None,
    transaction_code: str | None = None,
    received_amount_cents: int | None = None,
    bank_name: str | None = None,
    bank_account_holder: str | None = None,
    bank_account_number_encrypted: bytes | None = None,
    bank_account_last_four: str | None = None,
    bet_id: uuid.UUID | None = None,
    available_delta_cents: int | None = None,
    frozen_delta_cents: int | None = None,
    processed_by_id: uuid.UUID | None = None,
    processed_at: datetime | None = None,
) -> Transaction:
    """
    Insert one transaction record for an account.

    Only writes the record; balance effects are the caller's job (through
    the ledger) in the same unit of work.

    Withdrawals default received_amount_cents to amount_cents.
    """
    if txn_type == WITHDRAWAL and received_amount_cents is None:
        received_amount_cents = amount_cents

    reference = await _allocate_reference(db, txn_type, account.username)

    txn = Transaction(
        reference=reference,
        account_id=account.id,
        username=account.username,
        type=txn_type,
        amount_cents=amount_cents,
        received_amount_cents=received_amount_cents,
        status=status,
        note=note,
        transaction_code=transaction_code,
        bank_name=bank_name,
        bank_account_holder=bank_account_holder,
        bank_account_number_encrypted=bank_account_number_encrypted,
        bank_account_last_four=bank_account_last_four,
        bet_id=bet_id,
        available_delta_cents=available_delta_cents,
        frozen_delta_cents=frozen_delta_cents,
        processed_by_id=processed_by_id,
        processed_at=processed_at,
    )
    db.add(txn)
    await db.flush()
    return txn


async def find_transactions(
    db: AsyncSession,
    account_id: uuid.UUID | None = None,
    txn_type: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """
    List transaction records, newest first.

    account_id scopes the list to one account (customer view); leaving it
    out lists every account (admin audit view).
    """
    query = (
        select(Transaction)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if account_id is not None:
        query = query.where(Transaction.account_id == account_id)
    if txn_type:
        query = query.where(Transaction.type == txn_type)
    if status:
        query = query.where(Transaction.status == status)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> Transaction | None:
    """
    Load one record by id, or None.

    for_update re-reads the row inside the current unit of work (row lock
    where the database has them), discarding any stale copy in the session.
    """
    query = select(Transaction).where(Transaction.id == transaction_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def require_transaction(db: AsyncSession, transaction_id: uuid.UUID) -> Transaction:
    txn = await get_transaction(db, transaction_id)
    if txn is None:
        raise TransactionNotFoundError(transaction_id)
    return txn


async def update_status(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    new_status: str,
    processed_by_id: uuid.UUID | None,
    *,
    from_statuses: frozenset[str] | set[str],
    note: str | None = None,
    mark_processed: bool = True,
) -> Transaction:
    """
    Move a record to new_status, but only if it is still in from_statuses.

    Args:
        db: The caller's unit-of-work session.
        transaction_id: Record to update.
        new_status: Target status.
        processed_by_id: Admin making the change.
        from_statuses: States the record must currently be in.
        note: Replaces the record's note when given.
        mark_processed: Stamp processed_at. False for intermediate states
                        such as withdrawal "processing".

    Returns:
        The record, reloaded with its new state.

    Raises:
        AlreadyProcessedError: The record was no longer in from_statuses
            (another reviewer got there first).
    """
    values: dict = {
        "status": new_status,
        "processed_by_id": processed_by_id,
    }
    if mark_processed:
        values["processed_at"] = datetime.now(timezone.utc)
    if note is not None:
        values["note"] = note

    result = await db.execute(
        update(Transaction)
        .where(Transaction.id == transaction_id)
        .where(Transaction.status.in_(from_statuses))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyProcessedError(transaction_id)

    return await db.get(Transaction, transaction_id, populate_existing=True)
