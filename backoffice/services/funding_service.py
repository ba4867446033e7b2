"""
Funding service — deposit and withdrawal requests and their lifecycle.

Request creation (customer side):
  - Deposit: a pending record, no balance effect. Money only arrives when an
    admin confirms the bank transfer.
  - Withdrawal: the amount is frozen when the request is made, so the
    customer cannot bet or withdraw the same money twice while it waits for
    review. Record and freeze share one unit of work.

Lifecycle (admin side):

    deposit     pending    ──► approved | rejected | cancelled
    withdrawal  pending    ──► processing | approved | rejected | cancelled
                processing ──► approved | rejected

  Effects, applied in the same unit of work as the status change:

    deposit    → approved             ledger deposit(amount)
    deposit    → rejected/cancelled   none
    withdrawal → processing           none (processed_at stays empty)
    withdrawal → approved             ledger settle(amount), held funds leave
    withdrawal → rejected/cancelled   ledger unfreeze(amount), refund

  Checks, in order:
    1. record missing, or of the other request type  → RequestNotFoundError
    2. record not in any source state                → AlreadyProcessedError
    3. target not allowed from the current state     → InvalidTransitionError

  The status change itself is guarded in the database (see
  transaction_service.update_status), so a racing second reviewer fails
  with AlreadyProcessedError and its ledger effect never happens.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.database import Store
from backoffice.exceptions import (
    AlreadyProcessedError,
    BankDetailsRequiredError,
    InvalidTransitionError,
    RequestNotFoundError,
)
from backoffice.models.account import Account
from backoffice.models.transaction import Transaction, DEPOSIT, WITHDRAWAL
from backoffice.services import ledger, notification_service, transaction_service

logger = logging.getLogger(__name__)

TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    DEPOSIT: {
        "pending": frozenset({"approved", "rejected", "cancelled"}),
    },
    WITHDRAWAL: {
        "pending": frozenset({"processing", "approved", "rejected", "cancelled"}),
        "processing": frozenset({"approved", "rejected"}),
    },
}

# (ledger operation, journal reason) per (type, target); missing means status only
_EFFECTS = {
    (DEPOSIT, "approved"): (ledger.DEPOSIT, "deposit_approved"),
    (WITHDRAWAL, "approved"): (ledger.SETTLE, "withdrawal_approved"),
    (WITHDRAWAL, "rejected"): (ledger.UNFREEZE, "withdrawal_rejected"),
    (WITHDRAWAL, "cancelled"): (ledger.UNFREEZE, "withdrawal_cancelled"),
}

_WITHDRAWAL_MESSAGES = {
    "processing": "Your withdrawal {reference} is being processed.",
    "approved": "Your withdrawal {reference} has been approved and paid out.",
    "rejected": "Your withdrawal {reference} was rejected; the funds are back in your balance.",
    "cancelled": "Your withdrawal {reference} was cancelled; the funds are back in your balance.",
}


async def create_deposit_request(
    db: AsyncSession,
    account: Account,
    amount_cents: int,
    transaction_code: str | None = None,
    note: str | None = None,
) -> Transaction:
    txn = await transaction_service.create_transaction(
        db,
        account,
        DEPOSIT,
        amount_cents,
        transaction_code=transaction_code,
        note=note,
    )
    logger.info("Deposit request %s for %d created by %s", txn.reference, amount_cents, account.username)
    return txn


async def create_withdrawal_request(
    db: AsyncSession,
    account: Account,
    amount_cents: int,
    note: str | None = None,
) -> Transaction:
    """
    Create a pending withdrawal and freeze its amount.

    The destination is snapshotted from the account's bank details at
    request time, so a later change of bank details does not redirect a
    withdrawal already under review.

    Raises:
        BankDetailsRequiredError: The account has no bank details on file.
        InsufficientFundsError: available balance does not cover the amount.
            The unit rolls back and no record is kept.
    """
    if account.bank_account_number_encrypted is None:
        raise BankDetailsRequiredError()

    txn = await transaction_service.create_transaction(
        db,
        account,
        WITHDRAWAL,
        amount_cents,
        note=note,
        bank_name=account.bank_name,
        bank_account_holder=account.bank_account_holder,
        bank_account_number_encrypted=account.bank_account_number_encrypted,
        bank_account_last_four=account.bank_account_last_four,
    )
    result = await ledger.mutate(
        db,
        account.id,
        amount_cents,
        ledger.FREEZE,
        reason="withdrawal_requested",
        transaction_id=txn.id,
    )
    result.raise_for_error()

    logger.info("Withdrawal request %s for %d created by %s", txn.reference, amount_cents, account.username)
    return txn


async def transition(
    db: AsyncSession,
    txn_type: str,
    transaction_id: uuid.UUID,
    target: str,
    admin_id: uuid.UUID,
    note: str | None = None,
) -> Transaction:
    """
    Move a deposit or withdrawal request to target and apply its effect.

    Must run inside a unit of work; any exception aborts the status change
    and the ledger effect together.

    Returns:
        The updated record.

    Raises:
        RequestNotFoundError, AlreadyProcessedError, InvalidTransitionError:
            See the module docstring.
        InsufficientFundsError: The ledger effect could not be applied.
    """
    table = TRANSITIONS[txn_type]

    txn = await transaction_service.get_transaction(db, transaction_id, for_update=True)
    if txn is None or txn.type != txn_type:
        raise RequestNotFoundError(txn_type, transaction_id)

    current = txn.status
    allowed = table.get(current)
    if allowed is None:
        raise AlreadyProcessedError(transaction_id, current)
    if target not in allowed:
        raise InvalidTransitionError(current, target)

    txn = await transaction_service.update_status(
        db,
        transaction_id,
        target,
        admin_id,
        from_statuses={current},
        note=note,
        mark_processed=target != "processing",
    )

    effect = _EFFECTS.get((txn_type, target))
    if effect is not None:
        operation, reason = effect
        result = await ledger.mutate(
            db,
            txn.account_id,
            txn.amount_cents,
            operation,
            reason=reason,
            transaction_id=txn.id,
        )
        result.raise_for_error()

    logger.info(
        "%s %s moved %s -> %s by admin %s",
        txn_type.capitalize(), txn.reference, current, target, admin_id,
    )
    return txn


async def process_request(
    store: Store,
    txn_type: str,
    transaction_id: uuid.UUID,
    target: str,
    admin_id: uuid.UUID,
    note: str | None = None,
) -> Transaction:
    """
    Run transition() in its own unit of work, then notify the customer.

    Withdrawal customers are notified of every change. The notification is
    written after the commit and never undoes it.
    """
    async with store.unit_of_work() as db:
        txn = await transition(db, txn_type, transaction_id, target, admin_id, note)
        user_id = await db.scalar(
            select(Account.user_id).where(Account.id == txn.account_id)
        )

    if txn_type == WITHDRAWAL:
        message = _WITHDRAWAL_MESSAGES[target].format(reference=txn.reference)
        await notification_service.notify(store, user_id, "withdrawal", message)

    return txn
