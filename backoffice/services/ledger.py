"""
Ledger primitive — the only code that changes an account's balances.

Operations (amount is always a positive integer):

    deposit    available += amount
    withdraw   available -= amount            requires available >= amount
    freeze     available -= amount,
               frozen    += amount            requires available >= amount
    unfreeze   frozen    -= amount,
               available += amount            requires frozen >= amount
    settle     frozen    -= amount            requires frozen >= amount

freeze and unfreeze move money between the two balances and leave
available + frozen unchanged. settle is how held money leaves the account:
an approved withdrawal, or a stake consumed by bet settlement.

Atomicity:
  mutate() must run inside the caller's unit of work. It re-reads the
  account row (SELECT ... FOR UPDATE, populate_existing so a copy already
  in the session is overwritten), checks, writes the new balances and
  appends one LedgerEntry. The surrounding unit provides the isolation:
  BEGIN IMMEDIATE on SQLite, row locks under SERIALIZABLE elsewhere. If the
  caller's unit later fails, the mutation and its journal row roll back
  together.

Failure reporting:
  Expected failures (insufficient funds, unknown account) are returned as a
  LedgerResult with ok=False, never raised. The caller decides whether that
  aborts its unit — usually by calling result.raise_for_error().
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.exceptions import AccountNotFoundError, InsufficientFundsError
from backoffice.models.account import Account
from backoffice.models.ledger_entry import LedgerEntry

logger = logging.getLogger(__name__)

DEPOSIT = "deposit"
WITHDRAW = "withdraw"
FREEZE = "freeze"
UNFREEZE = "unfreeze"
SETTLE = "settle"

INSUFFICIENT_FUNDS = "insufficient_funds"
ACCOUNT_NOT_FOUND = "account_not_found"


@dataclass(frozen=True)
class _Rule:
    available_sign: int
    frozen_sign: int
    guard: str | None  # which balance must cover the amount


_RULES = {
    DEPOSIT: _Rule(+1, 0, None),
    WITHDRAW: _Rule(-1, 0, "available"),
    FREEZE: _Rule(-1, +1, "available"),
    UNFREEZE: _Rule(+1, -1, "frozen"),
    SETTLE: _Rule(0, -1, "frozen"),
}


@dataclass(frozen=True)
class LedgerResult:
    """
    Outcome of one ledger mutation.

    On success, available_cents/frozen_cents are the new balances. On an
    insufficient-funds failure they are the unchanged balances and
    checked_cents is the balance the amount had to fit in.
    """
    ok: bool
    account_id: uuid.UUID
    operation: str
    requested_cents: int
    available_cents: int = 0
    frozen_cents: int = 0
    checked_cents: int = 0
    error: str | None = None

    def raise_for_error(self) -> "LedgerResult":
        """Raise the matching domain exception if the mutation failed."""
        if self.error == ACCOUNT_NOT_FOUND:
            raise AccountNotFoundError(self.account_id)
        if self.error == INSUFFICIENT_FUNDS:
            raise InsufficientFundsError(
                account_id=self.account_id,
                requested_cents=self.requested_cents,
                available_cents=self.checked_cents,
            )
        return self


async def mutate(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount_cents: int,
    operation: str,
    *,
    reason: str,
    transaction_id: uuid.UUID | None = None,
    bet_id: uuid.UUID | None = None,
) -> LedgerResult:
    """
    Apply one balance operation to one account.

    Args:
        db: The caller's unit-of-work session.
        account_id: Account to mutate.
        amount_cents: Positive amount in minor units.
        operation: One of deposit, withdraw, freeze, unfreeze, settle.
        reason: Short machine-readable cause, stored on the journal row
                (e.g. "deposit_approved", "bet_stake").
        transaction_id: Transaction record this mutation belongs to, if any.
        bet_id: Bet this mutation belongs to, if any.

    Returns:
        A LedgerResult; ok=False for insufficient funds or a missing account.

    Raises:
        ValueError: For a non-positive amount or an unknown operation.
            These are programming errors, not business outcomes.
    """
    if amount_cents <= 0:
        raise ValueError(f"Ledger amount must be positive, got {amount_cents}")
    rule = _RULES.get(operation)
    if rule is None:
        raise ValueError(f"Unknown ledger operation: {operation!r}")

    result = await db.execute(
        select(Account)
        .where(Account.id == account_id)
        .with_for_update()  # No-op on SQLite (BEGIN IMMEDIATE covers it), locks row elsewhere
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()

    if account is None:
        return LedgerResult(
            ok=False,
            account_id=account_id,
            operation=operation,
            requested_cents=amount_cents,
            error=ACCOUNT_NOT_FOUND,
        )

    if rule.guard is not None:
        checked = account.available_cents if rule.guard == "available" else account.frozen_cents
        if checked < amount_cents:
            logger.info(
                "Refused %s of %d on account %s: %s balance is %d",
                operation, amount_cents, account_id, rule.guard, checked,
            )
            return LedgerResult(
                ok=False,
                account_id=account_id,
                operation=operation,
                requested_cents=amount_cents,
                available_cents=account.available_cents,
                frozen_cents=account.frozen_cents,
                checked_cents=checked,
                error=INSUFFICIENT_FUNDS,
            )

    available_delta = rule.available_sign * amount_cents
    frozen_delta = rule.frozen_sign * amount_cents

    account.available_cents += available_delta
    account.frozen_cents += frozen_delta
    account.balance_updated_at = datetime.now(timezone.utc)

    db.add(
        LedgerEntry(
            account_id=account_id,
            operation=operation,
            amount_cents=amount_cents,
            available_delta_cents=available_delta,
            frozen_delta_cents=frozen_delta,
            available_after_cents=account.available_cents,
            frozen_after_cents=account.frozen_cents,
            transaction_id=transaction_id,
            bet_id=bet_id,
            reason=reason,
        )
    )
    await db.flush()

    logger.info(
        "Ledger %s %d on account %s (%s): available=%d frozen=%d",
        operation, amount_cents, account_id, reason,
        account.available_cents, account.frozen_cents,
    )
    return LedgerResult(
        ok=True,
        account_id=account_id,
        operation=operation,
        requested_cents=amount_cents,
        available_cents=account.available_cents,
        frozen_cents=account.frozen_cents,
    )
