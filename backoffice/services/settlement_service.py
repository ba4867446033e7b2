"""
Bet settlement engine — placing bets and moving them between statuses.

Every bet status has a balance position, measured against "stake held"
(stake S sitting in the owner's frozen balance):

    pending, active   stake held
    won               S settled out of frozen, winnings W = S * multiplier
                      deposited to available, bet_win record (+W)
    lost              S settled out of frozen
    cancelled         S unfrozen back to available

A status change first undoes the old status (back to "stake held") and
then applies the new one, all through the ledger and inside one unit of
work. Undoing "won" withdraws W again and writes a bet_win_reversal
record (-W); if the customer has already spent the winnings the withdraw
fails with InsufficientFundsError and nothing changes.

Example: a 20000 stake on a 150000 balance
    place   available 130000  frozen 20000
    won     available 170000  frozen 0       bet_win +40000
    → lost  available 130000  frozen 0       bet_win_reversal -40000
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.database import Store
from backoffice.exceptions import (
    AccountNotFoundError,
    BetNotFoundError,
    InvalidTransitionError,
    SessionClosedError,
    SessionNotFoundError,
)
from backoffice.models.account import Account
from backoffice.models.bet import Bet, OPEN_STATUSES, TERMINAL_STATUSES
from backoffice.models.trading_session import TradingSession, BETTABLE_STATUSES
from backoffice.models.transaction import BET_WIN, BET_WIN_REVERSAL
from backoffice.services import ledger, notification_service, transaction_service

logger = logging.getLogger(__name__)

BET_STATUSES = OPEN_STATUSES | TERMINAL_STATUSES


async def _lock_session(db: AsyncSession, session_id: uuid.UUID) -> TradingSession:
    result = await db.execute(
        select(TradingSession)
        .where(TradingSession.id == session_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


async def place_bet(
    db: AsyncSession,
    account: Account,
    session_id: uuid.UUID,
    direction: str,
    amount_cents: int,
) -> Bet:
    """
    Place a bet and freeze its stake.

    Raises:
        SessionNotFoundError: Unknown session.
        SessionClosedError: The session is completed or cancelled.
        InsufficientFundsError: available does not cover the stake.
    """
    if amount_cents <= 0:
        raise ValueError(f"Stake must be positive, got {amount_cents}")

    session = await _lock_session(db, session_id)
    if session.status not in BETTABLE_STATUSES:
        raise SessionClosedError(session_id, session.status)

    previous = await db.execute(
        select(Bet.id)
        .where(Bet.session_id == session_id, Bet.account_id == account.id)
        .limit(1)
    )
    first_bet_in_session = previous.scalar_one_or_none() is None

    bet = Bet(
        account_id=account.id,
        session_id=session_id,
        direction=direction,
        amount_cents=amount_cents,
        status="pending",
    )
    db.add(bet)
    await db.flush()

    result = await ledger.mutate(
        db, account.id, amount_cents, ledger.FREEZE,
        reason="bet_stake", bet_id=bet.id,
    )
    result.raise_for_error()

    session.total_bet_cents += amount_cents
    if first_bet_in_session:
        session.participant_count += 1
    await db.flush()

    logger.info(
        "Bet %s placed by %s: %s %d on session %s",
        bet.id, account.username, direction, amount_cents, session.code,
    )
    return bet


async def _undo(
    db: AsyncSession,
    bet: Bet,
    account: Account,
    session: TradingSession,
    processed_by_id: uuid.UUID | None,
    now: datetime,
) -> None:
    """Return the balances to "stake held" from bet.status."""
    stake = bet.amount_cents

    if bet.status == "won":
        winnings = bet.payout_cents
        if winnings > 0:
            reversal = await transaction_service.create_transaction(
                db, account, BET_WIN_REVERSAL, -winnings,
                status="completed",
                bet_id=bet.id,
                note=f"Reversal of winnings for bet {bet.id}",
                processed_by_id=processed_by_id,
                processed_at=now,
            )
            result = await ledger.mutate(
                db, account.id, winnings, ledger.WITHDRAW,
                reason="bet_win_reversed", transaction_id=reversal.id, bet_id=bet.id,
            )
            result.raise_for_error()
            session.total_win_cents -= winnings
        await _restore_stake(db, bet)

    elif bet.status == "lost":
        await _restore_stake(db, bet)

    elif bet.status == "cancelled":
        result = await ledger.mutate(
            db, account.id, stake, ledger.FREEZE,
            reason="bet_reopened", bet_id=bet.id,
        )
        result.raise_for_error()


async def _restore_stake(db: AsyncSession, bet: Bet) -> None:
    # The settled stake comes back into the account and is held again
    for operation in (ledger.DEPOSIT, ledger.FREEZE):
        result = await ledger.mutate(
            db, bet.account_id, bet.amount_cents, operation,
            reason="bet_reopened", bet_id=bet.id,
        )
        result.raise_for_error()


async def _apply(
    db: AsyncSession,
    bet: Bet,
    new_status: str,
    account: Account,
    session: TradingSession,
    processed_by_id: uuid.UUID | None,
    now: datetime,
) -> None:
    """Move the balances from "stake held" to new_status."""
    stake = bet.amount_cents

    if new_status == "won":
        result = await ledger.mutate(
            db, account.id, stake, ledger.SETTLE,
            reason="bet_stake_settled", bet_id=bet.id,
        )
        result.raise_for_error()

        winnings = stake * settings.BET_PAYOUT_MULTIPLIER
        record = await transaction_service.create_transaction(
            db, account, BET_WIN, winnings,
            status="completed",
            bet_id=bet.id,
            note=f"Winnings for bet {bet.id}",
            processed_by_id=processed_by_id,
            processed_at=now,
        )
        result = await ledger.mutate(
            db, account.id, winnings, ledger.DEPOSIT,
            reason="bet_won", transaction_id=record.id, bet_id=bet.id,
        )
        result.raise_for_error()

        session.total_win_cents += winnings
        bet.payout_cents = winnings
        bet.result = "win"

    elif new_status == "lost":
        result = await ledger.mutate(
            db, account.id, stake, ledger.SETTLE,
            reason="bet_lost", bet_id=bet.id,
        )
        result.raise_for_error()
        bet.payout_cents = 0
        bet.result = "lose"

    elif new_status == "cancelled":
        result = await ledger.mutate(
            db, account.id, stake, ledger.UNFREEZE,
            reason="bet_cancelled", bet_id=bet.id,
        )
        result.raise_for_error()
        bet.payout_cents = 0
        bet.result = None

    else:
        bet.payout_cents = 0
        bet.result = None


async def update_bet_status(
    db: AsyncSession,
    bet_id: uuid.UUID,
    new_status: str,
    note: str | None = None,
    processed_by_id: uuid.UUID | None = None,
) -> Bet:
    """
    Move a bet to new_status and apply the balance consequences.

    Must run inside a unit of work. Setting the status a bet already has
    only updates the note.

    Raises:
        BetNotFoundError: Unknown bet.
        InsufficientFundsError: Reversing a win whose winnings were already
            spent, or re-opening a cancelled bet whose stake was spent.
        InvalidTransitionError: Re-opening a bet whose session no longer takes bets.
    """
    if new_status not in BET_STATUSES:
        raise ValueError(f"Unknown bet status: {new_status!r}")

    result = await db.execute(
        select(Bet)
        .where(Bet.id == bet_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    bet = result.scalar_one_or_none()
    if bet is None:
        raise BetNotFoundError(bet_id)

    if note is not None:
        bet.note = note

    old_status = bet.status
    if old_status == new_status:
        await db.flush()
        return bet

    account = await db.get(Account, bet.account_id)
    if account is None:
        raise AccountNotFoundError(bet.account_id)
    session = await _lock_session(db, bet.session_id)
    if new_status in OPEN_STATUSES and session.status not in BETTABLE_STATUSES:
        raise InvalidTransitionError(old_status, new_status)
    now = datetime.now(timezone.utc)

    await _undo(db, bet, account, session, processed_by_id, now)
    await _apply(db, bet, new_status, account, session, processed_by_id, now)

    bet.status = new_status
    bet.settled_at = now if new_status in TERMINAL_STATUSES else None
    await db.flush()

    logger.info("Bet %s moved %s -> %s", bet.id, old_status, new_status)
    return bet


_BET_MESSAGES = {
    "won": "Your bet on session {code} won {amount} cents.",
    "lost": "Your bet on session {code} lost.",
    "cancelled": "Your bet on session {code} was cancelled and the stake refunded.",
}


async def settle_bet(
    store: Store,
    bet_id: uuid.UUID,
    new_status: str,
    note: str | None = None,
    processed_by_id: uuid.UUID | None = None,
) -> Bet:
    """Run update_bet_status() in its own unit of work, then notify the owner."""
    async with store.unit_of_work() as db:
        old_status = await db.scalar(select(Bet.status).where(Bet.id == bet_id))
        bet = await update_bet_status(db, bet_id, new_status, note, processed_by_id)
        owner = await db.execute(
            select(Account.user_id, TradingSession.code)
            .join(Bet, Bet.account_id == Account.id)
            .join(TradingSession, TradingSession.id == Bet.session_id)
            .where(Bet.id == bet_id)
        )
        user_id, code = owner.one()

    if new_status in _BET_MESSAGES and old_status != new_status:
        message = _BET_MESSAGES[new_status].format(code=code, amount=bet.payout_cents)
        await notification_service.notify(store, user_id, "bet", message)

    return bet


async def find_bets(
    db: AsyncSession,
    account_id: uuid.UUID | None = None,
    session_id: uuid.UUID | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Bet]:
    query = (
        select(Bet)
        .order_by(Bet.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if account_id is not None:
        query = query.where(Bet.account_id == account_id)
    if session_id is not None:
        query = query.where(Bet.session_id == session_id)
    if status:
        query = query.where(Bet.status == status)

    result = await db.execute(query)
    return list(result.scalars().all())
