"""
Trading session service — creating sessions and resolving their bets.

Session codes are derived from the start time (YYMMDDhhmm, UTC), so two
sessions cannot start in the same minute.

Resolution is a batch job, not one big transaction: the session is marked
completed in its own unit of work, then every open bet is settled in its
own unit through the settlement engine. One bet failing (for example a
storage error) does not undo the others; the failure is logged and
counted in the returned summary so an operator can retry that bet from
PUT /admin/bets.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.config import settings
from backoffice.database import Store
from backoffice.exceptions import BackOfficeError, DuplicateSessionError, InvalidTransitionError, SessionNotFoundError
from backoffice.models.bet import Bet, OPEN_STATUSES
from backoffice.models.trading_session import TradingSession, BETTABLE_STATUSES
from backoffice.services import settlement_service

logger = logging.getLogger(__name__)


@dataclass
class ResolutionSummary:
    session_id: uuid.UUID
    status: str
    result: str | None
    settled: int = 0
    failed: int = 0
    failed_bet_ids: list[uuid.UUID] = field(default_factory=list)


def session_code(start_time: datetime) -> str:
    """YYMMDDhhmm of start_time in UTC, e.g. 2024-06-10 14:05 -> "2406101405"."""
    if start_time.tzinfo is not None:
        start_time = start_time.astimezone(timezone.utc)
    return start_time.strftime("%y%m%d%H%M")


async def create_session(
    db: AsyncSession,
    start_time: datetime,
    duration_seconds: int | None = None,
) -> TradingSession:
    """
    Create an upcoming session starting at start_time.

    Raises:
        DuplicateSessionError: A session with the same code exists.
    """
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)
    start_time = start_time.astimezone(timezone.utc).replace(second=0, microsecond=0)
    if duration_seconds is None:
        duration_seconds = settings.SESSION_DURATION_SECONDS

    code = session_code(start_time)
    existing = await db.execute(
        select(TradingSession.id).where(TradingSession.code == code)
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateSessionError(code)

    session = TradingSession(
        code=code,
        start_time=start_time,
        end_time=start_time + timedelta(seconds=duration_seconds),
        status="upcoming",
    )
    db.add(session)
    await db.flush()

    logger.info("Trading session %s created", code)
    return session


async def get_session(db: AsyncSession, session_id: uuid.UUID) -> TradingSession:
    session = await db.get(TradingSession, session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


async def activate_session(db: AsyncSession, session_id: uuid.UUID) -> TradingSession:
    session = await get_session(db, session_id)
    if session.status != "upcoming":
        raise InvalidTransitionError(session.status, "active")
    session.status = "active"
    await db.flush()
    logger.info("Trading session %s is active", session.code)
    return session


async def current_session(
    db: AsyncSession,
    now: datetime | None = None,
) -> TradingSession | None:
    """
    The session running at `now`, else the next one to start, else None.

    Completed and cancelled sessions are never current.
    """
    now = now or datetime.now(timezone.utc)

    running = await db.execute(
        select(TradingSession)
        .where(TradingSession.status.in_(BETTABLE_STATUSES))
        .where(TradingSession.start_time <= now, TradingSession.end_time > now)
        .order_by(TradingSession.start_time)
        .limit(1)
    )
    session = running.scalar_one_or_none()
    if session is not None:
        return session

    upcoming = await db.execute(
        select(TradingSession)
        .where(TradingSession.status.in_(BETTABLE_STATUSES))
        .where(TradingSession.start_time > now)
        .order_by(TradingSession.start_time)
        .limit(1)
    )
    return upcoming.scalar_one_or_none()


async def _close(
    store: Store,
    session_id: uuid.UUID,
    status: str,
    result: str | None,
) -> list[tuple[uuid.UUID, str]]:
    """Mark the session closed and return (bet id, direction) of its open bets."""
    async with store.unit_of_work() as db:
        query = await db.execute(
            select(TradingSession)
            .where(TradingSession.id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        session = query.scalar_one_or_none()
        if session is None:
            raise SessionNotFoundError(session_id)
        if session.status not in BETTABLE_STATUSES:
            raise InvalidTransitionError(session.status, status)

        session.status = status
        session.result = result

        open_bets = await db.execute(
            select(Bet.id, Bet.direction)
            .where(Bet.session_id == session_id, Bet.status.in_(OPEN_STATUSES))
            .order_by(Bet.created_at)
        )
        return [(bet_id, direction) for bet_id, direction in open_bets.all()]


async def _settle_all(
    store: Store,
    summary: ResolutionSummary,
    open_bets: list[tuple[uuid.UUID, str]],
    status_for,
    processed_by_id: uuid.UUID | None,
) -> None:
    for bet_id, direction in open_bets:
        try:
            await settlement_service.settle_bet(
                store, bet_id, status_for(direction), processed_by_id=processed_by_id,
            )
        except BackOfficeError as exc:
            summary.failed += 1
            summary.failed_bet_ids.append(bet_id)
            logger.error("Failed to settle bet %s in session %s: %s", bet_id, summary.session_id, exc.detail)
        else:
            summary.settled += 1


async def resolve_session(
    store: Store,
    session_id: uuid.UUID,
    result: str,
    processed_by_id: uuid.UUID | None = None,
) -> ResolutionSummary:
    """
    Post the session result and settle every open bet in it.

    Bets whose direction matches the result are won, the rest lost.

    Raises:
        SessionNotFoundError: Unknown session.
        InvalidTransitionError: The session is already completed or cancelled.
    """
    open_bets = await _close(store, session_id, "completed", result)
    summary = ResolutionSummary(session_id=session_id, status="completed", result=result)

    await _settle_all(
        store, summary, open_bets,
        lambda direction: "won" if direction == result else "lost",
        processed_by_id,
    )

    logger.info(
        "Session %s resolved %s: %d bets settled, %d failed",
        session_id, result, summary.settled, summary.failed,
    )
    return summary


async def cancel_session(
    store: Store,
    session_id: uuid.UUID,
    processed_by_id: uuid.UUID | None = None,
) -> ResolutionSummary:
    """Cancel the session and refund the stake of every open bet."""
    open_bets = await _close(store, session_id, "cancelled", None)
    summary = ResolutionSummary(session_id=session_id, status="cancelled", result=None)

    await _settle_all(store, summary, open_bets, lambda direction: "cancelled", processed_by_id)

    logger.info(
        "Session %s cancelled: %d bets refunded, %d failed",
        session_id, summary.settled, summary.failed,
    )
    return summary
