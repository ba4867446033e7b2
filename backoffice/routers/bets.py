"""
Bets router — customer bet placement and history.

Endpoints:
  POST /bets              — Place a bet on a trading session
  GET  /bets              — My bets, newest first
  GET  /sessions/current  — The session currently taking bets
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.database import Store, get_db, get_store
from backoffice.dependencies import get_current_account, get_current_user
from backoffice.models.account import Account
from backoffice.models.user import User
from backoffice.schemas.bet import BetCreateRequest, BetResponse
from backoffice.schemas.trading_session import SessionResponse
from backoffice.services import account_service, session_service, settlement_service

router = APIRouter()


@router.post(
    "/bets",
    response_model=BetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place a bet",
)
async def place_bet(
    request: BetCreateRequest,
    current: Account = Depends(get_current_account),
    store: Store = Depends(get_store),
):
    """
    Stake on the direction of a trading session.

    The stake moves from available to frozen until the bet is settled.
    The session must be upcoming or active.
    """
    async with store.unit_of_work() as db:
        account = await account_service.get_account(db, current.id)
        bet = await settlement_service.place_bet(
            db,
            account,
            request.session_id,
            request.direction,
            request.amount_cents,
        )
    return bet


@router.get(
    "/bets",
    response_model=list[BetResponse],
    summary="List my bets",
)
async def list_my_bets(
    session_id: uuid.UUID | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await settlement_service.find_bets(
        db,
        account_id=current.id,
        session_id=session_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/sessions/current",
    response_model=SessionResponse | None,
    summary="Get the current trading session",
)
async def get_current_session(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The running session, else the next upcoming one, else null."""
    return await session_service.current_session(db)
