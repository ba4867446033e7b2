"""
Funding router — customer deposit and withdrawal requests.

Endpoints:
  POST /deposits       — Ask to add funds (pending until an admin approves)
  POST /withdrawals    — Ask to take funds out (amount frozen immediately)
  GET  /transactions   — My transaction records, newest first

Admin review of these requests lives in the admin router.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.database import Store, get_db, get_store
from backoffice.dependencies import get_current_account
from backoffice.models.account import Account
from backoffice.schemas.transaction import (
    DepositCreateRequest,
    TransactionResponse,
    WithdrawalCreateRequest,
)
from backoffice.services import account_service, funding_service, transaction_service

router = APIRouter()


@router.post(
    "/deposits",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a deposit",
)
async def create_deposit(
    request: DepositCreateRequest,
    current: Account = Depends(get_current_account),
    store: Store = Depends(get_store),
):
    """
    Record a pending deposit request.

    The balance does not change until an admin confirms the bank transfer.
    """
    async with store.unit_of_work() as db:
        account = await account_service.get_account(db, current.id)
        txn = await funding_service.create_deposit_request(
            db,
            account,
            request.amount_cents,
            transaction_code=request.transaction_code,
            note=request.note,
        )
    return txn


@router.post(
    "/withdrawals",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a withdrawal",
)
async def create_withdrawal(
    request: WithdrawalCreateRequest,
    current: Account = Depends(get_current_account),
    store: Store = Depends(get_store),
):
    """
    Record a pending withdrawal request and freeze its amount.

    Fails with 422 insufficient_funds if the available balance does not
    cover the amount, and with 400 bank_details_required if no bank
    details are on file.
    """
    async with store.unit_of_work() as db:
        account = await account_service.get_account(db, current.id)
        txn = await funding_service.create_withdrawal_request(
            db,
            account,
            request.amount_cents,
            note=request.note,
        )
    return txn


@router.get(
    "/transactions",
    response_model=list[TransactionResponse],
    summary="List my transactions",
)
async def list_my_transactions(
    type: Literal["deposit", "withdrawal", "bet_win", "bet_win_reversal", "admin_adjustment"] | None = Query(
        None, description="Filter by transaction type"
    ),
    status_filter: str | None = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await transaction_service.find_transactions(
        db,
        account_id=current.id,
        txn_type=type,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
