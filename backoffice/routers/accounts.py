"""
Accounts router — the authenticated customer's own account.

Endpoints:
  GET /accounts/me                 — Account and balances
  PUT /accounts/me/bank-details    — Set the withdrawal destination
  GET /accounts/me/notifications   — Latest notifications
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.database import Store, get_db, get_store
from backoffice.dependencies import get_current_account
from backoffice.models.account import Account
from backoffice.schemas.account import AccountResponse, BankDetailsRequest, NotificationResponse
from backoffice.services import account_service, notification_service

router = APIRouter()


@router.get(
    "/me",
    response_model=AccountResponse,
    summary="Get my account and balances",
)
async def get_my_account(
    current: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.get_account(db, current.id)


@router.put(
    "/me/bank-details",
    response_model=AccountResponse,
    summary="Set my bank details",
)
async def update_my_bank_details(
    request: BankDetailsRequest,
    current: Account = Depends(get_current_account),
    store: Store = Depends(get_store),
):
    """
    Set the bank account withdrawals are paid to.

    The account number is stored encrypted; responses only show the last
    four digits. Withdrawals already requested keep the destination they
    were requested with.
    """
    async with store.unit_of_work() as db:
        account = await account_service.get_account(db, current.id, for_update=True)
        await account_service.update_bank_details(
            db,
            account,
            request.bank_name,
            request.bank_account_holder,
            request.bank_account_number,
        )
    return account


@router.get(
    "/me/notifications",
    response_model=list[NotificationResponse],
    summary="List my notifications",
)
async def list_my_notifications(
    limit: int = Query(50, ge=1, le=200),
    current: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await notification_service.list_notifications(db, current.user_id, limit=limit)
