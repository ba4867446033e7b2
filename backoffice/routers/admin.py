"""
Admin router — the back-office operator's endpoints.

All endpoints require ADMIN role. The acting admin's user ID comes from the
JWT and is recorded as processed_by on every change.

Endpoints:
  PUT  /admin/deposits                      — Approve/reject/cancel a deposit request
  PUT  /admin/withdrawals                   — Process/approve/reject/cancel a withdrawal
  PUT  /admin/bets                          — Move a bet to another status
  PUT  /admin/users/balance                 — Set an account's balances
  PUT  /admin/users/{user_id}/status        — Activate or deactivate a user
  GET  /admin/accounts                      — List accounts
  GET  /admin/accounts/{account_id}/balance — Balance reconciliation
  GET  /admin/transactions                  — Audit list with filters
  GET  /admin/transactions/{transaction_id} — One record, payout details decrypted
  GET  /admin/bets                          — List bets with filters
  POST /admin/sessions                      — Create a trading session
  GET  /admin/sessions/{session_id}         — Session with aggregates
  POST /admin/sessions/{session_id}/activate
  POST /admin/sessions/{session_id}/resolve — Post result, settle open bets
  POST /admin/sessions/{session_id}/cancel  — Cancel, refund open bets

By consolidating all admin routes in one router, we avoid route-ordering
conflicts that arise when multiple routers share a prefix and have
overlapping parameterized paths.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.database import Store, get_db, get_store
from backoffice.dependencies import require_admin
from backoffice.models.transaction import DEPOSIT, WITHDRAWAL
from backoffice.models.user import User
from backoffice.schemas.account import (
    AccountResponse,
    BalanceAdjustmentRequest,
    BalanceAdjustmentResponse,
    BalanceResponse,
    UserStatusRequest,
    UserStatusResponse,
)
from backoffice.schemas.bet import BetResponse, BetStatusRequest
from backoffice.schemas.trading_session import (
    ResolutionResponse,
    SessionCreateRequest,
    SessionResolveRequest,
    SessionResponse,
)
from backoffice.schemas.transaction import (
    AdminTransactionDetail,
    DepositTransitionRequest,
    TransactionResponse,
    TransitionData,
    TransitionResponse,
    WithdrawalTransitionRequest,
)
from backoffice.services import (
    account_service,
    auth_service,
    funding_service,
    session_service,
    settlement_service,
    transaction_service,
)

router = APIRouter()


def _transition_response(txn_type: str, txn) -> TransitionResponse:
    label = "Deposit" if txn_type == DEPOSIT else "Withdrawal"
    return TransitionResponse(
        message=f"{label} {txn.reference} is now {txn.status}",
        data=TransitionData(
            transaction_id=txn.id,
            reference=txn.reference,
            status=txn.status,
            processed_at=txn.processed_at,
        ),
    )


# ---------------------------------------------------------------------------
# Request review
# ---------------------------------------------------------------------------

@router.put(
    "/deposits",
    response_model=TransitionResponse,
    summary="[Admin] Approve, reject or cancel a deposit request",
)
async def admin_transition_deposit(
    request: DepositTransitionRequest,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Approving credits the amount to the customer's available balance.
    Rejecting or cancelling only changes the status.

    A request can be processed once; a second attempt answers 400
    already_processed.
    """
    txn = await funding_service.process_request(
        store, DEPOSIT, request.transaction_id, request.status, admin.id, request.note,
    )
    return _transition_response(DEPOSIT, txn)


@router.put(
    "/withdrawals",
    response_model=TransitionResponse,
    summary="[Admin] Process, approve, reject or cancel a withdrawal request",
)
async def admin_transition_withdrawal(
    request: WithdrawalTransitionRequest,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Approving pays out the frozen amount. Rejecting or cancelling returns
    it to the customer's available balance. "processing" marks the request
    as being worked on without moving money.
    """
    txn = await funding_service.process_request(
        store, WITHDRAWAL, request.transaction_id, request.status, admin.id, request.note,
    )
    return _transition_response(WITHDRAWAL, txn)


# ---------------------------------------------------------------------------
# Bets
# ---------------------------------------------------------------------------

@router.put(
    "/bets",
    response_model=BetResponse,
    summary="[Admin] Change a bet's status",
)
async def admin_update_bet(
    request: BetStatusRequest,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Settle, cancel or re-open a bet. Balances follow the new status; moving
    a bet away from "won" reverses its winnings.
    """
    return await settlement_service.settle_bet(
        store, request.bet_id, request.status, note=request.note, processed_by_id=admin.id,
    )


@router.get(
    "/bets",
    response_model=list[BetResponse],
    summary="[Admin] List bets",
)
async def admin_list_bets(
    account_id: uuid.UUID | None = Query(None),
    session_id: uuid.UUID | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await settlement_service.find_bets(
        db,
        account_id=account_id,
        session_id=session_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )


# ---------------------------------------------------------------------------
# Users and balances
# ---------------------------------------------------------------------------

@router.put(
    "/users/balance",
    response_model=BalanceAdjustmentResponse,
    summary="[Admin] Set an account's balances",
)
async def admin_adjust_balance(
    request: BalanceAdjustmentRequest,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Set available and/or frozen to the given values. The change is applied
    through the ledger and recorded as an admin_adjustment transaction.
    """
    async with store.unit_of_work() as db:
        result = await account_service.adjust_balance(
            db,
            request.account_id,
            admin.id,
            available_cents=request.available_cents,
            frozen_cents=request.frozen_cents,
            note=request.note,
        )

    return BalanceAdjustmentResponse(
        account_id=result.account.id,
        available_cents=result.account.available_cents,
        frozen_cents=result.account.frozen_cents,
        available_delta_cents=result.available_delta_cents,
        frozen_delta_cents=result.frozen_delta_cents,
        transaction_id=result.transaction.id if result.transaction else None,
        reference=result.transaction.reference if result.transaction else None,
    )


@router.put(
    "/users/{user_id}/status",
    response_model=UserStatusResponse,
    summary="[Admin] Activate or deactivate a user",
)
async def admin_set_user_status(
    user_id: uuid.UUID,
    request: UserStatusRequest,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    async with store.unit_of_work() as db:
        user = await auth_service.set_user_active(db, user_id, request.is_active)
    return user


@router.get(
    "/accounts",
    response_model=list[AccountResponse],
    summary="[Admin] List accounts",
)
async def admin_list_accounts(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.list_accounts(db, limit=limit, offset=offset)


@router.get(
    "/accounts/{account_id}/balance",
    response_model=BalanceResponse,
    summary="[Admin] Reconcile an account's balance",
)
async def admin_get_balance(
    account_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Cached balances next to the totals recomputed from the ledger journal."""
    return await account_service.get_balance(db, account_id)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

@router.get(
    "/transactions",
    response_model=list[TransactionResponse],
    summary="[Admin] List all transactions",
)
async def admin_list_transactions(
    account_id: uuid.UUID | None = Query(None),
    type: str | None = Query(None, description="Filter by transaction type"),
    status_filter: str | None = Query(None, alias="status", description="Filter by status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Complete audit trail across every account, newest first."""
    return await transaction_service.find_transactions(
        db,
        account_id=account_id,
        txn_type=type,
        status=status_filter,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/transactions/{transaction_id}",
    response_model=AdminTransactionDetail,
    summary="[Admin] Get one transaction",
)
async def admin_get_transaction(
    transaction_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Includes the decrypted bank account number a withdrawal is paid to."""
    txn = await transaction_service.require_transaction(db, transaction_id)
    detail = AdminTransactionDetail.model_validate(txn)
    detail.bank_account_number = account_service.reveal_account_number(
        txn.bank_account_number_encrypted
    )
    return detail


# ---------------------------------------------------------------------------
# Trading sessions
# ---------------------------------------------------------------------------

@router.post(
    "/sessions",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Create a trading session",
)
async def admin_create_session(
    request: SessionCreateRequest,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    async with store.unit_of_work() as db:
        session = await session_service.create_session(
            db, request.start_time, request.duration_seconds,
        )
    return session


@router.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    summary="[Admin] Get a trading session",
)
async def admin_get_session(
    session_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await session_service.get_session(db, session_id)


@router.post(
    "/sessions/{session_id}/activate",
    response_model=SessionResponse,
    summary="[Admin] Open an upcoming session",
)
async def admin_activate_session(
    session_id: uuid.UUID,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    async with store.unit_of_work() as db:
        session = await session_service.activate_session(db, session_id)
    return session


@router.post(
    "/sessions/{session_id}/resolve",
    response_model=ResolutionResponse,
    summary="[Admin] Post a session result and settle its bets",
)
async def admin_resolve_session(
    session_id: uuid.UUID,
    request: SessionResolveRequest,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    """
    Bets on the winning direction are won, the rest lost. Each bet settles
    in its own unit of work; failures are counted in the response.
    """
    return await session_service.resolve_session(
        store, session_id, request.result, processed_by_id=admin.id,
    )


@router.post(
    "/sessions/{session_id}/cancel",
    response_model=ResolutionResponse,
    summary="[Admin] Cancel a session and refund its bets",
)
async def admin_cancel_session(
    session_id: uuid.UUID,
    admin: User = Depends(require_admin),
    store: Store = Depends(get_store),
):
    return await session_service.cancel_session(store, session_id, processed_by_id=admin.id)
