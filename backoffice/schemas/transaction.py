"""
Pydantic schemas for deposit, withdrawal and transaction endpoints.

All monetary amounts are in integer cents. Admin transition bodies are
strict: the status is a Literal of the targets each endpoint accepts and
unknown fields are rejected, so a malformed request never reaches the
state machine.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class DepositCreateRequest(BaseModel):
    """Request body for POST /deposits."""
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    transaction_code: str | None = Field(
        None, max_length=100, description="Code the customer put on the bank transfer"
    )
    note: str | None = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class WithdrawalCreateRequest(BaseModel):
    """Request body for POST /withdrawals. Funds go to the account's bank details."""
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    note: str | None = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class TransactionResponse(BaseModel):
    """Public representation of a transaction record."""
    id: uuid.UUID
    reference: str
    account_id: uuid.UUID
    username: str
    type: str
    amount_cents: int
    received_amount_cents: int | None
    status: str
    note: str | None
    transaction_code: str | None
    bank_name: str | None
    bank_account_holder: str | None
    bank_account_last_four: str | None
    bet_id: uuid.UUID | None
    available_delta_cents: int | None
    frozen_delta_cents: int | None
    processed_by_id: uuid.UUID | None
    processed_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AdminTransactionDetail(TransactionResponse):
    """Admin view of one record, with the decrypted payout account number."""
    bank_account_number: str | None = None


class DepositTransitionRequest(BaseModel):
    """Request body for PUT /admin/deposits."""
    transaction_id: uuid.UUID
    status: Literal["approved", "rejected", "cancelled"]
    note: str | None = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class WithdrawalTransitionRequest(BaseModel):
    """Request body for PUT /admin/withdrawals."""
    transaction_id: uuid.UUID
    status: Literal["processing", "approved", "rejected", "cancelled"]
    note: str | None = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class TransitionData(BaseModel):
    transaction_id: uuid.UUID
    reference: str
    status: str
    processed_at: datetime | None


class TransitionResponse(BaseModel):
    """Response body for a successful deposit/withdrawal transition."""
    success: bool = True
    message: str
    data: TransitionData
