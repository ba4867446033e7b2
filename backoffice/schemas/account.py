"""
Pydantic schemas for account, balance and adjustment endpoints.

All monetary amounts are expressed in integer cents.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from backoffice.models.user import UserRole


class AccountResponse(BaseModel):
    """A customer's account as the customer sees it."""
    id: uuid.UUID
    user_id: uuid.UUID
    username: str
    full_name: str
    phone: str | None
    available_cents: int
    frozen_cents: int
    balance_updated_at: datetime | None
    bank_name: str | None
    bank_account_holder: str | None
    bank_account_last_four: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BankDetailsRequest(BaseModel):
    """Request body for PUT /accounts/me/bank-details."""
    bank_name: str = Field(min_length=1, max_length=100)
    bank_account_holder: str = Field(min_length=1, max_length=200)
    bank_account_number: str = Field(min_length=4, max_length=34)

    model_config = {"extra": "forbid"}


class BalanceResponse(BaseModel):
    """
    Reconciliation view — cached balances next to the ledger totals.

    `match` is False when the cached balances disagree with the sum of the
    account's ledger entries, which would indicate a data integrity issue.
    """
    account_id: uuid.UUID
    username: str
    available_cents: int
    frozen_cents: int
    computed_available_cents: int
    computed_frozen_cents: int
    match: bool
    balance_updated_at: datetime | None


class BalanceAdjustmentRequest(BaseModel):
    """Request body for PUT /admin/users/balance. Values are targets, not deltas."""
    account_id: uuid.UUID
    available_cents: int | None = Field(None, ge=0)
    frozen_cents: int | None = Field(None, ge=0)
    note: str | None = Field(None, max_length=500)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def at_least_one_target(self):
        if self.available_cents is None and self.frozen_cents is None:
            raise ValueError("Provide available_cents, frozen_cents or both")
        return self


class BalanceAdjustmentResponse(BaseModel):
    account_id: uuid.UUID
    available_cents: int
    frozen_cents: int
    available_delta_cents: int
    frozen_delta_cents: int
    transaction_id: uuid.UUID | None
    reference: str | None


class UserStatusRequest(BaseModel):
    """Request body for PUT /admin/users/{user_id}/status."""
    is_active: bool

    model_config = {"extra": "forbid"}


class UserStatusResponse(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    role: UserRole
    is_active: bool

    model_config = {"from_attributes": True}


class NotificationResponse(BaseModel):
    id: uuid.UUID
    kind: str
    message: str
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
