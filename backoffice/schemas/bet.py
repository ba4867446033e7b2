"""
Pydantic schemas for bet endpoints.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class BetCreateRequest(BaseModel):
    """Request body for POST /bets. The stake is frozen until settlement."""
    session_id: uuid.UUID
    direction: Literal["up", "down"]
    amount_cents: int = Field(gt=0, description="Stake in cents (must be positive)")

    model_config = {"extra": "forbid"}


class BetStatusRequest(BaseModel):
    """Request body for PUT /admin/bets."""
    bet_id: uuid.UUID
    status: Literal["pending", "active", "won", "lost", "cancelled"]
    note: str | None = Field(None, max_length=500)

    model_config = {"extra": "forbid"}


class BetResponse(BaseModel):
    """Public representation of a bet."""
    id: uuid.UUID
    account_id: uuid.UUID
    session_id: uuid.UUID
    direction: str
    amount_cents: int
    status: str
    result: str | None
    payout_cents: int
    note: str | None
    settled_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
