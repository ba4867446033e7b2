"""
Pydantic schemas for trading session endpoints.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class SessionCreateRequest(BaseModel):
    """Request body for POST /admin/sessions."""
    start_time: datetime
    duration_seconds: int | None = Field(None, gt=0)

    model_config = {"extra": "forbid"}


class SessionResolveRequest(BaseModel):
    """Request body for POST /admin/sessions/{id}/resolve."""
    result: Literal["up", "down"]

    model_config = {"extra": "forbid"}


class SessionResponse(BaseModel):
    id: uuid.UUID
    code: str
    start_time: datetime
    end_time: datetime
    status: str
    result: str | None
    total_bet_cents: int
    total_win_cents: int
    participant_count: int

    model_config = {"from_attributes": True}


class ResolutionResponse(BaseModel):
    """Outcome of resolving or cancelling a session."""
    session_id: uuid.UUID
    status: str
    result: str | None
    settled: int
    failed: int
    failed_bet_ids: list[uuid.UUID]

    model_config = {"from_attributes": True}
