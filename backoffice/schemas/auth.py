"""
Pydantic schemas for authentication endpoints (signup and login).

These schemas define the request/response contracts for the auth API.
Pydantic validates incoming data automatically; a missing field or unknown
extra field is rejected with a 400 validation_error before our code runs.
"""

import uuid

from pydantic import BaseModel, EmailStr, Field, model_validator


class UserSignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.]+$")
    email: EmailStr                                # Validates email format
    password: str = Field(min_length=8)            # Minimum 8 characters
    full_name: str = Field(min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=20)
    bank_name: str | None = Field(None, max_length=100)
    bank_account_holder: str | None = Field(None, max_length=200)
    bank_account_number: str | None = Field(None, min_length=4, max_length=34)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def bank_details_all_or_nothing(self):
        provided = [self.bank_name, self.bank_account_holder, self.bank_account_number]
        if any(provided) and not all(provided):
            raise ValueError("Bank name, account holder and account number go together")
        return self


class UserLoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str

    model_config = {"extra": "forbid"}


class TokenResponse(BaseModel):
    """Response body for successful login — contains the JWT."""
    token: str
    token_type: str = "bearer"
    role: str


class SignupResponse(BaseModel):
    """Response body for successful signup — user info + JWT."""
    user_id: uuid.UUID
    account_id: uuid.UUID
    username: str
    email: str
    role: str
    token: str
    token_type: str = "bearer"
