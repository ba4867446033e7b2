"""
Authentication router — signup and login endpoints.

These are the only public (unauthenticated) endpoints in the API.
Everything else requires a valid JWT token.

Endpoints:
  POST /auth/signup  — Register a customer, open their account, get a token
  POST /auth/login   — Authenticate and get a token

Security notes:
  - Plaintext passwords and bank account numbers exist only in memory
    during request processing and are never logged. The request-log
    middleware records method, path and status only.
"""

from fastapi import APIRouter, Depends, status

from backoffice.database import Store, get_store
from backoffice.schemas.auth import (
    UserSignupRequest,
    UserLoginRequest,
    TokenResponse,
    SignupResponse,
)
from backoffice.services import auth_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new customer",
)
async def signup(
    request: UserSignupRequest,
    store: Store = Depends(get_store),
):
    """
    Register a new trading customer.

    Creates a User (authentication identity) and an Account with zero
    balances in a single unit of work. Returns a JWT token so the customer
    is immediately logged in.

    - **username**: 3-50 characters; appears in transaction references
    - **email**: Must be a valid email format and not already registered
    - **password**: Minimum 8 characters
    - **bank_***: Optional; all three or none
    """
    async with store.unit_of_work() as db:
        user, account, token = await auth_service.signup(
            db=db,
            username=request.username,
            email=request.email,
            password=request.password,
            full_name=request.full_name,
            phone=request.phone,
            bank_name=request.bank_name,
            bank_account_holder=request.bank_account_holder,
            bank_account_number=request.bank_account_number,
        )

    return SignupResponse(
        user_id=user.id,
        account_id=account.id,
        username=user.username,
        email=user.email,
        role=user.role.value,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Log in and get a token",
)
async def login(
    request: UserLoginRequest,
    store: Store = Depends(get_store),
):
    """Authenticate with email and password. Returns a JWT bearer token."""
    async with store.unit_of_work() as db:
        user, token = await auth_service.login(
            db=db,
            email=request.email,
            password=request.password,
        )
    return TokenResponse(token=token, role=user.role.value)
