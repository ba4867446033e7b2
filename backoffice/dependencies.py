"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a dependency chain that enforces both authentication and
role-based access control:

  get_current_user (JWT -> User)
      ├── get_current_account (User -> Account)   [CUSTOMER role]
      └── require_admin (User -> User)             [ADMIN role]

Role-based access control:
  - CUSTOMER: Can only see and move their own money. Customer endpoints use
    get_current_account, which scopes every query to the caller's account.
  - ADMIN: Reviews requests, settles bets and adjusts balances. Admins have
    no balance and are blocked from customer endpoints.

Sessions:
  These dependencies read the user in their own short unit of work rather
  than sharing the request's session. On SQLite every unit takes the write
  lock when it begins, so a handler that opens its own unit must not be
  holding another one open through a dependency.
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select

from backoffice.database import Store, get_store
from backoffice.models.account import Account
from backoffice.models.user import User, UserRole
from backoffice.security import decode_access_token


# OAuth2PasswordBearer tells FastAPI where to look for the token:
# the "Authorization: Bearer <token>" header.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    store: Store = Depends(get_store),
) -> User:
    """
    Extract and validate the JWT token, then return the corresponding User.

    Raises:
        HTTPException 401: If the token is invalid, the user doesn't exist,
            or the user has been deactivated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        user_id_str: str | None = payload.get("sub")
        if user_id_str is None:
            raise credentials_exception
        user_id = uuid.UUID(user_id_str)
    except (JWTError, ValueError):
        raise credentials_exception

    async with store.unit_of_work() as db:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise credentials_exception

    return user


async def get_current_account(
    user: User = Depends(get_current_user),
    store: Store = Depends(get_store),
) -> Account:
    """
    Get the Account of the authenticated customer.

    The returned object identifies the account; handlers that move money
    re-read it inside their own unit of work before using balances.

    Raises:
        HTTPException 403: If the user is an admin.
        HTTPException 404: If the user has no account.
    """
    if user.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin users have no balance. Use /admin/* endpoints.",
        )

    async with store.unit_of_work() as db:
        result = await db.execute(select(Account).where(Account.user_id == user.id))
        account = result.scalar_one_or_none()

    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found",
        )

    return account


async def require_admin(
    user: User = Depends(get_current_user),
) -> User:
    """
    Require the authenticated user to have the ADMIN role.

    Raises:
        HTTPException 403: If the user is not an admin.
    """
    if user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
