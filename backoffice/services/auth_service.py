"""
Authentication service — signup and login business logic.

Signup flow:
  1. Check that email and username are free
  2. Hash the password with Argon2id
  3. Create User + Account (zero balances) in a single unit of work
  4. Return a JWT token so the customer is immediately logged in

Login flow:
  1. Look up user by email
  2. Verify password against stored hash
  3. Return a JWT token

Admins are not created through signup. An operator promotes an existing
user (see demo/promote_admin.py); admins keep no balance of their own.

Security notes:
  - Login returns the same error for "wrong password" and "email not found"
    to prevent user enumeration attacks
  - Deactivated users cannot log in
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.exceptions import DuplicateEmailError, DuplicateUsernameError, InvalidCredentialsError, UserNotFoundError
from backoffice.models.account import Account
from backoffice.models.user import User, UserRole
from backoffice.security import hash_password, verify_password, create_access_token
from backoffice.services import account_service

logger = logging.getLogger(__name__)


async def signup(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
    full_name: str,
    phone: str | None = None,
    bank_name: str | None = None,
    bank_account_holder: str | None = None,
    bank_account_number: str | None = None,
) -> tuple[User, Account, str]:
    """
    Register a new customer and open their account.

    Bank details are optional at signup; they are required before the
    first withdrawal.

    Returns:
        Tuple of (User, Account, JWT token string).

    Raises:
        DuplicateEmailError: If the email is already registered.
        DuplicateUsernameError: If the username is taken.
    """
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise DuplicateEmailError(email)

    result = await db.execute(select(User).where(User.username == username))
    if result.scalar_one_or_none():
        raise DuplicateUsernameError(username)

    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        role=UserRole.CUSTOMER,
    )
    db.add(user)
    # Flush to get the user.id assigned (needed for the FK below)
    await db.flush()

    account = Account(
        user_id=user.id,
        username=username,
        full_name=full_name,
        phone=phone,
    )
    db.add(account)
    await db.flush()

    if bank_name and bank_account_holder and bank_account_number:
        await account_service.update_bank_details(
            db, account, bank_name, bank_account_holder, bank_account_number,
        )

    token = create_access_token(data={"sub": str(user.id)})
    return user, account, token


async def login(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: If email doesn't exist, the password is
            wrong, or the user is deactivated.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    # Same error for every case — prevents user enumeration
    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def set_user_active(db: AsyncSession, user_id: uuid.UUID, is_active: bool) -> User:
    """Activate or deactivate a user. Records and balances are kept either way."""
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    user.is_active = is_active
    await db.flush()
    logger.info("User %s %s", user.username, "activated" if is_active else "deactivated")
    return user
