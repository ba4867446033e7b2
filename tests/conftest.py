"""
Test fixtures for the back-office test suite.

This module provides shared fixtures used across all test files:

  - store: A Store on a fresh file-backed SQLite database for each test
  - client: Async HTTP test client (unauthenticated)
  - customer_client / second_customer_client: Signed-up customers with a JWT
  - admin_client: A user promoted to ADMIN, with a JWT
  - set_balance: Sets a customer's balances through the admin endpoint
  - make_account: Inserts a user and account directly, for service tests

Key design decisions:
  - A temporary database FILE per test rather than ":memory:". Every unit
    of work takes the SQLite write lock with BEGIN IMMEDIATE, and the
    concurrency tests rely on separate connections actually contending for
    that lock, which an in-memory database shared over one connection
    cannot do.
  - The test Store is installed on app.state.store, exactly where the
    lifespan puts the real one, so application code runs unchanged.
  - Customers are created through the real signup endpoint. The admin is
    created the same way and then promoted directly in the database,
    because admin provisioning is an operator action, not an API.
"""

import os

from cryptography.fernet import Fernet

# Settings are read at import time; provide the required secrets first
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("BANK_DETAILS_ENCRYPTION_KEY", Fernet.generate_key().decode())

import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update

from backoffice.database import Store
from backoffice.main import app
from backoffice.models.account import Account
from backoffice.models.user import User, UserRole


CUSTOMER = {
    "username": "alice",
    "email": "alice@example.com",
    "password": "SecurePass123!",
    "full_name": "Alice Chen",
    "bank_name": "Test Bank",
    "bank_account_holder": "ALICE CHEN",
    "bank_account_number": "001122334455",
}

SECOND_CUSTOMER = {
    "username": "bob",
    "email": "bob@example.com",
    "password": "SecurePass456!",
    "full_name": "Bob Martinez",
}

ADMIN = {
    "username": "admin",
    "email": "admin@example.com",
    "password": "AdminPass123!",
    "full_name": "Back Office",
}


def _new_client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture
async def store(tmp_path):
    """A Store on a fresh database file, installed on the app."""
    store = Store(f"sqlite+aiosqlite:///{tmp_path / 'backoffice-test.db'}")
    await store.create_all()
    app.state.store = store
    yield store
    await store.dispose()


@pytest_asyncio.fixture
async def client(store):
    async with _new_client() as ac:
        yield ac


async def _sign_up(ac: AsyncClient, user: dict) -> None:
    response = await ac.post("/auth/signup", json=user)
    assert response.status_code == 201, f"Signup failed: {response.text}"
    ac.headers["Authorization"] = f"Bearer {response.json()['token']}"


@pytest_asyncio.fixture
async def customer_client(store):
    """Client for a customer with bank details on file."""
    async with _new_client() as ac:
        await _sign_up(ac, CUSTOMER)
        yield ac


@pytest_asyncio.fixture
async def second_customer_client(store):
    """A second customer, without bank details, for cross-user tests."""
    async with _new_client() as ac:
        await _sign_up(ac, SECOND_CUSTOMER)
        yield ac


@pytest_asyncio.fixture
async def admin_client(store):
    """
    Client for an ADMIN user.

    Signs up normally, then promotes the user in the database and logs in
    again.
    """
    async with _new_client() as ac:
        await _sign_up(ac, ADMIN)
        async with store.unit_of_work() as db:
            await db.execute(
                update(User)
                .where(User.email == ADMIN["email"])
                .values(role=UserRole.ADMIN)
            )

        login = await ac.post(
            "/auth/login",
            json={"email": ADMIN["email"], "password": ADMIN["password"]},
        )
        assert login.status_code == 200
        ac.headers["Authorization"] = f"Bearer {login.json()['token']}"
        yield ac


@pytest_asyncio.fixture
async def customer_account_id(customer_client) -> uuid.UUID:
    response = await customer_client.get("/accounts/me")
    return uuid.UUID(response.json()["id"])


@pytest.fixture
def set_balance(admin_client):
    """
    Returns an async helper that sets an account's balances through
    PUT /admin/users/balance, so test funding goes through the ledger.
    """
    async def _set(account_id: uuid.UUID, available_cents: int | None = None, frozen_cents: int | None = None):
        body = {"account_id": str(account_id)}
        if available_cents is not None:
            body["available_cents"] = available_cents
        if frozen_cents is not None:
            body["frozen_cents"] = frozen_cents
        response = await admin_client.put("/admin/users/balance", json=body)
        assert response.status_code == 200, response.text
        return response.json()

    return _set


@pytest.fixture
def make_account(store):
    """
    Returns an async helper that inserts a User + Account directly, for
    service-level tests that don't go through HTTP.
    """
    async def _make(username: str) -> uuid.UUID:
        async with store.unit_of_work() as db:
            user = User(
                username=username,
                email=f"{username}@example.com",
                hashed_password="not-a-real-hash",
            )
            db.add(user)
            await db.flush()
            account = Account(user_id=user.id, username=username, full_name=username.title())
            db.add(account)
            await db.flush()
            return account.id

    return _make
