#!/usr/bin/env python3
"""
Demo seed script — populates the database with sample data for demos.

!! NOT FOR PRODUCTION !!
This script creates users with known passwords and fake activity. It is
intended ONLY for local demos and frontend development.

Everything goes through the HTTP API (deposits are requested by customers
and approved by the admin, bets are placed and settled by resolving a
session), so the ledger journal is complete and every balance reconciles.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬──────────┐
    │ Email                        │ Password          │ Role     │
    ├──────────────────────────────┼───────────────────┼──────────┤
    │ admin@backoffice.test        │ AdminDemo123!     │ ADMIN    │
    │ alice@example.com            │ AliceDemo123!     │ CUSTOMER │
    │ bob@example.com              │ BobDemo123!       │ CUSTOMER │
    │ carol@example.com            │ CarolDemo123!     │ CUSTOMER │
    └──────────────────────────────┴───────────────────┴──────────┘
"""

import argparse
import asyncio
import os
import random
import sys
from datetime import datetime, timedelta, timezone

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo users
# ---------------------------------------------------------------------------

ADMIN = {
    "username": "admin",
    "email": "admin@backoffice.test",
    "password": "AdminDemo123!",
    "full_name": "Back Office",
}

CUSTOMERS = [
    {
        "username": "alice",
        "email": "alice@example.com",
        "password": "AliceDemo123!",
        "full_name": "Alice Chen",
        "bank_name": "Demo Bank",
        "bank_account_holder": "ALICE CHEN",
        "bank_account_number": "001100223344",
        "deposit": 1_000_00,
    },
    {
        "username": "bob",
        "email": "bob@example.com",
        "password": "BobDemo123!",
        "full_name": "Bob Martinez",
        "bank_name": "Demo Bank",
        "bank_account_holder": "BOB MARTINEZ",
        "bank_account_number": "001100556677",
        "deposit": 500_00,
    },
    {
        "username": "carol",
        "email": "carol@example.com",
        "password": "CarolDemo123!",
        "full_name": "Carol Nguyen",
        "deposit": 2_500_00,
    },
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def cents_to_units(cents: int) -> str:
    return f"{cents / 100:,.2f}"


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def signup(client: httpx.AsyncClient, user: dict) -> str:
    """Sign up a user, return JWT token."""
    body = {k: v for k, v in user.items() if k != "deposit"}
    resp = await client.post(f"{BASE_URL}/auth/signup", json=body)
    resp.raise_for_status()
    return resp.json()["token"]


async def login(client: httpx.AsyncClient, user: dict) -> str:
    resp = await client.post(
        f"{BASE_URL}/auth/login",
        json={"email": user["email"], "password": user["password"]},
    )
    resp.raise_for_status()
    return resp.json()["token"]


async def request_and_approve_deposit(
    client: httpx.AsyncClient, token: str, admin_token: str, amount_cents: int,
) -> None:
    resp = await client.post(
        f"{BASE_URL}/deposits",
        json={"amount_cents": amount_cents, "transaction_code": f"DEMO{random.randint(1000, 9999)}"},
        headers=auth_header(token),
    )
    resp.raise_for_status()
    resp = await client.put(
        f"{BASE_URL}/admin/deposits",
        json={"transaction_id": resp.json()["id"], "status": "approved"},
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()


async def get_balance(client: httpx.AsyncClient, token: str) -> tuple[int, int]:
    resp = await client.get(f"{BASE_URL}/accounts/me", headers=auth_header(token))
    resp.raise_for_status()
    data = resp.json()
    return data["available_cents"], data["frozen_cents"]


async def promote_to_admin(admin_email: str) -> None:
    """Directly update the user's role to ADMIN in the database.

    This bypasses the API since there's no admin-promotion endpoint
    (admin provisioning is an operator action, not self-service).
    """
    from sqlalchemy import update
    from backoffice.config import settings
    from backoffice.database import Store
    from backoffice.models.user import User, UserRole

    store = Store(settings.DATABASE_URL)
    async with store.unit_of_work() as db:
        await db.execute(
            update(User)
            .where(User.email == admin_email)
            .values(role=UserRole.ADMIN)
        )
    await store.dispose()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn backoffice.main:app --reload\n")
            sys.exit(1)

        # --- Admin ---
        print("Creating admin user...")
        await signup(client, ADMIN)
        await promote_to_admin(ADMIN["email"])
        admin_token = await login(client, ADMIN)
        log(f"Admin: {ADMIN['email']} / {ADMIN['password']}")

        # --- Customers ---
        tokens: dict[str, str] = {}
        for customer in CUSTOMERS:
            print(f"\nCreating {customer['full_name']}...")
            token = await signup(client, customer)
            tokens[customer["username"]] = token
            await request_and_approve_deposit(client, token, admin_token, customer["deposit"])
            log(f"Login: {customer['email']} / {customer['password']}")
            log(f"Approved deposit: {cents_to_units(customer['deposit'])}")

        # --- A resolved session ---
        print("\nRunning a trading session...")
        start = datetime.now(timezone.utc).replace(second=0, microsecond=0) - timedelta(minutes=5)
        resp = await client.post(
            f"{BASE_URL}/admin/sessions",
            json={"start_time": start.isoformat()},
            headers=auth_header(admin_token),
        )
        resp.raise_for_status()
        session = resp.json()
        log(f"Session {session['code']}")

        for username, token in tokens.items():
            stake = random.randint(10_00, 100_00)
            direction = random.choice(["up", "down"])
            resp = await client.post(
                f"{BASE_URL}/bets",
                json={"session_id": session["id"], "direction": direction, "amount_cents": stake},
                headers=auth_header(token),
            )
            if resp.status_code == 201:
                log(f"{username} bet {cents_to_units(stake)} on {direction}")

        result = random.choice(["up", "down"])
        resp = await client.post(
            f"{BASE_URL}/admin/sessions/{session['id']}/resolve",
            json={"result": result},
            headers=auth_header(admin_token),
        )
        resp.raise_for_status()
        summary = resp.json()
        log(f"Resolved {result}: {summary['settled']} settled, {summary['failed']} failed")

        # --- A pending withdrawal for the review queue ---
        resp = await client.post(
            f"{BASE_URL}/withdrawals",
            json={"amount_cents": 50_00, "note": "Demo payout"},
            headers=auth_header(tokens["alice"]),
        )
        if resp.status_code == 201:
            log(f"alice requested withdrawal {resp.json()['reference']}")

        print("\nBalances:")
        for username, token in tokens.items():
            available, frozen = await get_balance(client, token)
            log(f"{username:<8s} available {cents_to_units(available):>12s}  frozen {cents_to_units(frozen):>10s}")

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<30s} {'Password':<20s} {'Role'}")
    print(f"  {'─' * 30} {'─' * 20} {'─' * 8}")
    print(f"  {ADMIN['email']:<30s} {ADMIN['password']:<20s} ADMIN")
    for c in CUSTOMERS:
        print(f"  {c['email']:<30s} {c['password']:<20s} CUSTOMER")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "backoffice.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample users, funding requests, bets and a resolved session.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
