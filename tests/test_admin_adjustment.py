"""
Tests for admin balance adjustments, reconciliation and user management.

These tests verify:
  - Adjustments set target balances and record the deltas
  - Every adjustment goes through the ledger, so reconciliation matches
  - A no-op adjustment writes no record
  - Admin accounts are neither listed nor adjustable
  - Deactivated users can no longer authenticate
"""

import uuid

from sqlalchemy import select

from backoffice.models.account import Account
from backoffice.models.ledger_entry import LedgerEntry
from backoffice.models.user import User, UserRole


class TestAdjustBalance:

    async def test_set_available(self, admin_client, customer_client, customer_account_id):
        response = await admin_client.put(
            "/admin/users/balance",
            json={"account_id": str(customer_account_id), "available_cents": 25000, "note": "Goodwill"},
        )

        assert response.status_code == 200
        body = response.json()
        assert (body["available_cents"], body["frozen_cents"]) == (25000, 0)
        assert (body["available_delta_cents"], body["frozen_delta_cents"]) == (25000, 0)
        assert body["reference"].startswith("ADJ-alice-")

        records = (await customer_client.get("/transactions", params={"type": "admin_adjustment"})).json()
        assert len(records) == 1
        assert records[0]["amount_cents"] == 25000
        assert records[0]["status"] == "completed"
        assert records[0]["note"] == "Goodwill"

    async def test_lower_both_balances(self, admin_client, customer_account_id, set_balance):
        await set_balance(customer_account_id, available_cents=50000, frozen_cents=20000)

        body = await set_balance(customer_account_id, available_cents=10000, frozen_cents=5000)

        assert (body["available_cents"], body["frozen_cents"]) == (10000, 5000)
        assert (body["available_delta_cents"], body["frozen_delta_cents"]) == (-40000, -15000)

    async def test_frozen_only(self, admin_client, customer_account_id, set_balance):
        await set_balance(customer_account_id, available_cents=50000)

        body = await set_balance(customer_account_id, frozen_cents=7000)

        assert (body["available_cents"], body["frozen_cents"]) == (50000, 7000)
        assert body["available_delta_cents"] == 0

    async def test_no_change_writes_nothing(self, admin_client, customer_client, customer_account_id, set_balance):
        await set_balance(customer_account_id, available_cents=50000)

        body = await set_balance(customer_account_id, available_cents=50000)

        assert body["transaction_id"] is None
        assert body["reference"] is None
        records = (await customer_client.get("/transactions", params={"type": "admin_adjustment"})).json()
        assert len(records) == 1

    async def test_adjustment_goes_through_the_ledger(self, store, admin_client, customer_account_id, set_balance):
        body = await set_balance(customer_account_id, available_cents=30000, frozen_cents=10000)

        async with store.unit_of_work() as db:
            result = await db.execute(
                select(LedgerEntry).where(LedgerEntry.transaction_id == uuid.UUID(body["transaction_id"]))
            )
            entries = list(result.scalars().all())

        assert {e.reason for e in entries} == {"admin_adjustment"}
        assert sum(e.available_delta_cents for e in entries) == 30000
        assert sum(e.frozen_delta_cents for e in entries) == 10000

    async def test_requires_a_target(self, admin_client, customer_account_id):
        response = await admin_client.put(
            "/admin/users/balance", json={"account_id": str(customer_account_id)}
        )
        assert response.status_code == 400

    async def test_negative_target_is_rejected(self, admin_client, customer_account_id):
        response = await admin_client.put(
            "/admin/users/balance",
            json={"account_id": str(customer_account_id), "available_cents": -1},
        )
        assert response.status_code == 400

    async def test_unknown_account(self, admin_client):
        response = await admin_client.put(
            "/admin/users/balance",
            json={"account_id": str(uuid.uuid4()), "available_cents": 100},
        )
        assert response.status_code == 404

    async def test_admin_account_cannot_be_funded(self, store, admin_client):
        async with store.unit_of_work() as db:
            admin_account_id = await db.scalar(
                select(Account.id).join(User, Account.user_id == User.id).where(User.role == UserRole.ADMIN)
            )

        response = await admin_client.put(
            "/admin/users/balance",
            json={"account_id": str(admin_account_id), "available_cents": 100000},
        )

        assert response.status_code == 404
        async with store.unit_of_work() as db:
            account = await db.get(Account, admin_account_id)
            assert (account.available_cents, account.frozen_cents) == (0, 0)


class TestReconciliation:

    async def test_balances_match_journal_after_activity(
        self, admin_client, customer_client, customer_account_id, set_balance
    ):
        await set_balance(customer_account_id, available_cents=100000)
        deposit = (await customer_client.post("/deposits", json={"amount_cents": 5000})).json()
        await admin_client.put("/admin/deposits", json={"transaction_id": deposit["id"], "status": "approved"})
        withdrawal = (await customer_client.post("/withdrawals", json={"amount_cents": 30000})).json()
        await admin_client.put("/admin/withdrawals", json={"transaction_id": withdrawal["id"], "status": "rejected"})

        response = await admin_client.get(f"/admin/accounts/{customer_account_id}/balance")

        assert response.status_code == 200
        body = response.json()
        assert body["username"] == "alice"
        assert (body["available_cents"], body["frozen_cents"]) == (105000, 0)
        assert (body["computed_available_cents"], body["computed_frozen_cents"]) == (105000, 0)
        assert body["match"] is True

    async def test_list_accounts(self, admin_client, customer_client, second_customer_client):
        response = await admin_client.get("/admin/accounts")

        assert response.status_code == 200
        assert {a["username"] for a in response.json()} == {"alice", "bob"}


class TestUserStatus:

    async def test_deactivated_user_is_locked_out(self, admin_client, customer_client):
        me = (await customer_client.get("/accounts/me")).json()

        response = await admin_client.put(
            f"/admin/users/{me['user_id']}/status", json={"is_active": False}
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert (await customer_client.get("/accounts/me")).status_code == 401

    async def test_reactivation(self, admin_client, customer_client):
        me = (await customer_client.get("/accounts/me")).json()
        await admin_client.put(f"/admin/users/{me['user_id']}/status", json={"is_active": False})

        await admin_client.put(f"/admin/users/{me['user_id']}/status", json={"is_active": True})

        assert (await customer_client.get("/accounts/me")).status_code == 200

    async def test_unknown_user(self, admin_client):
        response = await admin_client.put(
            f"/admin/users/{uuid.uuid4()}/status", json={"is_active": False}
        )
        assert response.status_code == 404
