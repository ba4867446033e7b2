"""
Tests for authorization boundaries — cross-user isolation and role enforcement.

These tests verify two critical security properties:

1. **Cross-user isolation**: A customer only ever sees and moves their own
   money. Customer endpoints take no account id; the account always comes
   from the token.

2. **Role enforcement**: Customers cannot reach any /admin/* endpoint, and
   admins (who hold no balance) cannot use customer money endpoints.
"""

import uuid

import pytest


class TestCrossUserIsolation:

    async def test_each_customer_sees_own_account(self, customer_client, second_customer_client):
        alice = (await customer_client.get("/accounts/me")).json()
        bob = (await second_customer_client.get("/accounts/me")).json()

        assert alice["username"] == "alice"
        assert bob["username"] == "bob"
        assert alice["id"] != bob["id"]

    async def test_cannot_see_other_users_transactions(self, customer_client, second_customer_client):
        await customer_client.post("/deposits", json={"amount_cents": 1000})

        resp = await second_customer_client.get("/transactions")

        assert resp.status_code == 200
        assert resp.json() == []

    async def test_cannot_see_other_users_notifications(
        self, customer_client, second_customer_client, admin_client, customer_account_id, set_balance
    ):
        await set_balance(customer_account_id, available_cents=1000)
        txn = (await customer_client.post("/withdrawals", json={"amount_cents": 500})).json()
        await admin_client.put("/admin/withdrawals", json={"transaction_id": txn["id"], "status": "approved"})

        resp = await second_customer_client.get("/accounts/me/notifications")

        assert resp.json() == []

    async def test_account_id_in_body_is_refused(self, customer_client, second_customer_client):
        """A customer cannot point a request at someone else's account."""
        bob = (await second_customer_client.get("/accounts/me")).json()

        resp = await customer_client.post(
            "/deposits", json={"amount_cents": 1000, "account_id": bob["id"]}
        )

        assert resp.status_code == 400
        assert (await second_customer_client.get("/transactions")).json() == []


class TestCustomerBlockedFromAdminEndpoints:
    """The admin router uses `require_admin` on every endpoint."""

    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/admin/accounts"),
            ("get", f"/admin/accounts/{uuid.uuid4()}/balance"),
            ("get", "/admin/transactions"),
            ("get", f"/admin/transactions/{uuid.uuid4()}"),
            ("get", "/admin/bets"),
            ("get", f"/admin/sessions/{uuid.uuid4()}"),
            ("post", f"/admin/sessions/{uuid.uuid4()}/cancel"),
        ],
    )
    async def test_customer_gets_403(self, customer_client, method, path):
        resp = await getattr(customer_client, method)(path)
        assert resp.status_code == 403

    async def test_customer_cannot_approve_own_deposit(self, customer_client):
        txn = (await customer_client.post("/deposits", json={"amount_cents": 1000})).json()

        resp = await customer_client.put(
            "/admin/deposits", json={"transaction_id": txn["id"], "status": "approved"}
        )

        assert resp.status_code == 403
        me = (await customer_client.get("/accounts/me")).json()
        assert me["available_cents"] == 0

    async def test_customer_cannot_adjust_balance(self, customer_client, customer_account_id):
        resp = await customer_client.put(
            "/admin/users/balance",
            json={"account_id": str(customer_account_id), "available_cents": 1_000_000},
        )
        assert resp.status_code == 403

    async def test_customer_cannot_settle_bets(self, customer_client):
        resp = await customer_client.put(
            "/admin/bets", json={"bet_id": str(uuid.uuid4()), "status": "won"}
        )
        assert resp.status_code == 403


class TestAdminBlockedFromCustomerEndpoints:

    @pytest.mark.parametrize(
        "method, path, body",
        [
            ("get", "/accounts/me", None),
            ("post", "/deposits", {"amount_cents": 1000}),
            ("post", "/withdrawals", {"amount_cents": 1000}),
            ("get", "/transactions", None),
            ("get", "/bets", None),
        ],
    )
    async def test_admin_gets_403(self, admin_client, method, path, body):
        kwargs = {"json": body} if body is not None else {}
        resp = await getattr(admin_client, method)(path, **kwargs)
        assert resp.status_code == 403

    async def test_admin_can_read_current_session(self, admin_client):
        resp = await admin_client.get("/sessions/current")
        assert resp.status_code == 200


class TestUnauthenticated:

    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/accounts/me"),
            ("get", "/transactions"),
            ("get", "/bets"),
            ("get", "/sessions/current"),
            ("get", "/admin/accounts"),
            ("put", "/admin/deposits"),
        ],
    )
    async def test_requires_token(self, client, method, path):
        resp = await getattr(client, method)(path)
        assert resp.status_code == 401
