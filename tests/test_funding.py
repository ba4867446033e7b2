"""
Tests for deposit and withdrawal requests and their review.

These tests verify:
  - A deposit request changes nothing until an admin approves it
  - Approving credits, rejecting/cancelling does not
  - A request can only be processed once (already_processed)
  - Withdrawals freeze on request, settle on approval, refund otherwise
  - Withdrawals need bank details and enough available balance
  - References follow PREFIX-username-epochms and never collide
  - Withdrawal customers get a notification for every change
"""

import re

import pytest

from backoffice.services import notification_service, transaction_service


async def _balances(client) -> tuple[int, int]:
    me = await client.get("/accounts/me")
    data = me.json()
    return data["available_cents"], data["frozen_cents"]


async def _request_deposit(client, amount_cents=50000, **extra):
    response = await client.post("/deposits", json={"amount_cents": amount_cents, **extra})
    assert response.status_code == 201, response.text
    return response.json()


async def _request_withdrawal(client, amount_cents):
    response = await client.post("/withdrawals", json={"amount_cents": amount_cents})
    assert response.status_code == 201, response.text
    return response.json()


class TestDepositRequests:

    async def test_request_has_no_balance_effect(self, customer_client):
        txn = await _request_deposit(customer_client, 50000, transaction_code="BANK123")

        assert txn["type"] == "deposit"
        assert txn["status"] == "pending"
        assert txn["amount_cents"] == 50000
        assert txn["transaction_code"] == "BANK123"
        assert txn["processed_at"] is None
        assert await _balances(customer_client) == (0, 0)

    async def test_approve_credits_available(self, customer_client, admin_client):
        txn = await _request_deposit(customer_client, 50000)

        response = await admin_client.put(
            "/admin/deposits", json={"transaction_id": txn["id"], "status": "approved"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "approved"
        assert body["data"]["reference"] == txn["reference"]
        assert body["data"]["processed_at"] is not None
        assert await _balances(customer_client) == (50000, 0)

    @pytest.mark.parametrize("target", ["rejected", "cancelled"])
    async def test_reject_or_cancel_changes_status_only(self, customer_client, admin_client, target):
        txn = await _request_deposit(customer_client, 50000)

        response = await admin_client.put(
            "/admin/deposits",
            json={"transaction_id": txn["id"], "status": target, "note": "No transfer received"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == target
        assert await _balances(customer_client) == (0, 0)

        listed = await customer_client.get("/transactions")
        assert listed.json()[0]["note"] == "No transfer received"

    async def test_second_approval_is_already_processed(self, customer_client, admin_client):
        txn = await _request_deposit(customer_client, 50000)
        body = {"transaction_id": txn["id"], "status": "approved"}

        first = await admin_client.put("/admin/deposits", json=body)
        second = await admin_client.put("/admin/deposits", json=body)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["error_type"] == "already_processed"
        # Credited exactly once
        assert await _balances(customer_client) == (50000, 0)

    async def test_reject_after_approve_is_already_processed(self, customer_client, admin_client):
        txn = await _request_deposit(customer_client, 50000)
        await admin_client.put("/admin/deposits", json={"transaction_id": txn["id"], "status": "approved"})

        response = await admin_client.put(
            "/admin/deposits", json={"transaction_id": txn["id"], "status": "rejected"}
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "already_processed"
        assert await _balances(customer_client) == (50000, 0)

    async def test_unknown_request_is_not_found(self, admin_client):
        response = await admin_client.put(
            "/admin/deposits",
            json={"transaction_id": "00000000-0000-0000-0000-000000000000", "status": "approved"},
        )
        assert response.status_code == 404

    async def test_withdrawal_id_on_deposit_endpoint_is_not_found(
        self, customer_client, admin_client, customer_account_id, set_balance
    ):
        await set_balance(customer_account_id, available_cents=10000)
        withdrawal = await _request_withdrawal(customer_client, 5000)

        response = await admin_client.put(
            "/admin/deposits", json={"transaction_id": withdrawal["id"], "status": "approved"}
        )

        assert response.status_code == 404
        assert await _balances(customer_client) == (5000, 5000)

    async def test_unknown_target_status_is_rejected(self, customer_client, admin_client):
        txn = await _request_deposit(customer_client, 50000)

        response = await admin_client.put(
            "/admin/deposits", json={"transaction_id": txn["id"], "status": "processing"}
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "validation_error"

    @pytest.mark.parametrize("amount", [0, -100])
    async def test_non_positive_amount_is_rejected(self, customer_client, amount):
        response = await customer_client.post("/deposits", json={"amount_cents": amount})
        assert response.status_code == 400


class TestWithdrawalRequests:

    async def test_request_freezes_amount(self, customer_client, customer_account_id, set_balance):
        await set_balance(customer_account_id, available_cents=100000)

        txn = await _request_withdrawal(customer_client, 30000)

        assert txn["type"] == "withdrawal"
        assert txn["status"] == "pending"
        assert txn["received_amount_cents"] == 30000
        assert txn["bank_name"] == "Test Bank"
        assert txn["bank_account_last_four"] == "4455"
        assert await _balances(customer_client) == (70000, 30000)

    async def test_insufficient_funds_keeps_no_record(self, customer_client, customer_account_id, set_balance):
        await set_balance(customer_account_id, available_cents=10000)

        response = await customer_client.post("/withdrawals", json={"amount_cents": 10001})

        assert response.status_code == 422
        body = response.json()
        assert body["error_type"] == "insufficient_funds"
        assert body["requested_cents"] == 10001
        assert body["available_cents"] == 10000
        assert await _balances(customer_client) == (10000, 0)

        listed = await customer_client.get("/transactions", params={"type": "withdrawal"})
        assert listed.json() == []

    async def test_bank_details_required(self, second_customer_client):
        response = await second_customer_client.post("/withdrawals", json={"amount_cents": 100})

        assert response.status_code == 400
        assert response.json()["error_type"] == "bank_details_required"

    async def test_bank_details_can_be_added_later(self, second_customer_client):
        response = await second_customer_client.put(
            "/accounts/me/bank-details",
            json={
                "bank_name": "Other Bank",
                "bank_account_holder": "BOB MARTINEZ",
                "bank_account_number": "998877665544",
            },
        )

        assert response.status_code == 200
        assert response.json()["bank_account_last_four"] == "5544"
        assert "bank_account_number" not in response.json()

    async def test_approve_settles_frozen(self, customer_client, admin_client, customer_account_id, set_balance):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)

        response = await admin_client.put(
            "/admin/withdrawals", json={"transaction_id": txn["id"], "status": "approved"}
        )

        assert response.status_code == 200
        assert await _balances(customer_client) == (70000, 0)

    @pytest.mark.parametrize("target", ["rejected", "cancelled"])
    async def test_reject_or_cancel_refunds(
        self, customer_client, admin_client, customer_account_id, set_balance, target
    ):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)

        response = await admin_client.put(
            "/admin/withdrawals", json={"transaction_id": txn["id"], "status": target}
        )

        assert response.status_code == 200
        assert await _balances(customer_client) == (100000, 0)

    async def test_processing_then_approved(self, customer_client, admin_client, customer_account_id, set_balance):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)

        processing = await admin_client.put(
            "/admin/withdrawals", json={"transaction_id": txn["id"], "status": "processing"}
        )
        assert processing.status_code == 200
        assert processing.json()["data"]["status"] == "processing"
        assert processing.json()["data"]["processed_at"] is None
        assert await _balances(customer_client) == (70000, 30000)

        approved = await admin_client.put(
            "/admin/withdrawals", json={"transaction_id": txn["id"], "status": "approved"}
        )
        assert approved.status_code == 200
        assert approved.json()["data"]["processed_at"] is not None
        assert await _balances(customer_client) == (70000, 0)

    async def test_processing_cannot_be_cancelled(
        self, customer_client, admin_client, customer_account_id, set_balance
    ):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)
        await admin_client.put("/admin/withdrawals", json={"transaction_id": txn["id"], "status": "processing"})

        response = await admin_client.put(
            "/admin/withdrawals", json={"transaction_id": txn["id"], "status": "cancelled"}
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_transition"
        assert await _balances(customer_client) == (70000, 30000)

    async def test_second_approval_is_already_processed(
        self, customer_client, admin_client, customer_account_id, set_balance
    ):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)
        body = {"transaction_id": txn["id"], "status": "approved"}

        await admin_client.put("/admin/withdrawals", json=body)
        second = await admin_client.put("/admin/withdrawals", json=body)

        assert second.status_code == 400
        assert second.json()["error_type"] == "already_processed"
        assert await _balances(customer_client) == (70000, 0)

    async def test_admin_sees_decrypted_destination(
        self, customer_client, admin_client, customer_account_id, set_balance
    ):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)

        response = await admin_client.get(f"/admin/transactions/{txn['id']}")

        assert response.status_code == 200
        assert response.json()["bank_account_number"] == "001122334455"

    async def test_destination_is_snapshotted(
        self, customer_client, admin_client, customer_account_id, set_balance
    ):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)

        await customer_client.put(
            "/accounts/me/bank-details",
            json={
                "bank_name": "New Bank",
                "bank_account_holder": "ALICE CHEN",
                "bank_account_number": "555566667777",
            },
        )

        response = await admin_client.get(f"/admin/transactions/{txn['id']}")
        assert response.json()["bank_name"] == "Test Bank"
        assert response.json()["bank_account_number"] == "001122334455"


class TestNotifications:

    async def test_withdrawal_review_notifies_customer(
        self, customer_client, admin_client, customer_account_id, set_balance
    ):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)
        await admin_client.put("/admin/withdrawals", json={"transaction_id": txn["id"], "status": "processing"})
        await admin_client.put("/admin/withdrawals", json={"transaction_id": txn["id"], "status": "rejected"})

        response = await customer_client.get("/accounts/me/notifications")

        assert response.status_code == 200
        notifications = response.json()
        assert len(notifications) == 2
        assert all(n["kind"] == "withdrawal" for n in notifications)
        assert all(txn["reference"] in n["message"] for n in notifications)
        assert any("rejected" in n["message"] for n in notifications)

    async def test_failed_review_sends_nothing(self, customer_client, admin_client):
        txn = await _request_deposit(customer_client, 50000)
        await admin_client.put("/admin/withdrawals", json={"transaction_id": txn["id"], "status": "approved"})

        response = await customer_client.get("/accounts/me/notifications")
        assert response.json() == []

    async def test_notification_failure_keeps_the_approval(
        self, customer_client, admin_client, customer_account_id, set_balance, monkeypatch
    ):
        await set_balance(customer_account_id, available_cents=100000)
        txn = await _request_withdrawal(customer_client, 30000)

        def broken_notification(**kwargs):
            raise RuntimeError("notification store unavailable")

        monkeypatch.setattr(notification_service, "Notification", broken_notification)

        response = await admin_client.put(
            "/admin/withdrawals", json={"transaction_id": txn["id"], "status": "approved"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert await _balances(customer_client) == (70000, 0)
        stored = (await admin_client.get(f"/admin/transactions/{txn['id']}")).json()
        assert stored["status"] == "approved"
        assert (await customer_client.get("/accounts/me/notifications")).json() == []


class TestReferences:

    async def test_reference_format(self, customer_client):
        txn = await _request_deposit(customer_client)
        assert re.fullmatch(r"NAP-alice-\d{13}", txn["reference"])

    async def test_withdrawal_prefix(self, customer_client, customer_account_id, set_balance):
        await set_balance(customer_account_id, available_cents=1000)
        txn = await _request_withdrawal(customer_client, 500)
        assert txn["reference"].startswith("RUT-alice-")

    async def test_same_millisecond_is_bumped(self, customer_client, monkeypatch):
        monkeypatch.setattr(transaction_service, "_epoch_ms", lambda: 1718000000000)

        first = await _request_deposit(customer_client, 100)
        second = await _request_deposit(customer_client, 200)

        assert first["reference"] == "NAP-alice-1718000000000"
        assert second["reference"] == "NAP-alice-1718000000001"

    async def test_exhausted_retries_is_storage_failure(self, customer_client, monkeypatch):
        monkeypatch.setattr(transaction_service, "_epoch_ms", lambda: 1718000000000)
        monkeypatch.setattr(transaction_service.settings, "REFERENCE_RETRY_LIMIT", 1)

        await _request_deposit(customer_client, 100)
        response = await customer_client.post("/deposits", json={"amount_cents": 200})

        assert response.status_code == 500
        assert response.json()["error_type"] == "storage_failure"


class TestTransactionListing:

    async def test_customer_sees_only_own_records(
        self, customer_client, second_customer_client
    ):
        await _request_deposit(customer_client, 100)
        await _request_deposit(second_customer_client, 200)

        mine = await customer_client.get("/transactions")

        assert [t["username"] for t in mine.json()] == ["alice"]

    async def test_filter_by_status(self, customer_client, admin_client):
        approved = await _request_deposit(customer_client, 100)
        await _request_deposit(customer_client, 200)
        await admin_client.put("/admin/deposits", json={"transaction_id": approved["id"], "status": "approved"})

        pending = await customer_client.get("/transactions", params={"status": "pending"})

        assert [t["amount_cents"] for t in pending.json()] == [200]

    async def test_admin_audit_list_spans_accounts(
        self, customer_client, second_customer_client, admin_client
    ):
        await _request_deposit(customer_client, 100)
        await _request_deposit(second_customer_client, 200)

        response = await admin_client.get("/admin/transactions", params={"type": "deposit"})

        assert {t["username"] for t in response.json()} == {"alice", "bob"}
