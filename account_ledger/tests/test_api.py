"""
HTTP tests for the ledger API, exercised through FastAPI's TestClient.
"""

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient

from account_ledger.api import create_app
from account_ledger.service import WithdrawalService

from conftest import DEMO_ACCOUNT, wait_for


@pytest.fixture
def client(service):
    app = create_app(service=service)
    return TestClient(app)


@pytest.fixture
def admin_client(store, settings):
    secured = settings.model_copy(update={"admin_token": "s3cret"})
    service = WithdrawalService(store=store, settings=secured)
    yield TestClient(create_app(service=service))
    service.shutdown()


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "OK"

    def test_unknown_route(self, client):
        r = client.get("/api/nothing-here")
        assert r.status_code == 404
        assert r.json() == {
            "success": False,
            "message": "Route not found",
            "path": "/api/nothing-here",
        }


class TestWithdrawEndpoint:
    """POST /api/transactions/withdraw"""

    def test_demo_scenario(self, client):
        """Withdraw 500, then 5 (below minimum), then 20000 (insufficient)."""
        r = client.post("/api/transactions/withdraw", json={
            "accountId": DEMO_ACCOUNT, "amount": 500, "method": "bank_transfer",
        })
        assert r.status_code == 200
        data = r.json()
        assert data["success"] is True
        assert Decimal(data["newBalance"]) == Decimal("9500")
        assert data["transaction"]["status"] == "processing"
        assert data["transaction"]["accountId"] == DEMO_ACCOUNT
        assert "completedAt" not in data["transaction"]
        assert "mobile" not in data["transaction"]

        r = client.post("/api/transactions/withdraw", json={
            "accountId": DEMO_ACCOUNT, "amount": 5, "method": "bank_transfer",
        })
        assert r.status_code == 400
        assert r.json() == {"success": False, "message": "minimum withdrawal amount is 10"}

        r = client.post("/api/transactions/withdraw", json={
            "accountId": DEMO_ACCOUNT, "amount": 20000, "method": "bank_transfer",
        })
        assert r.status_code == 400
        assert r.json()["message"] == "insufficient funds"

        r = client.get(f"/api/accounts/{DEMO_ACCOUNT}/balance")
        assert Decimal(r.json()["balance"]) == Decimal("9500")

    def test_missing_fields(self, client):
        r = client.post("/api/transactions/withdraw", json={"accountId": DEMO_ACCOUNT})
        assert r.status_code == 400
        assert r.json()["message"] == "missing required fields"

    def test_missing_body(self, client):
        r = client.post("/api/transactions/withdraw")
        assert r.status_code == 400
        assert r.json()["success"] is False

    def test_malformed_body(self, client):
        r = client.post(
            "/api/transactions/withdraw",
            content="not json",
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 400
        assert r.json()["message"] == "invalid request body"

    def test_negative_amount(self, client):
        r = client.post("/api/transactions/withdraw", json={
            "accountId": DEMO_ACCOUNT, "amount": -20, "method": "bank_transfer",
        })
        assert r.status_code == 400
        assert r.json()["message"] == "amount must be greater than 0"

    def test_mobile_money_completes(self, client, store):
        r = client.post("/api/transactions/withdraw", json={
            "accountId": DEMO_ACCOUNT,
            "amount": "250",
            "method": "mobile_money",
            "mobile": "+256700000000",
            "provider": "airtel",
        })
        assert r.status_code == 200
        tx = r.json()["transaction"]
        assert tx["status"] == "completed"
        assert tx["provider"] == "airtel"

        def settled():
            listed = client.get("/api/transactions/withdrawals").json()["transactions"]
            return listed[0].get("completedAt") is not None

        assert wait_for(settled)

    def test_internal_error_is_500(self, store, settings):
        class BrokenScheduler:
            def schedule(self, key, callback):
                raise RuntimeError("timer unavailable")

        service = WithdrawalService(store=store, settings=settings, scheduler=BrokenScheduler())
        client = TestClient(create_app(service=service))

        r = client.post("/api/transactions/withdraw", json={
            "accountId": DEMO_ACCOUNT, "amount": 50, "method": "mobile_money", "mobile": "07",
        })
        assert r.status_code == 500
        assert r.json()["success"] is False
        assert r.json()["error"] == "Internal server error"

    def test_unexpected_error_is_500(self, service, settings):
        def explode():
            raise RuntimeError("kaboom")

        service.list_withdrawals = explode
        dev = settings.model_copy(update={"environment": "development"})
        client = TestClient(create_app(service=service, settings=dev), raise_server_exceptions=False)

        r = client.get("/api/transactions/withdrawals")
        assert r.status_code == 500
        assert r.json() == {
            "success": False,
            "message": "Something went wrong!",
            "error": "kaboom",
        }


class TestAccountsEndpoints:
    def test_balance_defaults_to_zero(self, client):
        r = client.get("/api/accounts/unknown-acc/balance")
        assert r.status_code == 200
        data = r.json()
        assert data["success"] is True
        assert data["accountId"] == "unknown-acc"
        assert Decimal(data["balance"]) == Decimal("0")
        assert data["currency"] == "USD"

    def test_update_balance(self, client):
        r = client.post("/api/accounts/update-balance", json={
            "accountId": "acc-7", "newBalance": 750,
        })
        assert r.status_code == 200
        assert r.json()["accountId"] == "acc-7"
        assert Decimal(r.json()["newBalance"]) == Decimal("750")

        r = client.get("/api/accounts/acc-7/balance")
        assert Decimal(r.json()["balance"]) == Decimal("750")

    def test_update_balance_missing_fields(self, client):
        r = client.post("/api/accounts/update-balance", json={"accountId": "acc-7"})
        assert r.status_code == 400
        assert r.json()["success"] is False

    def test_update_balance_out_of_range(self, client):
        r = client.post("/api/accounts/update-balance", json={
            "accountId": "big", "newBalance": "1E+9999999",
        })
        assert r.status_code == 400
        assert r.json()["message"] == "newBalance exceeds maximum of 1000000000000"

        r = client.post("/api/transactions/withdraw", json={
            "accountId": "big", "amount": 50, "method": "bank_transfer",
        })
        assert r.status_code == 400
        assert r.json()["message"] == "insufficient funds"

    def test_update_balance_requires_admin_token_when_configured(self, admin_client):
        payload = {"accountId": "acc-8", "newBalance": 100}

        r = admin_client.post("/api/accounts/update-balance", json=payload)
        assert r.status_code == 403
        assert r.json() == {"success": False, "message": "admin token required"}

        r = admin_client.post(
            "/api/accounts/update-balance", json=payload, headers={"X-Admin-Token": "wrong"}
        )
        assert r.status_code == 403

        r = admin_client.post(
            "/api/accounts/update-balance", json=payload, headers={"X-Admin-Token": "s3cret"}
        )
        assert r.status_code == 200


class TestWithdrawalsEndpoint:
    def test_lists_in_insertion_order(self, client):
        for amount in (100, 200, 300):
            client.post("/api/transactions/withdraw", json={
                "accountId": DEMO_ACCOUNT, "amount": amount, "method": "bank_transfer",
            })

        r = client.get("/api/transactions/withdrawals")
        assert r.status_code == 200
        data = r.json()
        assert data["success"] is True
        assert [Decimal(tx["amount"]) for tx in data["transactions"]] == [
            Decimal("100"), Decimal("200"), Decimal("300")
        ]
