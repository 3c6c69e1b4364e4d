"""Integration tests for the recurrent payment API via TestClient."""

from datetime import UTC, datetime, timedelta

import pytest
from billing.api.routes import recurrent_payment_router
from billing.gateway import get_gateway
from billing.gateway.port import ChargeOutcome
from billing.recurrent.recurrent_payment import RecurrentPayment, RecurrentPaymentState
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(recurrent_payment_router)
    return TestClient(app)


@pytest.fixture()
def charge_env(monkeypatch):
    monkeypatch.setenv("RECURRENT_PAYMENT_CHARGES", "P1D, P3D")
    monkeypatch.setenv("RECURRENT_PAYMENT_GATEWAY_FAIL_DELAY", "PT1H")
    monkeypatch.delenv("DONATION_VAT_RATE", raising=False)


@pytest.fixture()
def due_token(make_subscription_type, make_paid_payment, make_token):
    return make_token(
        make_paid_payment(make_subscription_type()),
        charge_at=datetime.now(UTC) - timedelta(hours=1),
    )


class TestRunChargeAPI:
    def test_runs_batch_and_returns_summary(self, client, charge_env, due_token):
        response = client.post("/recurrent-payments/charge", json={})
        assert response.status_code == 200
        data = response.json()
        assert data["attempted"] == 1
        assert data["succeeded"] == 1
        assert data["reports"][0]["recurrent_payment_id"] == str(due_token.id)
        assert data["reports"][0]["status"] == "succeeded"

        token = current_domain.repository_for(RecurrentPayment).get(due_token.id)
        assert token.state == RecurrentPaymentState.CHARGED.value

    def test_test_mode(self, client, charge_env, due_token):
        get_gateway("fake").configure(outcome=ChargeOutcome.TERMINAL)
        response = client.post("/recurrent-payments/charge", json={"charge": "test"})
        assert response.status_code == 200
        assert response.json()["succeeded"] == 1
        assert get_gateway("fake").calls == []

    def test_missing_configuration_returns_500(self, client, monkeypatch):
        monkeypatch.delenv("RECURRENT_PAYMENT_CHARGES", raising=False)
        monkeypatch.setenv("RECURRENT_PAYMENT_GATEWAY_FAIL_DELAY", "PT1H")
        response = client.post("/recurrent-payments/charge", json={})
        assert response.status_code == 500
        assert "recurrent_payment_charges" in response.json()["detail"]


class TestGetRecurrentPaymentAPI:
    def test_returns_token(self, client, due_token):
        response = client.get(f"/recurrent-payments/{due_token.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["cid"] == due_token.cid
        assert data["state"] == "active"
        assert data["retries"] == 1

    def test_unknown_token_returns_404(self, client):
        response = client.get("/recurrent-payments/does-not-exist")
        assert response.status_code == 404


class TestFailedChargesAPI:
    def test_lists_failed_charges(self, client, charge_env, due_token):
        get_gateway("fake").configure(outcome=ChargeOutcome.RECOVERABLE)
        client.post("/recurrent-payments/charge", json={})

        response = client.get("/recurrent-payments/failed")
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["recurrent_payment_id"] == str(due_token.id)
        assert data[0]["status"] == "retrying"

    def test_filters_by_status(self, client, charge_env, due_token):
        get_gateway("fake").configure(outcome=ChargeOutcome.RECOVERABLE)
        client.post("/recurrent-payments/charge", json={})

        response = client.get("/recurrent-payments/failed", params={"status": "stopped"})
        assert response.json() == []


class TestConfigureGatewayAPI:
    def test_configures_fake_gateway(self, client):
        response = client.post(
            "/recurrent-payments/gateway/configure",
            json={"outcome": "terminal", "result_code": "57"},
        )
        assert response.status_code == 200
        assert response.json()["outcome"] == "terminal"
        assert get_gateway("fake").outcome == ChargeOutcome.TERMINAL
        assert get_gateway("fake").result_code == "57"

    def test_unknown_gateway_returns_404(self, client):
        response = client.post("/recurrent-payments/gateway/configure", json={"gateway": "cardpay"})
        assert response.status_code == 404

    def test_forbidden_in_production(self, client, monkeypatch):
        monkeypatch.setenv("PROTEAN_ENV", "production")
        response = client.post("/recurrent-payments/gateway/configure", json={"outcome": "terminal"})
        assert response.status_code == 403
