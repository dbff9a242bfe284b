"""
Tests for the HTTP endpoints.
"""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from billing_lifecycle.database import get_db
from billing_lifecycle.deps import get_today
from billing_lifecycle.main import app
from billing_lifecycle.models import Subscription, SubscriptionStatus as S

TODAY = date(2025, 6, 15)

ADMIN = {"X-Actor-Id": "1", "X-Actor-Role": "administrador"}
DISTRIBUTOR = {"X-Actor-Id": "2", "X-Actor-Role": "distribuidor"}
CASHIER = {"X-Actor-Id": "3", "X-Actor-Role": "cajero"}


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    yield TestClient(app)
    app.dependency_overrides.clear()


def url(subscription, suffix=""):
    return f"/api/tenants/{subscription.tenant_id}/subscriptions/{subscription.id}{suffix}"


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_status_catalog(client):
    data = client.get("/api/statuses").json()

    assert len(data["all"]) == 9
    assert data["manual"] == ["Vigente", "Suspendido"]
    assert "Caducado" in data["blocked"]
    assert "Vigente" not in data["blocked"]


class TestIdentity:
    def test_missing_headers(self, client, make_subscription):
        assert client.get(url(make_subscription())).status_code == 401

    def test_unknown_role(self, client, make_subscription):
        response = client.get(url(make_subscription()), headers={"X-Actor-Id": "1", "X-Actor-Role": "root"})

        assert response.status_code == 400

    def test_cashier_cannot_change_status(self, client, make_subscription):
        response = client.post(
            url(make_subscription(), "/status"), json={"target_status": "Suspendido"}, headers=CASHIER
        )

        assert response.status_code == 403


def test_get_refreshes_status(client, make_subscription):
    subscription = make_subscription(documents_used=97)

    response = client.get(url(subscription), headers=CASHIER)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Pocos comprobantes"
    assert data["documents_remaining"] == 3
    assert data["can_issue_documents"] is True


def test_unknown_subscription(client):
    response = client.get("/api/tenants/1/subscriptions/404", headers=ADMIN)

    assert response.status_code == 404


def test_other_tenant_gets_not_found(client, make_subscription):
    subscription = make_subscription(tenant_id=1)

    response = client.get(f"/api/tenants/2/subscriptions/{subscription.id}", headers=ADMIN)

    assert response.status_code == 404


class TestChangeStatus:
    def test_accepted(self, client, db, make_subscription):
        subscription = make_subscription()

        response = client.post(
            url(subscription, "/status"),
            json={"target_status": "Suspendido", "reason": "unpaid invoice"},
            headers={**ADMIN, "User-Agent": "backoffice", "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
        )

        assert response.status_code == 200
        assert response.json()["final_status"] == "Suspendido"

        history = client.get(url(subscription, "/history"), headers=ADMIN).json()
        entry = history["history"][0]
        assert entry["reason"] == "unpaid invoice"
        assert entry["transition_kind"] == "Manual"
        assert entry["actor_role"] == "administrador"
        assert entry["client_ip"] == "203.0.113.9"
        assert entry["client_agent"] == "backoffice"

    def test_rejection_returns_code(self, client, db, make_subscription):
        subscription = make_subscription()

        response = client.post(url(subscription, "/status"), json={"target_status": "Caducado"}, headers=ADMIN)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["accepted"] is False
        assert detail["error_code"] == "AUTOMATIC_ONLY"

        db.expire_all()
        assert db.get(Subscription, subscription.id).status == S.ACTIVE

    def test_unknown_target_status(self, client, make_subscription):
        response = client.post(
            url(make_subscription(), "/status"), json={"target_status": "Borrado"}, headers=ADMIN
        )

        assert response.status_code == 422

    def test_distributor_approval_is_rejected(self, client, make_subscription):
        subscription = make_subscription(status=S.PENDING)

        response = client.post(url(subscription, "/status"), json={"target_status": "Vigente"}, headers=DISTRIBUTOR)

        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "ROLE_NOT_PERMITTED"


def test_available_transitions(client, make_subscription):
    subscription = make_subscription(status=S.PENDING)

    admin_view = client.get(url(subscription, "/transitions"), headers=ADMIN).json()
    distributor_view = client.get(url(subscription, "/transitions"), headers=DISTRIBUTOR).json()

    assert set(admin_view["available_transitions"]) == {"Vigente", "Programado", "Suspendido"}
    assert admin_view["is_admin"] is True
    assert distributor_view["available_transitions"] == ["Programado"]


def test_history_requires_administrator(client, make_subscription):
    assert client.get(url(make_subscription(), "/history"), headers=DISTRIBUTOR).status_code == 403


def test_evaluate_tenant(client, make_subscription):
    make_subscription(end_date=TODAY - timedelta(days=1))
    make_subscription(documents_used=100)
    make_subscription()

    first = client.post("/api/tenants/1/subscriptions/evaluate", headers=DISTRIBUTOR).json()
    second = client.post("/api/tenants/1/subscriptions/evaluate", headers=DISTRIBUTOR).json()

    assert first["updated_subscriptions"] == 2
    assert first["message"] == "Updated 2 subscription(s)."
    assert second["updated_subscriptions"] == 0
    assert second["message"] == "All statuses are up to date."


class TestCommission:
    def test_update_and_history(self, client, make_subscription):
        subscription = make_subscription()

        response = client.patch(
            url(subscription, "/commission"),
            json={"commission_status": "Pagada", "commission_receipt": "receipts/7.pdf"},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert [entry["field"] for entry in response.json()] == ["commission_status", "commission_receipt"]

        history = client.get(url(subscription, "/commission/history"), headers=ADMIN).json()
        assert len(history) == 2

    def test_empty_status_is_rejected(self, client, make_subscription):
        response = client.patch(
            url(make_subscription(), "/commission"), json={"commission_status": None}, headers=ADMIN
        )

        assert response.status_code == 422

    def test_negative_amount_is_rejected(self, client, make_subscription):
        response = client.patch(
            url(make_subscription(), "/commission"), json={"commission_amount": "-1"}, headers=ADMIN
        )

        assert response.status_code == 422

    def test_distributor_cannot_edit(self, client, make_subscription):
        response = client.patch(
            url(make_subscription(), "/commission"), json={"commission_status": "Pagada"}, headers=DISTRIBUTOR
        )

        assert response.status_code == 403


def test_wsgi_wraps_the_application():
    from wsgi import application

    assert application.app is app
