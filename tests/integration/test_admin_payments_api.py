from datetime import datetime
from unittest.mock import MagicMock

import pytest

from jerseyshop.models import Payment
from jerseyshop.payments import stripe_client

ADDRESS = {"street": "Avenida 1", "city": "Lisboa", "state": "LX", "zip": "1000", "country": "PT"}


@pytest.fixture()
def stripe_payment(client, db, make_product, monkeypatch):
    """Paiement Stripe 'pending' transmis au prestataire (intent pi_admin)."""
    monkeypatch.setattr(stripe_client, "create_payment_intent", MagicMock(return_value={
        "id": "pi_admin", "status": "requires_payment_method", "client_secret": "pi_admin_secret",
    }))
    jersey = make_product(price="80.00")
    client.post("/api/cart", json={"productId": jersey.id, "quantity": 1})
    order = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "stripe"}).json()
    return client.post("/api/payment/stripe/intent", json={"orderId": order["id"], "amount": "80.00"}).json()["paymentId"]


def test_reconcile_and_refund(client, db, admin, login, stripe_payment, monkeypatch):
    db.get(Payment, stripe_payment).created_at = datetime(2020, 1, 1)
    db.commit()
    monkeypatch.setattr(stripe_client, "retrieve_payment_intent", MagicMock(return_value={
        "id": "pi_admin", "status": "succeeded", "client_secret": None,
    }))
    refund = MagicMock(return_value={"id": "re_admin", "status": "succeeded"})
    monkeypatch.setattr(stripe_client, "create_refund", refund)

    assert client.post("/api/admin/payments/reconcile", json={}).status_code == 403

    login(admin)
    summary = client.post("/api/admin/payments/reconcile", json={"olderThanMinutes": 5}).json()
    assert summary["checked"] == 1
    assert summary["completed"] == 1

    res = client.post(f"/api/admin/payments/{stripe_payment}/refund", json={"amount": "20.00"})
    assert res.status_code == 200
    assert res.json()["status"] == "refunded"
    refund.assert_called_once_with("pi_admin", 2000)

    again = client.post(f"/api/admin/payments/{stripe_payment}/refund", json={})
    assert again.status_code == 409


def test_refund_pending_payment_is_409(client, admin, login, stripe_payment):
    login(admin)
    assert client.post(f"/api/admin/payments/{stripe_payment}/refund", json={}).status_code == 409
    assert client.post("/api/admin/payments/999/refund", json={}).status_code == 404
