"""Parcours complet: panier -> commande -> PaymentIntent -> webhook signé -> commande 'processing'."""
from unittest.mock import MagicMock

import pytest

from jerseyshop.models import Order, OrderStatus, Payment, PaymentStatus, Product
from jerseyshop.payments import paypal_client, square_client, stripe_client

ADDRESS = {"street": "Stadionplein 1", "city": "Amsterdam", "state": "NH", "zip": "1076", "country": "NL"}


@pytest.fixture()
def fake_intent(monkeypatch):
    create = MagicMock(return_value={"id": "pi_3Nflow", "status": "requires_payment_method", "client_secret": "pi_3Nflow_secret"})
    monkeypatch.setattr(stripe_client, "create_payment_intent", create)
    return create


def test_stripe_checkout_end_to_end(client, db, make_product, fake_intent, sign_stripe, make_stripe_event):
    jersey = make_product(price="100.00", inventory=5)
    client.post("/api/cart", json={"productId": jersey.id, "quantity": 2})
    order = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "stripe"}).json()
    assert order["total_price"] == 200.0

    intent = client.post("/api/payment/stripe/intent", json={"orderId": order["id"], "amount": 200.00})
    assert intent.status_code == 200
    assert intent.json()["clientSecret"] == "pi_3Nflow_secret"
    assert fake_intent.call_args.kwargs["amount"] == 20000
    assert fake_intent.call_args.kwargs["metadata"]["orderId"] == str(order["id"])

    body, headers = sign_stripe(make_stripe_event("evt_flow", "payment_intent.succeeded", "pi_3Nflow", order["id"]))
    hook = client.post("/api/payment/stripe/webhook", content=body, headers=headers)
    assert hook.status_code == 200
    assert hook.json() == {"received": True}

    detail = client.get(f"/api/orders/{order['id']}").json()
    assert detail["status"] == "processing"
    assert [p["status"] for p in detail["payments"]] == ["completed"]
    assert detail["payments"][0]["transaction_id"] == "pi_3Nflow"
    db.expire_all()
    assert db.get(Product, jersey.id).inventory == 3


def test_amount_tampering_is_refused(client, make_product, fake_intent):
    jersey = make_product(price="100.00")
    client.post("/api/cart", json={"productId": jersey.id, "quantity": 1})
    order = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "stripe"}).json()

    res = client.post("/api/payment/stripe/intent", json={"orderId": order["id"], "amount": 1.00})

    assert res.status_code == 400
    fake_intent.assert_not_called()


def test_one_step_checkout_with_cart_items(client, db, make_product, fake_intent):
    jersey = make_product(price="45.00", inventory=2)
    res = client.post("/api/payment/checkout", json={
        "cartItems": [{"productId": jersey.id, "quantity": 2}],
        "shippingAddress": ADDRESS,
        "paymentMethod": "stripe",
    })
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["amount"] == 90.0
    assert body["paymentIntentId"] == "pi_3Nflow"
    db.expire_all()
    assert db.get(Product, jersey.id).inventory == 0


def test_checkout_out_of_stock_writes_nothing(client, db, make_product, fake_intent):
    jersey = make_product(inventory=1)
    res = client.post("/api/payment/checkout", json={
        "cartItems": [{"productId": jersey.id, "quantity": 3}],
        "shippingAddress": ADDRESS,
        "paymentMethod": "stripe",
    })
    assert res.status_code == 409
    assert db.query(Order).count() == 0
    fake_intent.assert_not_called()


def test_paypal_create_then_capture(client, db, make_product, monkeypatch):
    jersey = make_product(price="30.00")
    client.post("/api/cart", json={"productId": jersey.id, "quantity": 1})
    order = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "paypal"}).json()
    monkeypatch.setattr(paypal_client, "create_order", MagicMock(return_value={
        "id": "5O190127TN364715T", "status": "CREATED", "approval_url": "https://www.sandbox.paypal.com/checkoutnow?token=5O190127TN364715T",
        "capture_id": None, "capture_status": None, "custom_id": None, "invoice_id": None,
    }))
    monkeypatch.setattr(paypal_client, "capture_order", MagicMock(return_value={
        "id": "5O190127TN364715T", "status": "COMPLETED", "approval_url": None, "capture_id": "3C679366HH908993F",
        "capture_status": "COMPLETED", "custom_id": str(order["id"]), "invoice_id": None,
    }))

    created = client.post("/api/payment/paypal/create", json={"orderId": order["id"], "amount": "30.00"})
    assert created.status_code == 200
    assert created.json()["approvalUrl"].startswith("https://www.sandbox.paypal.com")

    captured = client.post("/api/payment/paypal/capture", json={"orderId": "5O190127TN364715T"})
    assert captured.json() == {"success": True, "captureId": "3C679366HH908993F", "status": "COMPLETED"}

    db.expire_all()
    assert OrderStatus(db.get(Order, order["id"]).status) == OrderStatus.PROCESSING
    payments = db.query(Payment).filter(Payment.order_id == order["id"]).all()
    assert len(payments) == 1
    assert PaymentStatus(payments[0].status) == PaymentStatus.COMPLETED


def test_square_payment_completes_immediately(client, db, make_product, monkeypatch):
    jersey = make_product(price="55.55")
    client.post("/api/cart", json={"productId": jersey.id, "quantity": 1})
    order = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "square"}).json()
    create = MagicMock(return_value={
        "id": "R2B3Z8WMVt3EAmzYWLZvz7Y69EbZY", "status": "COMPLETED",
        "receipt_url": "https://squareup.com/receipt/preview/R2B3", "reference_id": f"ORDER-{order['id']}",
    })
    monkeypatch.setattr(square_client, "create_payment", create)

    res = client.post("/api/payment/square/create", json={
        "orderId": order["id"], "amount": "55.55", "sourceId": "cnon:card-nonce-ok",
    })

    assert res.status_code == 200
    assert res.json()["status"] == "COMPLETED"
    assert create.call_args.kwargs["amount"] == 5555
    assert client.get(f"/api/orders/{order['id']}").json()["status"] == "processing"


def test_provider_failure_is_generic_500(client, make_product, monkeypatch):
    from jerseyshop.errors import ProviderError

    jersey = make_product()
    client.post("/api/cart", json={"productId": jersey.id, "quantity": 1})
    order = client.post("/api/orders", json={"shippingAddress": ADDRESS, "paymentMethod": "stripe"}).json()
    monkeypatch.setattr(stripe_client, "create_payment_intent", MagicMock(side_effect=ProviderError()))

    res = client.post("/api/payment/stripe/intent", json={"orderId": order["id"], "amount": "100.00"})

    assert res.status_code == 500
    assert res.json() == {"error": "Échec de création du paiement"}
