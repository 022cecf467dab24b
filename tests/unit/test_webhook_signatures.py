import base64
import hashlib
import hmac
import json

import pytest

from jerseyshop.errors import InvalidSignature, ValidationFailed
from jerseyshop.payments import PaymentMethod, parse_event, parse_order_id
from jerseyshop.payments import paypal_client, square_client, stripe_client

WEBHOOK_ID = "WH-7YX49823S2290830K"
SQUARE_KEY = "sq-signature-key"
SQUARE_URL = "https://shop.example.com/api/payment/square/webhook"


@pytest.fixture()
def paypal_webhook_id(monkeypatch):
    monkeypatch.setattr(paypal_client, "PAYPAL_WEBHOOK_ID", WEBHOOK_ID)
    return WEBHOOK_ID


@pytest.fixture()
def square_key(monkeypatch):
    monkeypatch.setattr(square_client, "SQUARE_WEBHOOK_SIGNATURE_KEY", SQUARE_KEY)
    monkeypatch.setattr(square_client, "SQUARE_WEBHOOK_URL", SQUARE_URL)
    return SQUARE_KEY


def _paypal_headers(body: bytes, signature=None):
    tid, ts = "b2384410-f8d2-11e7-a4d2-9f3ed86e4a3e", "2026-10-19T10:00:00Z"
    if signature is None:
        digest = hashlib.sha256(f"{tid}|{ts}|{WEBHOOK_ID}|{hashlib.sha256(body).hexdigest()}".encode()).digest()
        signature = base64.b64encode(digest).decode()
    return {
        "paypal-transmission-id": tid,
        "paypal-transmission-time": ts,
        "paypal-cert-url": "https://api.paypal.com/v1/notifications/certs/CERT-360caa42",
        "paypal-auth-algo": "SHA256withRSA",
        "paypal-transmission-sig": signature,
    }


def _square_signature(body: bytes) -> str:
    digest = hmac.new(SQUARE_KEY.encode(), SQUARE_URL.encode() + body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


@pytest.mark.parametrize("raw,expected", [("42", 42), ("ORDER-42", 42), (7, 7), (None, None), ("abc", None), ("", None)])
def test_parse_order_id(raw, expected):
    assert parse_order_id(raw) == expected


# --- Stripe ---

def test_stripe_valid_signature_yields_event(sign_stripe, make_stripe_event):
    body, headers = sign_stripe(make_stripe_event("evt_1", "payment_intent.succeeded", "pi_1", 12))
    event = parse_event(PaymentMethod.STRIPE, body.encode(), headers)
    assert event.event_id == "evt_1"
    assert event.order_id == 12
    assert event.transaction_id == "pi_1"
    assert event.outcome == "completed"


def test_stripe_failed_intent_maps_to_failed(sign_stripe, make_stripe_event):
    body, headers = sign_stripe(
        make_stripe_event("evt_2", "payment_intent.payment_failed", "pi_2", 3, status="requires_payment_method")
    )
    assert parse_event(PaymentMethod.STRIPE, body.encode(), headers).outcome == "failed"


def test_stripe_unhandled_type_has_no_outcome(sign_stripe, make_stripe_event):
    body, headers = sign_stripe(make_stripe_event("evt_3", "charge.refunded", "ch_1", 3))
    assert parse_event(PaymentMethod.STRIPE, body.encode(), headers).outcome is None


def test_stripe_tampered_body_is_rejected(sign_stripe, make_stripe_event):
    body, headers = sign_stripe(make_stripe_event("evt_4", "payment_intent.succeeded", "pi_4", 1))
    with pytest.raises(InvalidSignature):
        parse_event(PaymentMethod.STRIPE, body.replace("pi_4", "pi_X").encode(), headers)


def test_stripe_missing_header_is_rejected(stripe_secret):
    with pytest.raises(InvalidSignature):
        stripe_client.verify_signature(b"{}", None)


def test_stripe_without_secret_fails_closed(monkeypatch, sign_stripe, make_stripe_event):
    body, headers = sign_stripe(make_stripe_event("evt_5", "payment_intent.succeeded", "pi_5", 1))
    monkeypatch.setattr(stripe_client, "STRIPE_WEBHOOK_SECRET", "")
    with pytest.raises(InvalidSignature):
        parse_event(PaymentMethod.STRIPE, body.encode(), headers)


# --- PayPal ---

def test_paypal_expected_signature_matches_scheme():
    body = b'{"id":"WH-1"}'
    expected = base64.b64encode(
        hashlib.sha256(f"t|2026|{WEBHOOK_ID}|{hashlib.sha256(body).hexdigest()}".encode()).digest()
    ).decode()
    assert paypal_client.expected_signature("t", "2026", WEBHOOK_ID, body) == expected


def test_paypal_capture_completed_event(paypal_webhook_id):
    body = json.dumps({
        "id": "WH-58D329510W468432D",
        "event_type": "PAYMENT.CAPTURE.COMPLETED",
        "resource": {
            "id": "CAPTURE-9",
            "status": "COMPLETED",
            "custom_id": "15",
            "supplementary_data": {"related_ids": {"order_id": "PAYPAL-ORDER-1"}},
        },
    }).encode()
    event = parse_event(PaymentMethod.PAYPAL, body, _paypal_headers(body))
    assert event.order_id == 15
    assert event.transaction_id == "PAYPAL-ORDER-1"
    assert event.outcome == "completed"
    assert event.details["capture_id"] == "CAPTURE-9"


def test_paypal_denied_capture_uses_invoice_id(paypal_webhook_id):
    body = json.dumps({
        "id": "WH-2",
        "event_type": "PAYMENT.CAPTURE.DENIED",
        "resource": {"id": "CAPTURE-1", "invoice_id": "ORDER-8"},
    }).encode()
    event = parse_event(PaymentMethod.PAYPAL, body, _paypal_headers(body))
    assert event.order_id == 8
    assert event.outcome == "failed"


def test_paypal_wrong_signature_is_rejected(paypal_webhook_id):
    body = b'{"id":"WH-3","event_type":"PAYMENT.CAPTURE.COMPLETED","resource":{}}'
    with pytest.raises(InvalidSignature):
        parse_event(PaymentMethod.PAYPAL, body, _paypal_headers(body, signature="bm9wZQ=="))


def test_paypal_missing_transmission_header_is_rejected(paypal_webhook_id):
    body = b'{"id":"WH-4"}'
    headers = _paypal_headers(body)
    headers.pop("paypal-cert-url")
    with pytest.raises(InvalidSignature):
        paypal_client.verify_signature(headers, body)


def test_paypal_without_webhook_id_fails_closed(monkeypatch):
    monkeypatch.setattr(paypal_client, "PAYPAL_WEBHOOK_ID", "")
    body = b'{"id":"WH-5"}'
    with pytest.raises(InvalidSignature):
        paypal_client.verify_signature(_paypal_headers(body), body)


# --- Square ---

def test_square_payment_updated_completed(square_key):
    body = json.dumps({
        "event_id": "sq-evt-1",
        "type": "payment.updated",
        "data": {"object": {"payment": {
            "id": "sq-pay-1",
            "status": "COMPLETED",
            "reference_id": "ORDER-21",
            "receipt_url": "https://squareup.com/receipt/preview/sq-pay-1",
        }}},
    }).encode()
    event = parse_event(PaymentMethod.SQUARE, body, {"x-square-hmacsha256-signature": _square_signature(body)})
    assert event.event_id == "sq-evt-1"
    assert event.order_id == 21
    assert event.transaction_id == "sq-pay-1"
    assert event.outcome == "completed"


def test_square_non_payment_event_is_ignored(square_key):
    body = json.dumps({
        "event_id": "sq-evt-2",
        "type": "refund.updated",
        "data": {"object": {"payment": {"status": "COMPLETED"}}},
    }).encode()
    event = parse_event(PaymentMethod.SQUARE, body, {"x-square-hmacsha256-signature": _square_signature(body)})
    assert event.outcome is None


def test_square_signature_covers_notification_url(square_key, monkeypatch):
    body = b'{"event_id":"sq-evt-3","type":"payment.updated"}'
    signature = _square_signature(body)
    monkeypatch.setattr(square_client, "SQUARE_WEBHOOK_URL", "https://attacker.example.com/hook")
    with pytest.raises(InvalidSignature):
        square_client.verify_signature(body, signature)


def test_square_non_ascii_signature_is_rejected_not_crashing(square_key):
    with pytest.raises(InvalidSignature):
        square_client.verify_signature(b"{}", "signé")


def test_signed_but_malformed_payload_is_a_validation_error(square_key):
    body = b"not-json"
    with pytest.raises(ValidationFailed):
        parse_event(PaymentMethod.SQUARE, body, {"x-square-hmacsha256-signature": _square_signature(body)})


# --- États annulés: webhook et balayage donnent le même résultat ---

def test_stripe_canceled_intent_maps_to_failed(sign_stripe, make_stripe_event):
    body, headers = sign_stripe(make_stripe_event("evt_5", "payment_intent.canceled", "pi_5", 3, status="canceled"))
    assert parse_event(PaymentMethod.STRIPE, body.encode(), headers).outcome == "failed"


def test_square_canceled_payment_maps_to_failed(square_key):
    body = json.dumps({
        "event_id": "sq-evt-4",
        "type": "payment.updated",
        "data": {"object": {"payment": {"id": "sq-pay-4", "status": "CANCELED", "reference_id": "ORDER-8"}}},
    }).encode()
    event = parse_event(PaymentMethod.SQUARE, body, {"x-square-hmacsha256-signature": _square_signature(body)})
    assert event.outcome == "failed"
    assert event.order_id == 8


@pytest.mark.parametrize("event_type,intent_status", [
    ("payment_intent.succeeded", "succeeded"),
    ("payment_intent.canceled", "canceled"),
])
def test_stripe_webhook_and_intent_status_agree(event_type, intent_status):
    from jerseyshop.payments.webhooks import STRIPE_INTENT_STATUSES, STRIPE_OUTCOMES

    assert STRIPE_OUTCOMES[event_type] == STRIPE_INTENT_STATUSES[intent_status]
