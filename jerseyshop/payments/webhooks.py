"""
Lecture des webhooks prestataires.
Chaque fonction *_event vérifie d'abord la signature (InvalidSignature, rien n'est touché),
parse le JSON puis ramène l'événement à un ProviderEvent commun:
- order_id: clé de jointure vers la commande locale (metadata.orderId, custom_id/invoice_id, reference_id)
- transaction_id: identifiant prestataire à comparer avec payments.transaction_id
- outcome: "completed", "failed" ou None (événement ignoré)
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from jerseyshop.errors import ValidationFailed
from jerseyshop.payments import paypal_client, square_client, stripe_client
from jerseyshop.payments.models import PaymentMethod

logger = logging.getLogger(__name__)

COMPLETED = "completed"
FAILED = "failed"

# Types d'événement (webhooks)
STRIPE_OUTCOMES = {
    "payment_intent.succeeded": COMPLETED,
    "payment_intent.payment_failed": FAILED,
    "payment_intent.canceled": FAILED,
}
PAYPAL_OUTCOMES = {
    "PAYMENT.CAPTURE.COMPLETED": COMPLETED,
    "PAYMENT.CAPTURE.DENIED": FAILED,
}

# Statuts prestataire (webhooks Square et balayage de réconciliation)
STRIPE_INTENT_STATUSES = {
    "succeeded": COMPLETED,
    "canceled": FAILED,
}
PAYPAL_ORDER_STATUSES = {
    "COMPLETED": COMPLETED,
    "VOIDED": FAILED,
}
SQUARE_OUTCOMES = {
    "COMPLETED": COMPLETED,
    "FAILED": FAILED,
    "CANCELED": FAILED,
}


@dataclass
class ProviderEvent:
    provider: PaymentMethod
    event_id: Optional[str]
    event_type: str
    order_id: Optional[int] = None
    transaction_id: Optional[str] = None
    outcome: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def parse_order_id(raw: Any) -> Optional[int]:
    """'42' ou 'ORDER-42' -> 42; tout le reste -> None."""
    if raw is None:
        return None
    text = str(raw).strip()
    if text.startswith("ORDER-"):
        text = text[len("ORDER-"):]
    try:
        return int(text)
    except ValueError:
        return None


def _load(body: bytes) -> Dict[str, Any]:
    try:
        event = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationFailed("Payload webhook invalide")
    if not isinstance(event, dict):
        raise ValidationFailed("Payload webhook invalide")
    return event


def stripe_event(body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
    stripe_client.verify_signature(body, headers.get("stripe-signature"))
    event = _load(body)
    obj = (event.get("data") or {}).get("object") or {}
    event_type = event.get("type") or ""
    return ProviderEvent(
        provider=PaymentMethod.STRIPE,
        event_id=event.get("id"),
        event_type=event_type,
        order_id=parse_order_id((obj.get("metadata") or {}).get("orderId")),
        transaction_id=obj.get("id"),
        outcome=STRIPE_OUTCOMES.get(event_type),
        details={"intent_status": obj.get("status")},
    )


def paypal_event(body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
    paypal_client.verify_signature(headers, body)
    event = _load(body)
    resource = event.get("resource") or {}
    event_type = event.get("event_type") or ""
    related = ((resource.get("supplementary_data") or {}).get("related_ids")) or {}
    order_key = resource.get("custom_id") or resource.get("invoice_id")
    outcome = PAYPAL_OUTCOMES.get(event_type)
    return ProviderEvent(
        provider=PaymentMethod.PAYPAL,
        event_id=event.get("id"),
        event_type=event_type,
        order_id=parse_order_id(order_key),
        transaction_id=related.get("order_id") or resource.get("id"),
        outcome=outcome,
        details={
            "capture_id": resource.get("id") if outcome else None,
            "order_status": resource.get("status"),
        },
    )


def square_event(body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
    square_client.verify_signature(body, headers.get("x-square-hmacsha256-signature"))
    event = _load(body)
    payment = ((event.get("data") or {}).get("object") or {}).get("payment") or {}
    event_type = event.get("type") or ""
    status = payment.get("status")
    outcome = SQUARE_OUTCOMES.get(status) if event_type.startswith("payment.") else None
    return ProviderEvent(
        provider=PaymentMethod.SQUARE,
        event_id=event.get("event_id"),
        event_type=event_type,
        order_id=parse_order_id(payment.get("reference_id")),
        transaction_id=payment.get("id"),
        outcome=outcome,
        details={"square_status": status, "receipt_url": payment.get("receipt_url")},
    )


PARSERS = {
    PaymentMethod.STRIPE: stripe_event,
    PaymentMethod.PAYPAL: paypal_event,
    PaymentMethod.SQUARE: square_event,
}


def parse_event(provider: PaymentMethod, body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
    return PARSERS[provider](body, headers)
