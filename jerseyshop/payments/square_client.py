"""
Adaptateur Square (API REST v2) via httpx.
- Paiement autocomplété avec reference_id = ORDER-<id> et clé d'idempotence neuve
- Lecture d'un paiement, remboursement
- Signature webhook: base64(HMAC-SHA256(clé, SQUARE_WEBHOOK_URL + corps))
"""
import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional
from uuid import uuid4

import httpx

from jerseyshop.config import (
    PROVIDER_HTTP_TIMEOUT,
    SQUARE_ACCESS_TOKEN,
    SQUARE_API_BASE,
    SQUARE_LOCATION_ID,
    SQUARE_VERSION,
    SQUARE_WEBHOOK_SIGNATURE_KEY,
    SQUARE_WEBHOOK_URL,
)
from jerseyshop.errors import InvalidSignature, ProviderError

logger = logging.getLogger(__name__)

# module jerseyshop.payments.square_client


def _headers() -> Dict[str, str]:
    if not SQUARE_ACCESS_TOKEN:
        logger.error("SQUARE_ACCESS_TOKEN manquant")
        raise ProviderError()
    return {
        "Authorization": f"Bearer {SQUARE_ACCESS_TOKEN}",
        "Square-Version": SQUARE_VERSION,
        "Content-Type": "application/json",
    }


def _call(method: str, path: str, *, json: Optional[Dict[str, Any]] = None, error: Optional[str] = None) -> Dict[str, Any]:
    headers = _headers()
    try:
        resp = httpx.request(method, f"{SQUARE_API_BASE}{path}", json=json, headers=headers, timeout=PROVIDER_HTTP_TIMEOUT)
    except httpx.HTTPError:
        logger.exception("square %s %s network error", method, path)
        raise ProviderError(error)
    if resp.status_code >= 300:
        logger.error("square %s %s failed: status=%s body=%s", method, path, resp.status_code, resp.text)
        raise ProviderError(error)
    return resp.json() if resp.content else {}


def _payment_summary(payment: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": payment.get("id"),
        "status": payment.get("status"),
        "receipt_url": payment.get("receipt_url"),
        "reference_id": payment.get("reference_id"),
    }


def create_payment(
    *,
    order_id: int,
    amount: int,
    currency: str,
    source_id: str,
    location_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Débite la source (jeton carte du SDK web Square).
    - amount: unités mineures
    Retour: {"id", "status", "receipt_url", "reference_id"}
    """
    payload: Dict[str, Any] = {
        "source_id": source_id,
        "idempotency_key": str(uuid4()),
        "amount_money": {"amount": amount, "currency": currency.upper()},
        "reference_id": f"ORDER-{order_id}",
        "autocomplete": True,
    }
    # Sans location_id, Square utilise la location principale du compte
    if location_id or SQUARE_LOCATION_ID:
        payload["location_id"] = location_id or SQUARE_LOCATION_ID
    body = _call("POST", "/v2/payments", json=payload)
    return _payment_summary(body.get("payment") or {})


def get_payment(payment_id: str) -> Dict[str, Any]:
    body = _call("GET", f"/v2/payments/{payment_id}", error="Statut du paiement indisponible")
    return _payment_summary(body.get("payment") or {})


def refund_payment(payment_id: str, amount: int, currency: str) -> Dict[str, Any]:
    body = _call(
        "POST",
        "/v2/refunds",
        json={
            "idempotency_key": str(uuid4()),
            "payment_id": payment_id,
            "amount_money": {"amount": amount, "currency": currency.upper()},
        },
        error="Échec du remboursement",
    )
    refund = body.get("refund") or {}
    return {"id": refund.get("id"), "status": refund.get("status")}


def expected_signature(body: bytes, key: str, notification_url: str = "") -> str:
    digest = hmac.new(key.encode("utf-8"), notification_url.encode("utf-8") + body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(body: bytes, signature: Optional[str]) -> None:
    """Clé absente, en-tête absent ou empreinte différente: InvalidSignature (comparaison à temps constant)."""
    if not SQUARE_WEBHOOK_SIGNATURE_KEY:
        logger.error("SQUARE_WEBHOOK_SIGNATURE_KEY manquant: webhook Square refusé")
        raise InvalidSignature()
    if not signature:
        raise InvalidSignature("En-tête de signature Square manquant")
    expected = expected_signature(body, SQUARE_WEBHOOK_SIGNATURE_KEY, SQUARE_WEBHOOK_URL)
    if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
        raise InvalidSignature()
