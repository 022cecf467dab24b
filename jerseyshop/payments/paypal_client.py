"""
Adaptateur PayPal (API REST Orders v2) via httpx.
- Jeton OAuth client_credentials demandé à chaque opération (pas de cache partagé)
- create_order / capture_order / get_order / refund_capture
- verify_signature: empreinte des en-têtes de transmission + PAYPAL_WEBHOOK_ID
"""
import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from jerseyshop.config import (
    PAYPAL_API_BASE,
    PAYPAL_CLIENT_ID,
    PAYPAL_CLIENT_SECRET,
    PAYPAL_WEBHOOK_ID,
    PROVIDER_HTTP_TIMEOUT,
)
from jerseyshop.errors import InvalidSignature, ProviderError

logger = logging.getLogger(__name__)

# module jerseyshop.payments.paypal_client

TRANSMISSION_HEADERS = (
    "paypal-transmission-id",
    "paypal-transmission-time",
    "paypal-cert-url",
    "paypal-auth-algo",
    "paypal-transmission-sig",
)


def get_access_token() -> str:
    if not PAYPAL_CLIENT_ID or not PAYPAL_CLIENT_SECRET:
        logger.error("PAYPAL_CLIENT_ID/PAYPAL_CLIENT_SECRET manquants")
        raise ProviderError()
    try:
        resp = httpx.post(
            f"{PAYPAL_API_BASE}/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(PAYPAL_CLIENT_ID, PAYPAL_CLIENT_SECRET),
            headers={"Accept": "application/json"},
            timeout=PROVIDER_HTTP_TIMEOUT,
        )
    except httpx.HTTPError:
        logger.exception("paypal.get_access_token network error")
        raise ProviderError()
    if resp.status_code >= 300:
        logger.error("paypal.get_access_token failed: status=%s body=%s", resp.status_code, resp.text)
        raise ProviderError()
    return resp.json()["access_token"]


def _call(method: str, path: str, *, json: Optional[Dict[str, Any]] = None, error: Optional[str] = None) -> Dict[str, Any]:
    token = get_access_token()
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Prefer": "return=representation",
    }
    try:
        resp = httpx.request(method, f"{PAYPAL_API_BASE}{path}", json=json, headers=headers, timeout=PROVIDER_HTTP_TIMEOUT)
    except httpx.HTTPError:
        logger.exception("paypal %s %s network error", method, path)
        raise ProviderError(error)
    if resp.status_code >= 300:
        logger.error("paypal %s %s failed: status=%s body=%s", method, path, resp.status_code, resp.text)
        raise ProviderError(error)
    return resp.json() if resp.content else {}


def _first_capture(body: Dict[str, Any]) -> Dict[str, Any]:
    for unit in body.get("purchase_units") or []:
        captures = ((unit.get("payments") or {}).get("captures")) or []
        if captures:
            return captures[0]
    return {}


def _summary(body: Dict[str, Any]) -> Dict[str, Any]:
    """Champs utiles d'une commande PayPal: id, statut, capture et clé de jointure."""
    capture = _first_capture(body)
    units = body.get("purchase_units") or [{}]
    approval_url = next(
        (link.get("href") for link in body.get("links") or [] if link.get("rel") in ("approve", "payer-action")),
        None,
    )
    return {
        "id": body.get("id"),
        "status": body.get("status"),
        "approval_url": approval_url,
        "capture_id": capture.get("id"),
        "capture_status": capture.get("status"),
        "custom_id": capture.get("custom_id") or units[0].get("custom_id"),
        "invoice_id": capture.get("invoice_id") or units[0].get("invoice_id"),
    }


def create_order(
    *,
    order_id: int,
    amount: str,
    currency: str,
    return_url: str,
    cancel_url: str,
) -> Dict[str, Any]:
    """
    Crée une commande PayPal (intent CAPTURE).
    - amount: chaîne à deux décimales ("200.00")
    - custom_id = id de commande, invoice_id = ORDER-<id> (clés de jointure)
    Retour: {"id", "status", "approval_url", ...}
    """
    body = _call(
        "POST",
        "/v2/checkout/orders",
        json={
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": f"ORDER-{order_id}",
                    "custom_id": str(order_id),
                    "invoice_id": f"ORDER-{order_id}",
                    "amount": {"currency_code": currency.upper(), "value": amount},
                }
            ],
            "application_context": {
                "return_url": return_url,
                "cancel_url": cancel_url,
                "user_action": "PAY_NOW",
            },
        },
    )
    return _summary(body)


def capture_order(paypal_order_id: str) -> Dict[str, Any]:
    return _summary(_call("POST", f"/v2/checkout/orders/{paypal_order_id}/capture", json={}, error="Échec de la capture PayPal"))


def get_order(paypal_order_id: str) -> Dict[str, Any]:
    return _summary(_call("GET", f"/v2/checkout/orders/{paypal_order_id}", error="Statut du paiement indisponible"))


def refund_capture(capture_id: str, amount: Optional[str] = None, currency: str = "usd") -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if amount is not None:
        payload["amount"] = {"currency_code": currency.upper(), "value": amount}
    body = _call("POST", f"/v2/payments/captures/{capture_id}/refund", json=payload, error="Échec du remboursement")
    return {"id": body.get("id"), "status": body.get("status")}


def expected_signature(transmission_id: str, transmission_time: str, webhook_id: str, body: bytes) -> str:
    """base64(sha256("<transmission-id>|<transmission-time>|<webhook-id>|<hex sha256(corps)>"))."""
    body_hash = hashlib.sha256(body).hexdigest()
    message = f"{transmission_id}|{transmission_time}|{webhook_id}|{body_hash}"
    return base64.b64encode(hashlib.sha256(message.encode("utf-8")).digest()).decode("ascii")


def verify_signature(headers: Mapping[str, str], body: bytes) -> None:
    """Les cinq en-têtes de transmission sont requis; PAYPAL_WEBHOOK_ID absent: refus."""
    if not PAYPAL_WEBHOOK_ID:
        logger.error("PAYPAL_WEBHOOK_ID manquant: webhook PayPal refusé")
        raise InvalidSignature()
    values = {name: headers.get(name) for name in TRANSMISSION_HEADERS}
    if not all(values.values()):
        raise InvalidSignature("En-têtes de transmission PayPal manquants")
    expected = expected_signature(
        values["paypal-transmission-id"],
        values["paypal-transmission-time"],
        PAYPAL_WEBHOOK_ID,
        body,
    )
    if not hmac.compare_digest(expected.encode("utf-8"), values["paypal-transmission-sig"].encode("utf-8")):
        raise InvalidSignature()
