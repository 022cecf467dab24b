"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
- PaymentIntent (création, lecture), remboursement, vérification de signature webhook
- Les erreurs SDK deviennent ProviderError; le détail reste dans les logs
"""
import logging
from typing import Any, Dict, Optional

import stripe

from jerseyshop.config import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from jerseyshop.errors import InvalidSignature, ProviderError

logger = logging.getLogger(__name__)

# module jerseyshop.payments.stripe_client


def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY
    - Sans clé: ProviderError (aucun appel réseau tenté)
    """
    if not STRIPE_SECRET_KEY:
        logger.error("STRIPE_SECRET_KEY manquant")
        raise ProviderError()
    stripe.api_key = STRIPE_SECRET_KEY
    return stripe


def _intent_dict(intent) -> Dict[str, Any]:
    return {
        "id": intent.id,
        "status": intent.status,
        "client_secret": getattr(intent, "client_secret", None),
    }


def create_payment_intent(*, amount: int, currency: str, metadata: Dict[str, str]) -> Dict[str, Any]:
    """
    Crée un PaymentIntent.
    - amount: unités mineures (centimes)
    - metadata: {"orderId": "...", "userId": "..."} (clé de jointure du webhook)
    - moyens de paiement automatiques, sans redirection
    Retour: {"id": "pi_...", "status": "...", "client_secret": "..."}
    """
    require_stripe()
    try:
        intent = stripe.PaymentIntent.create(
            amount=amount,
            currency=currency,
            metadata=metadata,
            automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
        )
    except stripe.StripeError:
        logger.exception("stripe.create_payment_intent failed order=%s", metadata.get("orderId"))
        raise ProviderError()
    return _intent_dict(intent)


def retrieve_payment_intent(intent_id: str) -> Dict[str, Any]:
    require_stripe()
    try:
        intent = stripe.PaymentIntent.retrieve(intent_id)
    except stripe.StripeError:
        logger.exception("stripe.retrieve_payment_intent failed id=%s", intent_id)
        raise ProviderError("Statut du paiement indisponible")
    return _intent_dict(intent)


def create_refund(intent_id: str, amount: Optional[int] = None) -> Dict[str, Any]:
    """Remboursement total (amount=None) ou partiel (unités mineures) d'un PaymentIntent."""
    require_stripe()
    params: Dict[str, Any] = {"payment_intent": intent_id}
    if amount is not None:
        params["amount"] = amount
    try:
        refund = stripe.Refund.create(**params)
    except stripe.StripeError:
        logger.exception("stripe.create_refund failed intent=%s", intent_id)
        raise ProviderError("Échec du remboursement")
    return {"id": refund.id, "status": refund.status}


def verify_signature(payload: bytes, sig_header: Optional[str]) -> None:
    """
    Valide l'en-tête Stripe-Signature sur le corps brut (STRIPE_WEBHOOK_SECRET).
    Secret absent, en-tête absent ou signature fausse: InvalidSignature.
    """
    if not STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET manquant: webhook Stripe refusé")
        raise InvalidSignature()
    if not sig_header:
        raise InvalidSignature("En-tête stripe-signature manquant")
    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            sig_header,
            STRIPE_WEBHOOK_SECRET,
            stripe.Webhook.DEFAULT_TOLERANCE,
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError):
        raise InvalidSignature()
