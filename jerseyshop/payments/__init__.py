"""
Module 'payments' (feature-first): point d'entrée public.
Réunit les modèles, les détails typés par prestataire et la lecture des webhooks.
Le service (jerseyshop.payments.service) s'importe directement: il dépend des commandes.
"""

from .models import Payment, PaymentMethod, PaymentStatus, WebhookEvent, payment_to_dict
from .details import (
    PaymentDetails,
    PayPalDetails,
    SquareDetails,
    StripeDetails,
    dump_details,
    empty_details,
    merge_details,
    parse_details,
)
from .webhooks import ProviderEvent, parse_event, parse_order_id

__all__ = [
    # models
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "WebhookEvent",
    "payment_to_dict",
    # details
    "PaymentDetails",
    "StripeDetails",
    "PayPalDetails",
    "SquareDetails",
    "empty_details",
    "parse_details",
    "dump_details",
    "merge_details",
    # webhooks
    "ProviderEvent",
    "parse_event",
    "parse_order_id",
]
