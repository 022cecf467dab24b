"""
Détails de paiement par prestataire (union étiquetée sur 'provider').
Remplace un sac JSON non typé: chaque variante a ses propres champs,
la colonne payments.payment_details reçoit le dump de la variante.
"""
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

# module jerseyshop.payments.details


class _Details(BaseModel):
    model_config = ConfigDict(extra="ignore")

    refund_id: Optional[str] = None


class StripeDetails(_Details):
    provider: Literal["stripe"] = "stripe"
    client_secret: Optional[str] = None
    intent_status: Optional[str] = None


class PayPalDetails(_Details):
    provider: Literal["paypal"] = "paypal"
    order_status: Optional[str] = None
    approval_url: Optional[str] = None
    capture_id: Optional[str] = None


class SquareDetails(_Details):
    provider: Literal["square"] = "square"
    square_status: Optional[str] = None
    receipt_url: Optional[str] = None


PaymentDetails = Annotated[
    Union[StripeDetails, PayPalDetails, SquareDetails],
    Field(discriminator="provider"),
]

_adapter = TypeAdapter(PaymentDetails)

_EMPTY = {
    "stripe": StripeDetails,
    "paypal": PayPalDetails,
    "square": SquareDetails,
}


def empty_details(provider: str) -> _Details:
    """Variante vide pour un prestataire (placeholder créé avec la commande)."""
    return _EMPTY[str(provider)]()


def parse_details(raw: Optional[Dict[str, Any]], provider: str) -> _Details:
    """
    Relit la colonne JSON.
    - None/{} -> variante vide du prestataire
    - 'provider' absent -> injecté depuis payment_method
    """
    if not raw:
        return empty_details(provider)
    data = dict(raw)
    data.setdefault("provider", str(provider))
    return _adapter.validate_python(data)


def dump_details(details: _Details) -> Dict[str, Any]:
    return details.model_dump(exclude_none=True)


def merge_details(raw: Optional[Dict[str, Any]], provider: str, /, **changes: Any) -> Dict[str, Any]:
    """Applique des champs sur la variante existante et renvoie le JSON à stocker."""
    current = parse_details(raw, provider)
    fields = type(current).model_fields
    updated = current.model_copy(
        update={k: v for k, v in changes.items() if v is not None and k in fields and k != "provider"}
    )
    return dump_details(updated)
