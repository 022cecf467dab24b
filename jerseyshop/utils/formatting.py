"""
Conversions partagées pour les réponses JSON et les appels prestataires.
- Montants: Decimal en base, float dans les réponses, centimes pour Stripe/Square
- Dates: ISO 8601
"""
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Optional

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convertit en Decimal arrondi au centime; lève ValueError si non numérique."""
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Montant invalide: {value!r}")


def to_minor_units(value: Any) -> int:
    """Montant en unités mineures (200.00 -> 20000)."""
    return int((to_decimal(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def money_str(value: Any) -> str:
    """Format PayPal: chaîne à deux décimales ('200.00')."""
    return f"{to_decimal(value):.2f}"


def iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()
