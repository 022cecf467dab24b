# module jerseyshop.payments.models
"""Tentatives de paiement et événements webhook déjà traités.
- Une commande peut avoir plusieurs Payment (nouvel essai, autre prestataire).
- transaction_id: identifiant du prestataire (intent Stripe, order PayPal, payment Square), NULL tant qu'inconnu.
- Le statut ne change que via la réponse synchrone du prestataire, un webhook, une capture,
  un remboursement ou le balayage de réconciliation.
"""
import enum
from typing import Any, Dict

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jerseyshop.infra.database import Base
from jerseyshop.utils.formatting import as_float, iso


class PaymentMethod(str, enum.Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    SQUARE = "square"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


def _values(e):
    return [m.value for m in e]


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("ix_payments_status_created", "status", "created_at"),
        Index("ix_payments_transaction_id", "transaction_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method = Column(Enum(PaymentMethod, name="payment_method", values_callable=_values), nullable=False)
    transaction_id = Column(String(255), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(PaymentStatus, name="payment_status", values_callable=_values),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    # Union typée par prestataire (voir payments/details.py), stockée en JSON
    payment_details = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    order = relationship("Order", back_populates="payments")


class WebhookEvent(Base):
    """Journal des événements prestataires déjà routés (livraison au moins une fois)."""
    __tablename__ = "webhook_events"
    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_webhook_events_provider_event"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(Enum(PaymentMethod, name="webhook_provider", values_callable=_values), nullable=False)
    event_id = Column(String(255), nullable=False)
    event_type = Column(String(100), nullable=False, default="")
    received_at = Column(DateTime(timezone=True), server_default=func.now())


def payment_to_dict(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "payment_method": PaymentMethod(payment.payment_method).value,
        "transaction_id": payment.transaction_id,
        "amount": as_float(payment.amount),
        "status": PaymentStatus(payment.status).value,
        "payment_details": payment.payment_details or {},
        "created_at": iso(payment.created_at),
        "updated_at": iso(payment.updated_at),
    }
