from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from jerseyshop.payments.models import Payment, PaymentMethod, PaymentStatus, WebhookEvent

logger = logging.getLogger(__name__)

# module jerseyshop.payments.repository


def insert_payment(
    db: Session,
    *,
    order_id: int,
    method: PaymentMethod,
    amount: Decimal,
    transaction_id: Optional[str] = None,
    status: PaymentStatus = PaymentStatus.PENDING,
    details: Optional[Dict[str, Any]] = None,
) -> Payment:
    payment = Payment(
        order_id=order_id,
        payment_method=method,
        amount=amount,
        transaction_id=transaction_id,
        status=status,
        payment_details=details or {},
    )
    db.add(payment)
    db.flush()
    return payment


def get_payment(db: Session, payment_id: int) -> Optional[Payment]:
    return db.get(Payment, payment_id)


def find_by_order(db: Session, order_id: int) -> List[Payment]:
    """Tentatives de paiement d'une commande, plus récentes d'abord."""
    rows = db.scalars(
        select(Payment)
        .where(Payment.order_id == order_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
    ).all()
    return list(rows)


def find_by_transaction(db: Session, transaction_id: str, method: Optional[PaymentMethod] = None) -> Optional[Payment]:
    stmt = select(Payment).where(Payment.transaction_id == transaction_id)
    if method is not None:
        stmt = stmt.where(Payment.payment_method == method)
    return db.scalar(stmt.order_by(Payment.id.desc()).limit(1))


def find_placeholder(db: Session, order_id: int, method: PaymentMethod) -> Optional[Payment]:
    """Paiement 'pending' sans transaction_id (créé avec la commande) pour cette méthode."""
    return db.scalar(
        select(Payment)
        .where(
            Payment.order_id == order_id,
            Payment.payment_method == method,
            Payment.status == PaymentStatus.PENDING,
            Payment.transaction_id.is_(None),
        )
        .order_by(Payment.id.asc())
        .limit(1)
    )


def list_stale_pending(db: Session, created_before: datetime, limit: int = 100) -> List[Payment]:
    """Paiements 'pending' déjà transmis au prestataire (transaction_id connu) et plus vieux que created_before."""
    rows = db.scalars(
        select(Payment)
        .where(
            Payment.status == PaymentStatus.PENDING,
            Payment.transaction_id.is_not(None),
            Payment.created_at < created_before,
        )
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .limit(limit)
    ).all()
    return list(rows)


def update_payment(
    db: Session,
    payment: Payment,
    *,
    status: Optional[PaymentStatus] = None,
    transaction_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Payment:
    if status is not None:
        payment.status = status
    if transaction_id:
        payment.transaction_id = transaction_id
    if details is not None:
        payment.payment_details = details
    db.flush()
    return payment


def record_webhook_event(db: Session, provider: PaymentMethod, event_id: str, event_type: str) -> bool:
    """
    Enregistre un événement prestataire.
    Retourne False si (provider, event_id) est déjà connu: livraison en double à acquitter sans retraitement.
    Une livraison concurrente du même événement lève IntegrityError au flush (traitée par l'appelant).
    """
    exists = db.scalar(
        select(WebhookEvent.id).where(WebhookEvent.provider == provider, WebhookEvent.event_id == event_id)
    )
    if exists is not None:
        return False
    db.add(WebhookEvent(provider=provider, event_id=event_id, event_type=event_type or ""))
    db.flush()
    return True
