"""
Opérations admin sur les paiements.
- Remboursement d'un paiement complété
- Balayage de réconciliation des paiements restés 'pending'
"""
from decimal import Decimal
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from jerseyshop.errors import StoreError
from jerseyshop.infra.database import get_db
from jerseyshop.payments import service as payments_service
from jerseyshop.utils.security import require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin/payments", tags=["Admin"])

# module jerseyshop.admin.views


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0)


class ReconcileRequest(BaseModel):
    olderThanMinutes: Optional[int] = Field(default=None, ge=0)


@router.post("/{payment_id}/refund")
def refund_payment(
    payment_id: int,
    payload: Optional[RefundRequest] = None,
    user: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        amount = payload.amount if payload else None
        result = payments_service.refund_payment(db, payment_id, amount)
        logger.info("admin.refund payment=%s by=%s", payment_id, user.get("id"))
        return result
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur refund_payment")
        raise HTTPException(status_code=500, detail="Échec du remboursement")


@router.post("/reconcile")
def reconcile_payments(
    payload: Optional[ReconcileRequest] = None,
    user: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Retour: {checked, completed, failed, unchanged, errors}."""
    try:
        minutes = payload.olderThanMinutes if payload else None
        return payments_service.reconcile_pending_payments(db, minutes)
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur reconcile_payments")
        raise HTTPException(status_code=500, detail="Échec de la réconciliation")
