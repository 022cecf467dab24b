import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from jerseyshop.errors import StoreError
from jerseyshop.infra.database import get_db
from jerseyshop.orders.views import ShippingAddress
from jerseyshop.payments import service as payments_service
from jerseyshop.payments import webhooks
from jerseyshop.payments.models import PaymentMethod
from jerseyshop.utils.rate_limit import optional_rate_limit
from jerseyshop.utils.security import require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payment", tags=["Payments API"])

# module jerseyshop.payments.views


class CheckoutLine(BaseModel):
    productId: int
    quantity: int = Field(ge=1)


class CheckoutRequest(BaseModel):
    orderId: Optional[int] = None
    cartItems: Optional[List[CheckoutLine]] = None
    shippingAddress: Optional[ShippingAddress] = None
    paymentMethod: PaymentMethod
    paymentDetails: Optional[Dict[str, Any]] = None


class StripeIntentRequest(BaseModel):
    orderId: int
    amount: Decimal = Field(gt=0)


class PayPalCreateRequest(BaseModel):
    orderId: int
    amount: Decimal = Field(gt=0)
    returnUrl: Optional[str] = None
    cancelUrl: Optional[str] = None


class PayPalCaptureRequest(BaseModel):
    orderId: str = Field(min_length=1)


class SquareCreateRequest(BaseModel):
    orderId: int
    amount: Decimal = Field(gt=0)
    sourceId: str = Field(min_length=1)
    locationId: Optional[str] = None


@router.post("/checkout", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def checkout(payload: CheckoutRequest, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    """
    Paiement en une étape.
    - Entrée JSON: {orderId} ou {cartItems, shippingAddress}, plus paymentMethod et paymentDetails
    - Sécurité: require_user + rate limit (10 req / 60s)
    - Réponse: {success, orderId, amount, paymentMethod, ...champs du prestataire}
    """
    try:
        return payments_service.checkout(
            db,
            user,
            method=payload.paymentMethod,
            order_id=payload.orderId,
            cart_items=[line.model_dump() for line in payload.cartItems or []],
            shipping_address=payload.shippingAddress.snapshot() if payload.shippingAddress else None,
            details=payload.paymentDetails,
        )
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur checkout")
        raise HTTPException(status_code=500, detail="Échec de création du paiement")


@router.post("/stripe/intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def stripe_intent(payload: StripeIntentRequest, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    """PaymentIntent pour une commande 'pending'; amount doit égaler le total (400 sinon)."""
    try:
        return payments_service.create_stripe_intent(db, payload.orderId, payload.amount, user)
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur stripe_intent")
        raise HTTPException(status_code=500, detail="Échec de création du paiement")


@router.post("/paypal/create", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def paypal_create(payload: PayPalCreateRequest, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    try:
        return payments_service.create_paypal_order(
            db, payload.orderId, payload.amount, user, payload.returnUrl, payload.cancelUrl
        )
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur paypal_create")
        raise HTTPException(status_code=500, detail="Échec de création du paiement")


@router.post("/paypal/capture")
def paypal_capture(payload: PayPalCaptureRequest, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    """Capture après approbation; orderId est l'identifiant de commande PayPal."""
    try:
        return payments_service.capture_paypal(db, payload.orderId, user)
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur paypal_capture")
        raise HTTPException(status_code=500, detail="Échec de la capture PayPal")


@router.post("/square/create", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def square_create(payload: SquareCreateRequest, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    try:
        return payments_service.create_square_payment(
            db, payload.orderId, payload.amount, user, payload.sourceId, payload.locationId
        )
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur square_create")
        raise HTTPException(status_code=500, detail="Échec de création du paiement")


async def _handle_webhook(provider: PaymentMethod, request: Request, db: Session):
    """
    Webhook commun:
    - Signature vérifiée sur le corps brut avant tout (400 sinon, aucune écriture)
    - Payload JSON invalide -> 400
    - Réponse {"received": true} dès que l'événement est routé, même sans correspondance locale
    - La réconciliation (SQLAlchemy synchrone) tourne dans le threadpool, pas sur la boucle
    """
    body = await request.body()
    try:
        event = webhooks.parse_event(provider, body, request.headers)
        return await run_in_threadpool(payments_service.reconcile_provider_event, db, event)
    except StoreError:
        raise
    except Exception:
        logger.exception("Erreur webhook %s", provider.value)
        return JSONResponse(status_code=500, content={"error": "Webhook handler failed"})


@router.post("/stripe/webhook", include_in_schema=False)
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    return await _handle_webhook(PaymentMethod.STRIPE, request, db)


@router.post("/paypal/webhook", include_in_schema=False)
async def paypal_webhook(request: Request, db: Session = Depends(get_db)):
    return await _handle_webhook(PaymentMethod.PAYPAL, request, db)


@router.post("/square/webhook", include_in_schema=False)
async def square_webhook(request: Request, db: Session = Depends(get_db)):
    return await _handle_webhook(PaymentMethod.SQUARE, request, db)
