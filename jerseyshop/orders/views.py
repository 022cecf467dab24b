# module jerseyshop.orders.views

"""Endpoints Commandes.
- POST /api/orders: commande depuis le panier (réservation du stock), paiement 'pending' pour la méthode choisie.
- GET /api/orders: liste paginée (admin: toutes; sinon: les siennes).
- GET /api/orders/{id}: propriétaire ou admin, avec lignes et historique des paiements.
- PUT /api/orders/{id}: admin, statut (transitions contrôlées), suivi et notes.
Sécurité:
- require_user / require_admin
- optional_rate_limit sur la création
"""
from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from jerseyshop.errors import StoreError
from jerseyshop.infra.database import get_db
from jerseyshop.orders import service as orders_service
from jerseyshop.orders.models import OrderStatus, order_to_dict
from jerseyshop.payments.models import PaymentMethod
from jerseyshop.utils.rate_limit import optional_rate_limit
from jerseyshop.utils.security import require_admin, require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["Orders API"])


class ShippingAddress(BaseModel):
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    country: str = Field(min_length=1)

    def snapshot(self) -> Dict[str, Any]:
        """Copie figée sur la commande."""
        return {**self.model_dump(), "isDefault": False}


class CreateOrderRequest(BaseModel):
    shippingAddress: ShippingAddress
    paymentMethod: PaymentMethod
    paymentDetails: Optional[Dict[str, Any]] = None


class UpdateOrderRequest(BaseModel):
    status: OrderStatus
    trackingNumber: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None


@router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: dict = Depends(require_user),
    db: Session = Depends(get_db),
):
    try:
        return orders_service.list_orders_for(db, user, page=page, limit=limit)
    except Exception:
        logger.exception("Erreur list_orders")
        raise HTTPException(status_code=500, detail="Impossible de charger les commandes")


@router.post("", status_code=201, dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_order(payload: CreateOrderRequest, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    """Crée la commande depuis le panier de l'utilisateur.
    - 400 panier vide, 404 produit disparu, 409 stock insuffisant (rien n'est écrit)
    - Succès: commande 'pending' + paiement 'pending', panier vidé
    """
    try:
        return orders_service.place_order_from_cart(
            db, user, payload.shippingAddress.snapshot(), payload.paymentMethod
        )
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur create_order")
        raise HTTPException(status_code=500, detail="Impossible de créer la commande")


@router.get("/{order_id}")
def get_order(order_id: int, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    try:
        order = orders_service.get_order_for_user(db, order_id, user)
        return order_to_dict(order, with_payments=True)
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur get_order")
        raise HTTPException(status_code=500, detail="Impossible de charger la commande")


@router.put("/{order_id}")
def update_order(
    order_id: int,
    payload: UpdateOrderRequest,
    user: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Admin: transition de statut (409 si interdite), numéro de suivi et notes écrits s'ils sont fournis."""
    try:
        return orders_service.update_status(
            db, order_id, payload.status, tracking_number=payload.trackingNumber, notes=payload.notes
        )
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur update_order")
        raise HTTPException(status_code=500, detail="Impossible de mettre à jour la commande")
