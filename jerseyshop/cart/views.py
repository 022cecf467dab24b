import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from jerseyshop.cart import service as cart_service
from jerseyshop.errors import StoreError
from jerseyshop.infra.database import get_db
from jerseyshop.utils.security import require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cart", tags=["Cart API"])

# module jerseyshop.cart.views


class AddToCartRequest(BaseModel):
    productId: int
    quantity: int = Field(default=1, ge=1)


class UpdateCartRequest(BaseModel):
    quantity: int = Field(ge=1)


@router.get("")
def get_cart(user: dict = Depends(require_user), db: Session = Depends(get_db)):
    """Panier courant: {items, count} (count = somme des quantités)."""
    try:
        return cart_service.get_cart(db, user["id"])
    except Exception:
        logger.exception("Erreur get_cart")
        raise HTTPException(status_code=500, detail="Impossible de charger le panier")


@router.post("", status_code=201)
def add_to_cart(payload: AddToCartRequest, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    """Ajout (upsert). 404 produit inconnu, 409 si la quantité cumulée dépasse le stock."""
    try:
        return cart_service.add_to_cart(db, user["id"], payload.productId, payload.quantity)
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur add_to_cart")
        raise HTTPException(status_code=500, detail="Impossible d'ajouter au panier")


@router.put("/{product_id}")
def update_cart_item(
    product_id: int,
    payload: UpdateCartRequest,
    user: dict = Depends(require_user),
    db: Session = Depends(get_db),
):
    try:
        return cart_service.update_quantity(db, user["id"], product_id, payload.quantity)
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur update_cart_item")
        raise HTTPException(status_code=500, detail="Impossible de modifier le panier")


@router.delete("/{product_id}")
def remove_cart_item(product_id: int, user: dict = Depends(require_user), db: Session = Depends(get_db)):
    try:
        cart_service.remove_from_cart(db, user["id"], product_id)
        return {"success": True}
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur remove_cart_item")
        raise HTTPException(status_code=500, detail="Impossible de modifier le panier")


@router.delete("")
def clear_cart(user: dict = Depends(require_user), db: Session = Depends(get_db)):
    try:
        removed = cart_service.clear_cart(db, user["id"])
        return {"success": True, "removed": removed}
    except Exception:
        logger.exception("Erreur clear_cart")
        raise HTTPException(status_code=500, detail="Impossible de vider le panier")
