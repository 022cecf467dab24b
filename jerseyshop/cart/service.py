"""
Cas d'usage 'cart': panier persistant par utilisateur.
Le stock est vérifié à l'ajout et à la modification, mais rien n'est réservé:
la réservation réelle a lieu à la création de commande.
"""
from typing import Any, Dict, List
import logging

from sqlalchemy.orm import Session

from jerseyshop.cart import repository
from jerseyshop.cart.models import CartItem
from jerseyshop.catalog import repository as catalog_repository
from jerseyshop.errors import InsufficientInventory, NotFound, ProductNotFound
from jerseyshop.infra.database import transaction
from jerseyshop.utils.formatting import as_float

logger = logging.getLogger(__name__)


def item_to_dict(item: CartItem) -> Dict[str, Any]:
    product = item.product
    images = product.images if product else []
    return {
        "id": item.id,
        "user_id": item.user_id,
        "product_id": item.product_id,
        "quantity": item.quantity,
        "name": product.name if product else None,
        "price": as_float(product.price) if product else None,
        "team": product.team if product else None,
        "year": product.year if product else None,
        "inventory": product.inventory if product else 0,
        "image_url": images[0].image_url if images else None,
    }


def get_cart(db: Session, user_id: int) -> Dict[str, Any]:
    items = [item_to_dict(i) for i in repository.list_items(db, user_id)]
    return {"items": items, "count": sum(i["quantity"] for i in items)}


def cart_lines(db: Session, user_id: int) -> List[Dict[str, int]]:
    """Lignes {productId, quantity} prêtes pour la création de commande."""
    return [
        {"productId": i.product_id, "quantity": i.quantity}
        for i in repository.list_items(db, user_id)
    ]


def add_to_cart(db: Session, user_id: int, product_id: int, quantity: int = 1) -> Dict[str, Any]:
    product = catalog_repository.get_product(db, product_id)
    if not product:
        raise ProductNotFound(product_id)
    existing = repository.get_item(db, user_id, product_id)
    wanted = quantity + (existing.quantity if existing else 0)
    if wanted > product.inventory:
        raise InsufficientInventory(product.name)
    with transaction(db):
        item = repository.add_item(db, user_id, product_id, quantity)
    db.refresh(item)
    return item_to_dict(item)


def update_quantity(db: Session, user_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
    product = catalog_repository.get_product(db, product_id)
    if not product:
        raise ProductNotFound(product_id)
    item = repository.get_item(db, user_id, product_id)
    if not item:
        raise NotFound("Article absent du panier")
    if quantity > product.inventory:
        raise InsufficientInventory(product.name)
    with transaction(db):
        repository.set_quantity(db, item, quantity)
    db.refresh(item)
    return item_to_dict(item)


def remove_from_cart(db: Session, user_id: int, product_id: int) -> None:
    with transaction(db):
        removed = repository.remove_item(db, user_id, product_id)
    if not removed:
        raise NotFound("Article absent du panier")


def clear_cart(db: Session, user_id: int) -> int:
    with transaction(db):
        removed = repository.clear(db, user_id)
    logger.info("cart.clear user_id=%s removed=%s", user_id, removed)
    return removed
