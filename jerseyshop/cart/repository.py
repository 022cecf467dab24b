from typing import List, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, joinedload, selectinload

from jerseyshop.cart.models import CartItem
from jerseyshop.catalog.models import Product

logger = logging.getLogger(__name__)

# module jerseyshop.cart.repository


def list_items(db: Session, user_id: int) -> List[CartItem]:
    """Lignes du panier avec produit et images (plus anciennes d'abord)."""
    rows = db.scalars(
        select(CartItem)
        .options(joinedload(CartItem.product).selectinload(Product.images))
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.created_at.asc(), CartItem.id.asc())
    ).all()
    return list(rows)


def get_item(db: Session, user_id: int, product_id: int) -> Optional[CartItem]:
    return db.scalar(
        select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
    )


def add_item(db: Session, user_id: int, product_id: int, quantity: int) -> CartItem:
    """Upsert: une ligne existante voit sa quantité augmentée."""
    item = get_item(db, user_id, product_id)
    if item:
        item.quantity = item.quantity + quantity
    else:
        item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
        db.add(item)
    db.flush()
    return item


def set_quantity(db: Session, item: CartItem, quantity: int) -> CartItem:
    item.quantity = quantity
    db.flush()
    return item


def remove_item(db: Session, user_id: int, product_id: int) -> int:
    res = db.execute(
        delete(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
    )
    return res.rowcount or 0


def clear(db: Session, user_id: int) -> int:
    res = db.execute(delete(CartItem).where(CartItem.user_id == user_id))
    return res.rowcount or 0
