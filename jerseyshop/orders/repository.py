from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from jerseyshop.catalog.models import Product
from jerseyshop.orders.models import Order, OrderItem, OrderStatus

logger = logging.getLogger(__name__)

# module jerseyshop.orders.repository


def get_order(db: Session, order_id: int) -> Optional[Order]:
    """Commande avec ses lignes et son historique de paiements."""
    return db.scalar(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.payments))
        .where(Order.id == order_id)
    )


def list_orders(db: Session, *, user_id: Optional[int] = None, limit: int = 50, offset: int = 0) -> Tuple[List[Order], int]:
    """
    Commandes les plus récentes d'abord.
    - user_id=None: toutes les commandes (admin)
    """
    stmt = select(Order)
    count_stmt = select(func.count(Order.id))
    if user_id is not None:
        stmt = stmt.where(Order.user_id == user_id)
        count_stmt = count_stmt.where(Order.user_id == user_id)
    total = db.scalar(count_stmt) or 0
    rows = db.scalars(
        stmt.options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()
    return list(rows), int(total)


def insert_order(db: Session, user_id: int, total_price: Decimal, shipping_address: Dict[str, Any]) -> Order:
    order = Order(
        user_id=user_id,
        total_price=total_price,
        status=OrderStatus.PENDING,
        shipping_address=shipping_address,
    )
    db.add(order)
    db.flush()
    return order


def insert_order_item(
    db: Session,
    order: Order,
    *,
    product_id: int,
    quantity: int,
    price: Decimal,
    snapshot: Dict[str, Any],
) -> OrderItem:
    item = OrderItem(
        order_id=order.id,
        product_id=product_id,
        quantity=quantity,
        price=price,
        product_snapshot=snapshot,
    )
    db.add(item)
    db.flush()
    return item


def decrement_inventory(db: Session, product_id: int, quantity: int) -> int:
    """
    Décrément conditionnel: n'agit que si le stock courant couvre la quantité.
    Retourne le nombre de lignes modifiées (1 si réservé, 0 si le stock a été consommé entre-temps).
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.inventory >= quantity)
        .values(inventory=Product.inventory - quantity)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    return res.rowcount or 0


def product_still_exists(db: Session, product_id: int) -> bool:
    # Requête SQL directe: l'identity map garderait un produit supprimé entre-temps
    return db.scalar(select(Product.id).where(Product.id == product_id)) is not None


def set_status(db: Session, order: Order, status: OrderStatus) -> Order:
    order.status = status
    db.flush()
    return order


def update_fields(
    db: Session,
    order: Order,
    *,
    status: OrderStatus,
    tracking_number: Optional[str] = None,
    notes: Optional[str] = None,
) -> Order:
    order.status = status
    if tracking_number is not None:
        order.tracking_number = tracking_number
    if notes is not None:
        order.notes = notes
    db.flush()
    return order
