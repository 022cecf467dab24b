# module jerseyshop.orders.models
"""Commandes et lignes de commande.
- Order.shipping_address est une copie (JSON) de l'adresse au moment de l'achat, pas une clé étrangère.
- OrderItem.product_snapshot fige le produit acheté: les modifications du catalogue ne le touchent pas.
- Le cycle de vie du statut suit ALLOWED_TRANSITIONS.
"""
import enum
from typing import Any, Dict, FrozenSet

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jerseyshop.errors import InvalidTransition
from jerseyshop.infra.database import Base
from jerseyshop.payments.models import payment_to_dict
from jerseyshop.utils.formatting import as_float, iso


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Rester dans le même statut est toujours permis (ajout d'un suivi ou d'une note)."""
    current, target = OrderStatus(current), OrderStatus(target)
    return current == target or target in ALLOWED_TRANSITIONS[current]


def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(OrderStatus(current).value, OrderStatus(target).value)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_orders_total_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    total_price = Column(Numeric(10, 2), nullable=False)
    status = Column(
        Enum(OrderStatus, name="order_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )
    shipping_address = Column(JSON, nullable=False)
    tracking_number = Column(String(255))
    notes = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    payments = relationship("Payment", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    product_snapshot = Column(JSON, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="items")


def order_item_to_dict(item: OrderItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "order_id": item.order_id,
        "product_id": item.product_id,
        "product_snapshot": item.product_snapshot,
        "quantity": item.quantity,
        "price": as_float(item.price),
    }


def order_to_dict(order: Order, with_items: bool = True, with_payments: bool = False) -> Dict[str, Any]:
    """Représentation JSON d'une commande (lignes incluses par défaut, historique des paiements sur demande)."""
    data: Dict[str, Any] = {
        "id": order.id,
        "user_id": order.user_id,
        "total_price": as_float(order.total_price),
        "status": OrderStatus(order.status).value,
        "shipping_address": order.shipping_address,
        "tracking_number": order.tracking_number,
        "notes": order.notes,
        "created_at": iso(order.created_at),
        "updated_at": iso(order.updated_at),
    }
    if with_items:
        data["items"] = [order_item_to_dict(i) for i in order.items]
    if with_payments:
        data["payments"] = [payment_to_dict(p) for p in order.payments]
    return data
