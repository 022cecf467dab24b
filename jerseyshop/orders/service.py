"""
Cas d'usage 'orders': création atomique, consultation et administration du statut.

Création d'une commande:
1) Agréger et valider les lignes (productId, quantity >= 1)
2) Charger chaque produit (404 sinon) et comparer au stock courant (409 sinon)
3) Total = somme(prix unitaire lu en 2 x quantité), figé ensuite
4) Une seule transaction: commande 'pending', lignes avec snapshot, décrément conditionnel
   du stock; un décrément sans effet (stock consommé entre-temps) annule tout
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
import logging

from sqlalchemy.orm import Session

from jerseyshop.cart import service as cart_service
from jerseyshop.catalog import repository as catalog_repository
from jerseyshop.catalog.models import Product, product_to_dict
from jerseyshop.catalog.service import paginate
from jerseyshop.errors import (
    Forbidden,
    InsufficientInventory,
    OrderNotFound,
    ProductNotFound,
    ValidationFailed,
)
from jerseyshop.infra.database import transaction
from jerseyshop.orders import repository
from jerseyshop.orders.models import Order, OrderStatus, check_transition, order_to_dict
from jerseyshop.payments import repository as payments_repository
from jerseyshop.payments.details import dump_details, empty_details
from jerseyshop.payments.models import PaymentMethod
from jerseyshop.utils.formatting import to_decimal
from jerseyshop.utils.security import is_admin

logger = logging.getLogger(__name__)


def aggregate_lines(lines: Iterable[Dict[str, Any]]) -> Dict[int, int]:
    """
    Regroupe les lignes par produit: [{productId, quantity}] -> {product_id: quantité totale}.
    Lève ValidationFailed pour un id ou une quantité invalide, ou une liste vide.
    """
    quantities: Dict[int, int] = {}
    for entry in lines or []:
        raw_id = entry.get("productId", entry.get("product_id"))
        raw_qty = entry.get("quantity")
        try:
            product_id = int(raw_id)
            qty = int(raw_qty)
        except (TypeError, ValueError):
            raise ValidationFailed("Ligne de commande invalide", details={"line": entry})
        if isinstance(raw_qty, bool) or qty < 1:
            raise ValidationFailed("La quantité doit être un entier >= 1", details={"line": entry})
        quantities[product_id] = quantities.get(product_id, 0) + qty
    if not quantities:
        raise ValidationFailed("Panier vide")
    return quantities


def _ensure_in_stock(product: Product, quantity: int) -> None:
    if product.inventory < quantity:
        raise InsufficientInventory(product.name)


def create_order(
    db: Session,
    user_id: int,
    lines: Iterable[Dict[str, Any]],
    shipping_address: Dict[str, Any],
) -> Order:
    quantities = aggregate_lines(lines)
    products = catalog_repository.get_products_by_ids(db, list(quantities))

    total = Decimal("0.00")
    prepared = []
    for product_id, qty in quantities.items():
        product = products.get(product_id)
        if not product:
            raise ProductNotFound(product_id)
        _ensure_in_stock(product, qty)
        price = to_decimal(product.price)
        total += price * qty
        prepared.append((product, qty, price, product_to_dict(product)))

    with transaction(db):
        order = repository.insert_order(db, user_id, total, shipping_address)
        for product, qty, price, snapshot in prepared:
            repository.insert_order_item(
                db, order, product_id=product.id, quantity=qty, price=price, snapshot=snapshot
            )
            if repository.decrement_inventory(db, product.id, qty) != 1:
                if not repository.product_still_exists(db, product.id):
                    logger.warning("orders.create_order produit supprimé avant réservation product_id=%s", product.id)
                    raise ProductNotFound(product.id)
                logger.warning(
                    "orders.create_order stock consommé entre lecture et réservation product_id=%s qty=%s",
                    product.id, qty,
                )
                raise InsufficientInventory(product.name)

    logger.info("orders.create_order id=%s user_id=%s total=%s lines=%s", order.id, user_id, total, len(prepared))
    return repository.get_order(db, order.id)


def place_order_from_cart(
    db: Session,
    user: Dict[str, Any],
    shipping_address: Dict[str, Any],
    payment_method: PaymentMethod,
) -> Dict[str, Any]:
    """
    POST /api/orders: commande depuis le panier, paiement 'pending' sans transaction_id
    pour la méthode choisie, puis vidage du panier.
    """
    lines = cart_service.cart_lines(db, user["id"])
    order = create_order(db, user["id"], lines, shipping_address)
    with transaction(db):
        payments_repository.insert_payment(
            db,
            order_id=order.id,
            method=payment_method,
            amount=order.total_price,
            details=dump_details(empty_details(payment_method.value)),
        )
    cart_service.clear_cart(db, user["id"])
    db.expire(order)
    return order_to_dict(repository.get_order(db, order.id), with_payments=True)


def get_order_for_user(db: Session, order_id: int, user: Dict[str, Any]) -> Order:
    """Propriétaire ou admin; 404 si inconnue, 403 sinon (aucune donnée renvoyée)."""
    order = repository.get_order(db, order_id)
    if not order:
        raise OrderNotFound()
    if order.user_id != user["id"] and not is_admin(user):
        raise Forbidden()
    return order


def list_orders_for(db: Session, user: Dict[str, Any], page: int = 1, limit: int = 50) -> Dict[str, Any]:
    user_id = None if is_admin(user) else user["id"]
    orders, total = repository.list_orders(db, user_id=user_id, limit=limit, offset=(page - 1) * limit)
    return paginate([order_to_dict(o) for o in orders], total, page, limit)


def update_status(
    db: Session,
    order_id: int,
    status: OrderStatus,
    tracking_number: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """Administration: la transition doit figurer dans ALLOWED_TRANSITIONS (même statut accepté)."""
    order = repository.get_order(db, order_id)
    if not order:
        raise OrderNotFound()
    previous = OrderStatus(order.status)
    check_transition(previous, status)
    with transaction(db):
        repository.update_fields(db, order, status=status, tracking_number=tracking_number, notes=notes)
    logger.info("orders.update_status id=%s %s -> %s", order_id, previous.value, OrderStatus(status).value)
    return order_to_dict(repository.get_order(db, order_id), with_payments=True)


def mark_processing(db: Session, order_id: int) -> bool:
    """
    Passage 'pending' -> 'processing' après un paiement confirmé.
    Sans effet si la commande est déjà au-delà ('processing', 'shipped', ...); retourne True si modifiée.
    Aucune transaction ici: l'appelant commit.
    """
    order = repository.get_order(db, order_id)
    if not order:
        logger.warning("orders.mark_processing commande absente id=%s", order_id)
        return False
    current = OrderStatus(order.status)
    if current != OrderStatus.PENDING:
        if current == OrderStatus.CANCELLED:
            logger.warning("orders.mark_processing paiement confirmé sur commande annulée id=%s", order_id)
        return False
    repository.set_status(db, order, OrderStatus.PROCESSING)
    return True
