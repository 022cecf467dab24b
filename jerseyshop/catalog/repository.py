from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from jerseyshop.catalog.models import Product, ProductImage

logger = logging.getLogger(__name__)

# module jerseyshop.catalog.repository


def _filtered(
    *,
    team: Optional[str] = None,
    year: Optional[str] = None,
    condition: Optional[str] = None,
    size: Optional[str] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    featured: Optional[bool] = None,
    search: Optional[str] = None,
):
    stmt = select(Product)
    if team:
        stmt = stmt.where(func.lower(Product.team).contains(team.lower()))
    if year:
        stmt = stmt.where(Product.year == year)
    if condition:
        stmt = stmt.where(Product.condition == condition)
    if size:
        stmt = stmt.where(Product.size == size)
    if min_price is not None:
        stmt = stmt.where(Product.price >= min_price)
    if max_price is not None:
        stmt = stmt.where(Product.price <= max_price)
    if featured is not None:
        stmt = stmt.where(Product.featured == featured)
    if search:
        term = search.lower()
        stmt = stmt.where(or_(func.lower(Product.name).contains(term), func.lower(Product.team).contains(term)))
    return stmt


def list_products(db: Session, *, limit: int = 20, offset: int = 0, **filters: Any) -> Tuple[List[Product], int]:
    """
    Liste paginée du catalogue, plus récents d'abord.
    Retour: (produits de la page, total correspondant aux filtres)
    """
    stmt = _filtered(**filters)
    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = db.scalars(
        stmt.options(selectinload(Product.images))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()
    return list(rows), int(total)


def list_featured(db: Session, limit: int = 8) -> List[Product]:
    rows = db.scalars(
        select(Product)
        .options(selectinload(Product.images))
        .where(Product.featured.is_(True))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
    ).all()
    return list(rows)


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return db.get(Product, product_id)


def get_products_by_ids(db: Session, ids: Sequence[int]) -> Dict[int, Product]:
    """Charge plusieurs produits en une requête, indexés par id."""
    if not ids:
        return {}
    rows = db.scalars(select(Product).where(Product.id.in_(list(ids)))).all()
    return {p.id: p for p in rows}


def sku_taken(db: Session, sku: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Product.id).where(Product.sku == sku)
    if exclude_id is not None:
        stmt = stmt.where(Product.id != exclude_id)
    return db.scalar(stmt.limit(1)) is not None


def insert_product(db: Session, data: Dict[str, Any], images: Sequence[Dict[str, Any]] = ()) -> Product:
    product = Product(**data)
    for i, img in enumerate(images):
        product.images.append(
            ProductImage(
                image_url=img["image_url"],
                alt_text=img.get("alt_text"),
                display_order=img.get("display_order", i),
            )
        )
    db.add(product)
    db.flush()
    return product


def update_product(db: Session, product: Product, changes: Dict[str, Any]) -> Product:
    for key, value in changes.items():
        setattr(product, key, value)
    db.flush()
    return product


def delete_product(db: Session, product: Product) -> None:
    db.delete(product)
    db.flush()
