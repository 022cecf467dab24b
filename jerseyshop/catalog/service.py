"""
Cas d'usage 'catalog': recherche paginée, fiche produit et CRUD admin.
- Les SKU sont uniques: conflit détecté avant écriture et rattrapé sur IntegrityError (course entre deux admins)
- L'inventaire admin ne peut pas être négatif (validé en amont, contrainte CHECK en base)
"""
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jerseyshop.catalog import repository
from jerseyshop.catalog.models import Product, product_to_dict
from jerseyshop.errors import DuplicateSku, ProductNotFound
from jerseyshop.infra.database import transaction

logger = logging.getLogger(__name__)


def paginate(rows: List[Dict[str, Any]], total: int, page: int, limit: int) -> Dict[str, Any]:
    """Enveloppe de pagination commune (produits, commandes)."""
    return {
        "data": rows,
        "total": total,
        "page": page,
        "perPage": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def search_products(db: Session, *, page: int = 1, limit: int = 20, **filters: Any) -> Dict[str, Any]:
    products, total = repository.list_products(db, limit=limit, offset=(page - 1) * limit, **filters)
    return paginate([product_to_dict(p) for p in products], total, page, limit)


def featured_products(db: Session, limit: int = 8) -> List[Dict[str, Any]]:
    return [product_to_dict(p) for p in repository.list_featured(db, limit=limit)]


def get_product_or_404(db: Session, product_id: int) -> Product:
    product = repository.get_product(db, product_id)
    if not product:
        raise ProductNotFound(product_id)
    return product


def create_product(db: Session, data: Dict[str, Any], images: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    sku = data["sku"]
    if repository.sku_taken(db, sku):
        raise DuplicateSku(sku)
    try:
        with transaction(db):
            product = repository.insert_product(db, data, images or [])
    except IntegrityError:
        logger.warning("catalog.create_product sku conflict sku=%s", sku)
        raise DuplicateSku(sku)
    db.refresh(product)
    logger.info("catalog.create_product id=%s sku=%s", product.id, sku)
    return product_to_dict(product)


def update_product(db: Session, product_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Mise à jour partielle: seuls les champs fournis sont écrits."""
    product = get_product_or_404(db, product_id)
    sku = changes.get("sku")
    if sku and repository.sku_taken(db, sku, exclude_id=product_id):
        raise DuplicateSku(sku)
    try:
        with transaction(db):
            repository.update_product(db, product, changes)
    except IntegrityError:
        raise DuplicateSku(sku or product.sku)
    db.refresh(product)
    return product_to_dict(product)


def delete_product(db: Session, product_id: int) -> None:
    product = get_product_or_404(db, product_id)
    with transaction(db):
        repository.delete_product(db, product)
    logger.info("catalog.delete_product id=%s", product_id)
