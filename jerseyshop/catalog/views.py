# module jerseyshop.catalog.views

"""Endpoints du catalogue.
- Lecture publique: liste paginée filtrable, produits mis en avant, fiche produit.
- Écriture admin: création, mise à jour partielle (dont inventaire), suppression.
"""
from decimal import Decimal
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from jerseyshop.catalog import service as catalog_service
from jerseyshop.catalog.models import Condition, Size, product_to_dict
from jerseyshop.errors import StoreError
from jerseyshop.infra.database import get_db
from jerseyshop.utils.security import require_admin

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/products", tags=["Catalog API"])


class ProductImageIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(alias="imageUrl", min_length=1)
    alt_text: Optional[str] = Field(default=None, alias="altText")
    display_order: Optional[int] = Field(default=None, alias="displayOrder", ge=0)


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    team: str = Field(min_length=1, max_length=255)
    year: str = Field(min_length=1, max_length=20)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    condition: Condition
    size: Size
    description: str = ""
    sku: str = Field(min_length=1, max_length=100)
    inventory: int = Field(default=1, ge=0)
    featured: bool = False
    images: List[ProductImageIn] = Field(default_factory=list)

    @field_validator("sku")
    def strip_sku(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("SKU vide")
        return v


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    team: Optional[str] = Field(default=None, min_length=1, max_length=255)
    year: Optional[str] = Field(default=None, min_length=1, max_length=20)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    condition: Optional[Condition] = None
    size: Optional[Size] = None
    description: Optional[str] = None
    sku: Optional[str] = Field(default=None, min_length=1, max_length=100)
    inventory: Optional[int] = Field(default=None, ge=0)
    featured: Optional[bool] = None


@router.get("")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    team: Optional[str] = None,
    year: Optional[str] = None,
    condition: Optional[Condition] = None,
    size: Optional[Size] = None,
    min_price: Optional[Decimal] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice", ge=0),
    featured: Optional[bool] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Liste paginée: {data, total, page, perPage, totalPages}."""
    try:
        return catalog_service.search_products(
            db,
            page=page,
            limit=limit,
            team=team,
            year=year,
            condition=condition,
            size=size,
            min_price=min_price,
            max_price=max_price,
            featured=featured,
            search=search,
        )
    except Exception:
        logger.exception("Erreur list_products")
        raise HTTPException(status_code=500, detail="Impossible de charger les produits")


@router.get("/featured")
def featured_products(limit: int = Query(8, ge=1, le=50), db: Session = Depends(get_db)):
    try:
        return {"data": catalog_service.featured_products(db, limit=limit)}
    except Exception:
        logger.exception("Erreur featured_products")
        raise HTTPException(status_code=500, detail="Impossible de charger les produits")


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    try:
        return product_to_dict(catalog_service.get_product_or_404(db, product_id))
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur get_product")
        raise HTTPException(status_code=500, detail="Impossible de charger le produit")


@router.post("", status_code=201)
def create_product(payload: ProductCreate, user: dict = Depends(require_admin), db: Session = Depends(get_db)):
    """Création admin; SKU déjà utilisé -> 409."""
    try:
        data = payload.model_dump(exclude={"images"})
        images = [img.model_dump() for img in payload.images]
        return catalog_service.create_product(db, data, images)
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur create_product")
        raise HTTPException(status_code=500, detail="Impossible de créer le produit")


@router.put("/{product_id}")
def update_product(
    product_id: int,
    payload: ProductUpdate,
    user: dict = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        return catalog_service.update_product(db, product_id, changes)
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur update_product")
        raise HTTPException(status_code=500, detail="Impossible de mettre à jour le produit")


@router.delete("/{product_id}")
def delete_product(product_id: int, user: dict = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        catalog_service.delete_product(db, product_id)
        return {"success": True}
    except (HTTPException, StoreError):
        raise
    except Exception:
        logger.exception("Erreur delete_product")
        raise HTTPException(status_code=500, detail="Impossible de supprimer le produit")
