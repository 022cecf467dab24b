# module jerseyshop.catalog.models
"""Catalogue: maillots et leurs images.
L'inventaire n'est modifié que par la création de commande (décrément conditionnel)
et par la mise à jour admin; la contrainte CHECK interdit toute valeur négative.
"""
import enum
from typing import Any, Dict

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jerseyshop.infra.database import Base
from jerseyshop.utils.formatting import as_float, iso


class Condition(str, enum.Enum):
    MINT = "Mint"
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"


class Size(str, enum.Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("inventory >= 0", name="ck_products_inventory_non_negative"),
        Index("ix_products_team_year", "team", "year"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    team = Column(String(255), nullable=False, index=True)
    year = Column(String(20), nullable=False)
    # Prix en unités (2 décimales); conversion en centimes au moment d'appeler les prestataires
    price = Column(Numeric(10, 2), nullable=False)
    condition = Column(Enum(Condition, name="product_condition", values_callable=lambda e: [m.value for m in e]), nullable=False)
    size = Column(Enum(Size, name="product_size", values_callable=lambda e: [m.value for m in e]), nullable=False)
    description = Column(Text, nullable=False, default="")
    sku = Column(String(100), nullable=False, unique=True)
    inventory = Column(Integer, nullable=False, default=1)
    featured = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    images = relationship(
        "ProductImage",
        back_populates="product",
        order_by="ProductImage.display_order",
        cascade="all, delete-orphan",
    )


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(512), nullable=False)
    alt_text = Column(String(255))
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product", back_populates="images")


def image_to_dict(image: ProductImage) -> Dict[str, Any]:
    return {
        "id": image.id,
        "product_id": image.product_id,
        "image_url": image.image_url,
        "alt_text": image.alt_text,
        "display_order": image.display_order,
    }


def product_to_dict(product: Product, with_images: bool = True) -> Dict[str, Any]:
    """
    Représentation JSON d'un produit.
    Sert aussi de product_snapshot: uniquement des types JSON (prix en float, dates ISO).
    """
    data: Dict[str, Any] = {
        "id": product.id,
        "name": product.name,
        "team": product.team,
        "year": product.year,
        "price": as_float(product.price),
        "condition": Condition(product.condition).value,
        "size": Size(product.size).value,
        "description": product.description,
        "sku": product.sku,
        "inventory": product.inventory,
        "featured": bool(product.featured),
        "created_at": iso(product.created_at),
        "updated_at": iso(product.updated_at),
    }
    if with_images:
        data["images"] = [image_to_dict(i) for i in product.images]
    return data
