# Façade des modèles ORM: importer ce module enregistre toutes les tables sur Base.
from jerseyshop.users.models import User, AdminUser, Address
from jerseyshop.catalog.models import Product, ProductImage, Condition, Size
from jerseyshop.cart.models import CartItem
from jerseyshop.orders.models import Order, OrderItem, OrderStatus, ALLOWED_TRANSITIONS
from jerseyshop.payments.models import Payment, PaymentMethod, PaymentStatus, WebhookEvent

__all__ = [
    # Comptes
    "User",
    "AdminUser",
    "Address",
    # Catalogue
    "Product",
    "ProductImage",
    "Condition",
    "Size",
    # Panier
    "CartItem",
    # Commandes
    "Order",
    "OrderItem",
    "OrderStatus",
    "ALLOWED_TRANSITIONS",
    # Paiements
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "WebhookEvent",
]
