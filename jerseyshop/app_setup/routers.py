"""
Registre central des routers.
- API: catalog, cart, orders, payment
- Admin: paiements (remboursement, réconciliation)
- Health: health_router
"""
from fastapi import FastAPI
from jerseyshop.catalog import views as catalog_views
from jerseyshop.cart import views as cart_views
from jerseyshop.orders import views as orders_views
from jerseyshop.payments import views as payments_views
from jerseyshop.admin.views import router as admin_router
from jerseyshop.health.router import router as health_router


def register_routers(app: FastAPI) -> None:
    # API
    app.include_router(catalog_views.router)
    app.include_router(cart_views.router)
    app.include_router(orders_views.router)
    app.include_router(payments_views.router)
    # Admin
    app.include_router(admin_router)
    # Health & monitoring
    app.include_router(health_router)
