"""
Registre central des routers.
- Web: page de succès du checkout
- API v1: produits, paiements, commandes, notifications
- Health
"""
from fastapi import FastAPI
from storefront.catalog import views as catalog_views
from storefront.payments import views as payments_views
from storefront.orders import views as orders_views
from storefront.notifications import views as notifications_views
from storefront.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # Pages web (HTML)
    app.include_router(payments_views.web_router)
    # API v1
    app.include_router(catalog_views.router)
    app.include_router(payments_views.router)
    app.include_router(orders_views.router)
    app.include_router(notifications_views.router)
    # Health & monitoring
    app.include_router(health_router)
