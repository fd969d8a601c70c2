"""
Registre central des routers (shipping, cart, payment, orders, admin, health).
"""
from fastapi import FastAPI
from storefront.shipping import views as shipping_views
from storefront.carts import views as carts_views
from storefront.payments import views as payments_views
from storefront.orders import views as orders_views
from storefront.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    app.include_router(shipping_views.router)
    app.include_router(carts_views.router)
    app.include_router(payments_views.router)
    app.include_router(orders_views.router)
    # Admin
    app.include_router(orders_views.admin_router)
    # Health & monitoring
    app.include_router(health_router)
