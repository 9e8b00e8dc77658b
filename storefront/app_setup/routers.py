"""
Registre central des routers (API v1 et health).
"""
from fastapi import FastAPI

from storefront.auth.views import api_router as auth_api_router
from storefront.categories.views import router as categories_router
from storefront.checkout.views import router as checkout_router
from storefront.health.router import router as health_router
from storefront.payments.views import router as payments_router
from storefront.state.views import router as state_router
from storefront.wishlist.views import router as wishlist_router


def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(auth_api_router)
    app.include_router(checkout_router)
    app.include_router(payments_router)
    app.include_router(state_router)
    app.include_router(wishlist_router)
    app.include_router(categories_router)
    # Health & monitoring
    app.include_router(health_router)
