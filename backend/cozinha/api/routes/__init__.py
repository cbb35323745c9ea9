"""API routes."""

from fastapi import APIRouter

from cozinha.api.routes import (
    auth,
    crm,
    customers,
    dashboard,
    ingredients,
    orders,
    products,
    stock,
    subscription,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(ingredients.router, prefix="/ingredients", tags=["ingredients"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(customers.router, prefix="/customers", tags=["customers"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(stock.router, prefix="/stock", tags=["stock"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(subscription.router, prefix="/subscription", tags=["subscription"])
api_router.include_router(crm.router, prefix="/crm", tags=["crm"])
