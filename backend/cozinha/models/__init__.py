"""SQLAlchemy models."""

from cozinha.models.account import Account, SubscriptionStatus
from cozinha.models.ingredient import Ingredient
from cozinha.models.product import Product, ProductIngredient
from cozinha.models.customer import Customer
from cozinha.models.order import (
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusLog,
    DeliveryMethod,
    PaymentMethod,
    OPEN_STATUSES,
    TERMINAL_STATUSES,
)
from cozinha.models.stock import StockMovement, MovementType
from cozinha.models.crm import MessageTemplate, InteractionLog, MessageChannel

__all__ = [
    "Account",
    "SubscriptionStatus",
    "Ingredient",
    "Product",
    "ProductIngredient",
    "Customer",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusLog",
    "DeliveryMethod",
    "PaymentMethod",
    "OPEN_STATUSES",
    "TERMINAL_STATUSES",
    "StockMovement",
    "MovementType",
    "MessageTemplate",
    "InteractionLog",
    "MessageChannel",
]
