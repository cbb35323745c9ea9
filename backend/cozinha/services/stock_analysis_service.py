"""Stock-vs-demand analysis.

Demand is what the open orders (pending, preparing, ready) will consume once
produced: for every order item, the product's bill of materials multiplied by
the item quantity. Delivered orders already consumed their stock and
cancelled orders never will, so neither contributes.

Each ingredient is then classified by comparing its stock with that demand:

- ``unused``: no open order needs it
- ``sufficient``: stock covers the demand
- ``low``: the shortfall is below ``critical_shortfall_ratio`` of the demand
- ``critical``: the shortfall is at or above that share

Everything here works on already-loaded collections and never queries the
database, so the same functions serve the dashboard, the stock screen and
the order creation check.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from cozinha.core.config import settings
from cozinha.models.ingredient import Ingredient
from cozinha.models.order import OPEN_STATUSES, Order
from cozinha.models.product import Product

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

_OPEN_VALUES = frozenset(s.value for s in OPEN_STATUSES)


class StockStatus(str, Enum):
    CRITICAL = "critical"
    LOW = "low"
    SUFFICIENT = "sufficient"
    UNUSED = "unused"


_STATUS_ORDER = {
    StockStatus.CRITICAL: 0,
    StockStatus.LOW: 1,
    StockStatus.SUFFICIENT: 2,
    StockStatus.UNUSED: 3,
}


class StockDemandPolicy:
    """Thresholds for classifying an ingredient's stock against demand."""

    def __init__(self, critical_shortfall_ratio: Optional[Decimal] = None):
        if critical_shortfall_ratio is None:
            critical_shortfall_ratio = settings.stock_critical_shortfall_ratio
        self.critical_shortfall_ratio = Decimal(critical_shortfall_ratio)

    def classify(self, stock: Decimal, demand: Decimal) -> StockStatus:
        if demand <= 0:
            return StockStatus.UNUSED
        balance = stock - demand
        if balance >= 0:
            return StockStatus.SUFFICIENT
        # With stock at or below zero the shortfall is >= demand, so it is
        # always critical for any ratio in (0, 1].
        if -balance >= demand * self.critical_shortfall_ratio:
            return StockStatus.CRITICAL
        return StockStatus.LOW


@dataclass
class StockDemand:
    ingredient_id: int
    ingredient_name: str
    unit: str
    stock: Decimal
    demand: Decimal
    balance: Decimal
    status: StockStatus

    def as_dict(self) -> dict:
        return {
            "ingredient_id": self.ingredient_id,
            "ingredient_name": self.ingredient_name,
            "unit": self.unit,
            "stock": self.stock,
            "demand": self.demand,
            "balance": self.balance,
            "status": self.status.value,
        }


@dataclass
class MissingIngredient:
    ingredient_id: int
    name: str
    unit: str
    current: Decimal
    needed: Decimal
    missing: Decimal

    def as_dict(self) -> dict:
        return {
            "ingredient_id": self.ingredient_id,
            "name": self.name,
            "unit": self.unit,
            "current": self.current,
            "needed": self.needed,
            "missing": self.missing,
        }


def in_period(order: Order, start: Optional[date] = None, end: Optional[date] = None) -> bool:
    """True when the order's reference date falls in the inclusive window."""
    if start is None and end is None:
        return True
    ref = order.reference_date
    if ref is None:
        return False
    if start is not None and ref < start:
        return False
    if end is not None and ref > end:
        return False
    return True


def compute_demand(
    products: Iterable[Product],
    orders: Iterable[Order],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Dict[int, Decimal]:
    """Ingredient id -> quantity needed by the open orders in the window."""
    boms = {p.id: p.product_ingredients for p in products}
    demand: Dict[int, Decimal] = {}

    for order in orders:
        if order.status not in _OPEN_VALUES or not in_period(order, start, end):
            continue
        for item in order.items:
            bom = boms.get(item.product_id)
            if bom is None:
                logger.warning(
                    f"Order {order.id} item '{item.product_name}' has no resolvable product; "
                    f"skipped from demand"
                )
                continue
            for line in bom:
                if line.ingredient_id is None:
                    continue
                qty = Decimal(line.quantity) * Decimal(item.quantity)
                demand[line.ingredient_id] = demand.get(line.ingredient_id, ZERO) + qty

    return demand


def analyze_stock_demand(
    ingredients: Sequence[Ingredient],
    products: Iterable[Product],
    orders: Iterable[Order],
    start: Optional[date] = None,
    end: Optional[date] = None,
    policy: Optional[StockDemandPolicy] = None,
) -> List[StockDemand]:
    """Classify every ingredient's stock against the open-order demand.

    Sorted by urgency (critical first), then by ingredient name.
    """
    policy = policy or StockDemandPolicy()
    demand = compute_demand(products, orders, start, end)

    known = {i.id for i in ingredients}
    for ingredient_id in demand:
        if ingredient_id not in known:
            logger.warning(f"Demand for unknown ingredient {ingredient_id} skipped")

    results = []
    for ingredient in ingredients:
        stock = Decimal(ingredient.stock_quantity)
        needed = demand.get(ingredient.id, ZERO)
        results.append(
            StockDemand(
                ingredient_id=ingredient.id,
                ingredient_name=ingredient.name,
                unit=ingredient.unit,
                stock=stock,
                demand=needed,
                balance=stock - needed,
                status=policy.classify(stock, needed),
            )
        )

    results.sort(key=lambda r: (_STATUS_ORDER[r.status], r.ingredient_name.lower()))
    return results


def find_missing_stock(
    items: Iterable[Tuple[int, Decimal]],
    products: Iterable[Product],
) -> List[MissingIngredient]:
    """Ingredients whose stock does not cover a candidate list of items.

    ``items`` are ``(product_id, quantity)`` pairs. Products must be loaded
    with their bill of materials and ingredients.
    """
    products_by_id = {p.id: p for p in products}
    needed: "OrderedDict[int, Tuple[Ingredient, Decimal]]" = OrderedDict()

    for product_id, quantity in items:
        product = products_by_id.get(product_id)
        if product is None:
            continue
        for line in product.product_ingredients:
            ingredient = line.ingredient
            if ingredient is None:
                continue
            qty = Decimal(line.quantity) * Decimal(quantity)
            _, total = needed.get(ingredient.id, (ingredient, ZERO))
            needed[ingredient.id] = (ingredient, total + qty)

    missing = []
    for ingredient_id, (ingredient, total) in needed.items():
        current = Decimal(ingredient.stock_quantity)
        if total > current:
            missing.append(
                MissingIngredient(
                    ingredient_id=ingredient_id,
                    name=ingredient.name,
                    unit=ingredient.unit,
                    current=current,
                    needed=total,
                    missing=total - current,
                )
            )
    return missing
