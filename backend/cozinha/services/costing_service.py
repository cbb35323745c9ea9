"""Costing service: roll ingredient costs up into product and order costs.

A product's cost is the sum of ``quantity x cost_per_unit`` over its bill of
materials. Lines whose ingredient was deleted cannot be priced; they are
skipped and counted in ``unresolved_ingredients`` instead of failing the
whole calculation.

Margin is reported as a percentage rounded half-up to two decimals. It is
undefined (``None``) for a product sold at zero price, and may be negative
when the recipe costs more than the selling price.
"""

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from cozinha.core.exceptions import NotFoundError
from cozinha.models.order import Order
from cozinha.models.product import Product, ProductIngredient

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


@dataclass
class CostLine:
    ingredient_id: int
    ingredient_name: str
    unit: str
    quantity: Decimal
    cost_per_unit: Decimal
    line_cost: Decimal


@dataclass
class ProductCost:
    product_id: int
    name: str
    selling_price: Decimal
    total_cost: Decimal
    profit: Decimal
    margin_percent: Optional[Decimal]
    unresolved_ingredients: int = 0
    lines: List[CostLine] = field(default_factory=list)


def margin_percent(selling_price: Decimal, total_cost: Decimal) -> Optional[Decimal]:
    """Margin over the selling price as a percentage, or None at zero price."""
    selling_price = Decimal(selling_price)
    if selling_price == 0:
        return None
    margin = (selling_price - Decimal(total_cost)) / selling_price * HUNDRED
    return margin.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_product_cost(product: Product) -> ProductCost:
    """Roll up the unit cost of a product from its bill of materials."""
    total = ZERO
    unresolved = 0
    lines: List[CostLine] = []

    for bom_line in product.product_ingredients:
        ingredient = bom_line.ingredient
        if ingredient is None:
            unresolved += 1
            continue

        line_cost = Decimal(bom_line.quantity) * Decimal(ingredient.cost_per_unit)
        total += line_cost
        lines.append(
            CostLine(
                ingredient_id=ingredient.id,
                ingredient_name=ingredient.name,
                unit=ingredient.unit,
                quantity=Decimal(bom_line.quantity),
                cost_per_unit=Decimal(ingredient.cost_per_unit),
                line_cost=line_cost,
            )
        )

    if unresolved:
        logger.warning(
            f"Product {product.id} ({product.name}) has {unresolved} "
            f"unresolvable ingredient(s); skipped from cost"
        )

    selling_price = Decimal(product.selling_price)
    return ProductCost(
        product_id=product.id,
        name=product.name,
        selling_price=selling_price,
        total_cost=total,
        profit=selling_price - total,
        margin_percent=margin_percent(selling_price, total),
        unresolved_ingredients=unresolved,
        lines=lines,
    )


def calculate_order_cost(order: Order) -> Decimal:
    """Total cost of an order.

    Uses the unit cost snapshot of each item; items created before a snapshot
    existed fall back to the current product cost, and items whose product is
    gone contribute nothing.
    """
    total = ZERO
    for item in order.items:
        if item.unit_cost is not None:
            unit_cost = Decimal(item.unit_cost)
        elif item.product is not None:
            unit_cost = calculate_product_cost(item.product).total_cost
        else:
            continue
        total += unit_cost * Decimal(item.quantity)
    return total


class CostingService:
    """Loads products for an account and prices them."""

    def __init__(self, db: Session):
        self.db = db

    def _products_query(self, account_id: int):
        return (
            self.db.query(Product)
            .options(
                selectinload(Product.product_ingredients).selectinload(
                    ProductIngredient.ingredient
                )
            )
            .filter(Product.owned_by(account_id))
        )

    def product_cost(self, account_id: int, product_id: int) -> ProductCost:
        product = self._products_query(account_id).filter(Product.id == product_id).first()
        if product is None:
            raise NotFoundError("Product", product_id)
        return calculate_product_cost(product)

    def all_product_costs(self, account_id: int, active_only: bool = False) -> List[ProductCost]:
        query = self._products_query(account_id)
        if active_only:
            query = query.filter(Product.active.is_(True))
        return [calculate_product_cost(p) for p in query.order_by(Product.name).all()]
