"""Negative-stock reconciliation.

Stock goes negative when orders are delivered without the matching purchases
having been recorded. For an open order, the operator can review which of its
ingredients are below zero and confirm a regularization, which records one
``in`` movement per ingredient bringing the balance back to exactly zero.

Deficits are always recomputed from the current stock, so running the
reconciliation twice is harmless: the second run finds nothing to do. Each
movement is committed on its own; a failure on one ingredient is reported and
does not stop the others.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from cozinha.core.exceptions import NotFoundError, StockWriteError
from cozinha.models.order import OPEN_STATUSES, Order
from cozinha.models.product import Product
from cozinha.models.stock import MovementType, StockMovement
from cozinha.services.stock_service import StockService

logger = logging.getLogger(__name__)

_OPEN_VALUES = frozenset(s.value for s in OPEN_STATUSES)


@dataclass
class StockDeficit:
    ingredient_id: int
    ingredient_name: str
    unit: str
    stock_quantity: Decimal
    deficit: Decimal


@dataclass
class ReconciliationResult:
    order_id: int
    applied: List[StockMovement] = field(default_factory=list)
    failed: List[Dict[str, object]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


def regularization_reason(order: Order) -> str:
    return f"Automatic regularization (order #{order.display_id})"


def order_deficits(order: Order, products_by_id: Dict[int, Product]) -> List[StockDeficit]:
    """Distinct ingredients used by an open order whose stock is below zero."""
    if order.status not in _OPEN_VALUES:
        return []

    seen = set()
    deficits = []
    for item in order.items:
        product = products_by_id.get(item.product_id)
        if product is None:
            continue
        for line in product.product_ingredients:
            ingredient = line.ingredient
            if ingredient is None or ingredient.id in seen:
                continue
            seen.add(ingredient.id)
            stock = Decimal(ingredient.stock_quantity)
            if stock < 0:
                deficits.append(
                    StockDeficit(
                        ingredient_id=ingredient.id,
                        ingredient_name=ingredient.name,
                        unit=ingredient.unit,
                        stock_quantity=stock,
                        deficit=abs(stock),
                    )
                )
    return deficits


class StockReconciliationService:
    """Finds and regularizes negative stock behind open orders."""

    def __init__(self, db: Session, stock_service: Optional[StockService] = None):
        self.db = db
        self.stock_service = stock_service or StockService(db)

    def get_order(self, account_id: int, order_id: int) -> Order:
        order = (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id, Order.owned_by(account_id))
            .first()
        )
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def _products_for(self, account_id: int, orders: List[Order]) -> Dict[int, Product]:
        product_ids = {
            item.product_id
            for order in orders
            for item in order.items
            if item.product_id is not None
        }
        if not product_ids:
            return {}
        return {p.id: p for p in self.stock_service.load_products(account_id, product_ids)}

    def preview(self, account_id: int, order: Order) -> List[StockDeficit]:
        """Deficits an apply would regularize right now."""
        return order_deficits(order, self._products_for(account_id, [order]))

    def reconcile(self, account_id: int, order: Order) -> ReconciliationResult:
        """Record one ``in`` movement per negative ingredient of the order."""
        result = ReconciliationResult(order_id=order.id)
        deficits = self.preview(account_id, order)
        if not deficits:
            logger.info(f"Order {order.id}: no negative stock to regularize")
            return result

        reason = regularization_reason(order)
        for deficit in deficits:
            try:
                movement = self.stock_service.record_movement(
                    account_id,
                    deficit.ingredient_id,
                    MovementType.IN,
                    deficit.deficit,
                    reason=reason,
                    order_id=order.id,
                )
            except StockWriteError as e:
                result.failed.append({"ingredient_id": deficit.ingredient_id, "error": e.reason})
                continue
            except NotFoundError as e:
                result.failed.append({"ingredient_id": deficit.ingredient_id, "error": e.message})
                continue
            result.applied.append(movement)

        if result.success:
            logger.info(
                f"Order {order.id}: regularized {len(result.applied)} ingredient(s)"
            )
        else:
            logger.error(
                f"Order {order.id}: regularization incomplete, "
                f"{len(result.failed)} of {len(deficits)} movement(s) failed"
            )
        return result

    def orders_with_negative_stock(self, account_id: int) -> List[Tuple[Order, List[StockDeficit]]]:
        """Open orders that currently touch at least one negative ingredient."""
        orders = (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.owned_by(account_id), Order.status.in_(_OPEN_VALUES))
            .order_by(Order.display_id)
            .all()
        )
        products = self._products_for(account_id, orders)

        alerts = []
        for order in orders:
            deficits = order_deficits(order, products)
            if deficits:
                alerts.append((order, deficits))
        return alerts
