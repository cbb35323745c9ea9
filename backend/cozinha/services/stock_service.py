"""Stock ledger service.

Every change to an ingredient's ``stock_quantity`` goes through
``StockService.record_movement``, which appends a ``StockMovement`` with the
signed delta it applied. Summing ``qty_delta`` over an ingredient's movements
therefore always yields its current stock.

Movement semantics:
- ``in``: adds the quantity
- ``out`` / ``loss`` / ``sale``: subtract the quantity, stock may go negative
- ``adjustment``: sets the absolute level; the delta is new level - old level
"""

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from cozinha.core.exceptions import InvalidReferenceError, NotFoundError, StockWriteError
from cozinha.models.ingredient import Ingredient
from cozinha.models.order import Order
from cozinha.models.product import Product, ProductIngredient
from cozinha.models.stock import OUTBOUND_TYPES, MovementType, StockMovement
from cozinha.services.stock_analysis_service import MissingIngredient, find_missing_stock

logger = logging.getLogger(__name__)


def movement_delta(movement_type: MovementType, quantity: Decimal, current: Decimal) -> Decimal:
    """Signed change a movement applies to a stock level."""
    quantity = Decimal(quantity)
    if movement_type == MovementType.IN:
        return quantity
    if movement_type in OUTBOUND_TYPES:
        return -quantity
    if movement_type == MovementType.ADJUSTMENT:
        return quantity - Decimal(current)
    raise ValueError(f"Unknown movement type: {movement_type}")


class StockService:
    """Records stock movements and answers stock availability questions."""

    def __init__(self, db: Session):
        self.db = db

    def _get_ingredient(self, account_id: int, ingredient_id: int) -> Ingredient:
        ingredient = (
            self.db.query(Ingredient)
            .filter(Ingredient.id == ingredient_id, Ingredient.owned_by(account_id))
            .first()
        )
        if ingredient is None:
            raise NotFoundError("Ingredient", ingredient_id)
        return ingredient

    def record_movement(
        self,
        account_id: int,
        ingredient_id: int,
        movement_type: MovementType,
        quantity: Decimal,
        reason: Optional[str] = None,
        order_id: Optional[int] = None,
        commit: bool = True,
    ) -> StockMovement:
        """Append a movement and apply it to the ingredient's stock.

        With ``commit=False`` the change is only flushed so the caller can
        commit it together with other writes.

        Raises:
            NotFoundError: the ingredient does not belong to the account.
            InvalidReferenceError: ``order_id`` does not belong to the account.
            StockWriteError: the database rejected the write.
        """
        movement_type = MovementType(movement_type)
        quantity = Decimal(quantity)
        if quantity < 0:
            raise ValueError("Movement quantity must not be negative")

        ingredient = self._get_ingredient(account_id, ingredient_id)

        if order_id is not None:
            owned = (
                self.db.query(Order.id)
                .filter(Order.id == order_id, Order.owned_by(account_id))
                .first()
            )
            if owned is None:
                raise InvalidReferenceError(f"Order {order_id} not found")

        current = Decimal(ingredient.stock_quantity)
        delta = movement_delta(movement_type, quantity, current)

        movement = StockMovement(
            account_id=account_id,
            ingredient_id=ingredient.id,
            type=movement_type.value,
            quantity=quantity,
            qty_delta=delta,
            reason=reason,
            order_id=order_id,
        )
        ingredient.stock_quantity = current + delta
        self.db.add(movement)

        try:
            if commit:
                self.db.commit()
                self.db.refresh(movement)
            else:
                self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Stock movement failed for ingredient {ingredient_id} "
                f"({movement_type.value} {quantity}): {e}"
            )
            raise StockWriteError(ingredient_id, str(e)) from e

        logger.info(
            f"Stock {movement_type.value} for ingredient {ingredient.id} ({ingredient.name}): "
            f"{current} -> {current + delta}"
        )
        return movement

    def list_movements(
        self,
        account_id: int,
        ingredient_id: Optional[int] = None,
        order_id: Optional[int] = None,
        movement_type: Optional[MovementType] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[StockMovement], int]:
        query = self.db.query(StockMovement).filter(StockMovement.owned_by(account_id))
        if ingredient_id is not None:
            query = query.filter(StockMovement.ingredient_id == ingredient_id)
        if order_id is not None:
            query = query.filter(StockMovement.order_id == order_id)
        if movement_type is not None:
            query = query.filter(StockMovement.type == MovementType(movement_type).value)

        total = query.count()
        movements = (
            query.order_by(StockMovement.ts.desc(), StockMovement.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return movements, total

    def load_products(self, account_id: int, product_ids: Optional[Iterable[int]] = None) -> List[Product]:
        """Products of the account with their bill of materials loaded."""
        query = (
            self.db.query(Product)
            .options(
                selectinload(Product.product_ingredients).selectinload(
                    ProductIngredient.ingredient
                )
            )
            .filter(Product.owned_by(account_id))
        )
        if product_ids is not None:
            query = query.filter(Product.id.in_(list(product_ids)))
        return query.all()

    def check_stock(
        self, account_id: int, items: Iterable[Tuple[int, Decimal]]
    ) -> List[MissingIngredient]:
        """Ingredients that current stock cannot cover for ``(product_id, qty)`` items."""
        items = list(items)
        products = self.load_products(account_id, {product_id for product_id, _ in items})
        return find_missing_stock(items, products)

    def auto_restock(
        self,
        account_id: int,
        missing: Iterable[MissingIngredient],
        reason: str = "Automatic restock for order",
        order_id: Optional[int] = None,
    ) -> List[StockMovement]:
        """Record ``in`` movements covering each missing quantity."""
        movements = []
        for item in missing:
            movements.append(
                self.record_movement(
                    account_id,
                    item.ingredient_id,
                    MovementType.IN,
                    item.missing,
                    reason=reason,
                    order_id=order_id,
                )
            )
        return movements

    def consume_for_order(self, account_id: int, order: Order) -> List[StockMovement]:
        """Record ``sale`` movements for everything an order's items use.

        Quantities are aggregated per ingredient. Stock is allowed to go
        negative. The movements are flushed, not committed.
        """
        products = {
            p.id: p
            for p in self.load_products(
                account_id, {i.product_id for i in order.items if i.product_id is not None}
            )
        }

        consumption: dict = {}
        for item in order.items:
            product = products.get(item.product_id)
            if product is None:
                logger.warning(
                    f"Order {order.id} item '{item.product_name}' has no product; "
                    f"no stock consumed"
                )
                continue
            for line in product.product_ingredients:
                if line.ingredient_id is None:
                    continue
                qty = Decimal(line.quantity) * Decimal(item.quantity)
                consumption[line.ingredient_id] = consumption.get(line.ingredient_id, Decimal("0")) + qty

        reason = f"Sale (order #{order.display_id})"
        return [
            self.record_movement(
                account_id,
                ingredient_id,
                MovementType.SALE,
                qty,
                reason=reason,
                order_id=order.id,
                commit=False,
            )
            for ingredient_id, qty in consumption.items()
        ]
