"""Order workflow service.

Orders move through the kanban columns
``pending -> preparing -> ready -> delivered``. Columns may be skipped but
never revisited, and any order still in production can be cancelled.
Delivered and cancelled orders are final.

Delivering an order is the moment its ingredients leave the stock: one
``sale`` movement is recorded per ingredient of the items' recipes. Stock is
allowed to go negative; the reconciliation service regularizes it later.
"""

import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from cozinha.core.exceptions import (
    InvalidReferenceError,
    InvalidStatusTransition,
    MissingStockError,
    NotFoundError,
)
from cozinha.core.plans import LimitKey
from cozinha.models.customer import Customer
from cozinha.models.order import (
    OPEN_STATUSES,
    STATUS_FLOW,
    TERMINAL_STATUSES,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusLog,
)
from cozinha.models.product import Product
from cozinha.schemas.order import OrderCreate
from cozinha.services.costing_service import calculate_order_cost, calculate_product_cost
from cozinha.services.stock_service import StockService
from cozinha.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether an order may move from ``current`` to ``target``."""
    current = OrderStatus(current)
    target = OrderStatus(target)
    if current in TERMINAL_STATUSES or current == target:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    return STATUS_FLOW.index(target) > STATUS_FLOW.index(current)


class OrderService:
    """Creates orders and drives them through the production flow."""

    def __init__(
        self,
        db: Session,
        stock_service: Optional[StockService] = None,
        subscription_service: Optional[SubscriptionService] = None,
    ):
        self.db = db
        self.stock_service = stock_service or StockService(db)
        self.subscription_service = subscription_service or SubscriptionService(db)

    # ===== QUERIES =====

    def _query(self, account_id: int):
        return (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.owned_by(account_id))
        )

    def get_order(self, account_id: int, order_id: int) -> Order:
        order = self._query(account_id).filter(Order.id == order_id).first()
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def list_orders(
        self,
        account_id: int,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Order], int]:
        query = self._query(account_id)
        if status is not None:
            query = query.filter(Order.status == OrderStatus(status).value)
        if customer_id is not None:
            query = query.filter(Order.customer_id == customer_id)
        if start is not None:
            query = query.filter(Order.delivery_date >= start)
        if end is not None:
            query = query.filter(Order.delivery_date <= end)

        total = query.count()
        orders = query.order_by(Order.display_id.desc()).offset(skip).limit(limit).all()
        return orders, total

    def board(self, account_id: int) -> Dict[str, List[Order]]:
        """Open orders grouped by kanban column, soonest delivery first."""
        columns: Dict[str, List[Order]] = {
            s.value: [] for s in STATUS_FLOW if s in OPEN_STATUSES
        }
        orders = (
            self._query(account_id)
            .filter(Order.status.in_(list(columns)))
            .order_by(Order.delivery_date.is_(None), Order.delivery_date, Order.display_id)
            .all()
        )
        for order in orders:
            columns[order.status].append(order)
        return columns

    # ===== CREATION =====

    def _next_display_id(self, account_id: int) -> int:
        current = (
            self.db.query(func.max(Order.display_id))
            .filter(Order.owned_by(account_id))
            .scalar()
        )
        return (current or 0) + 1

    def _get_customer(self, account_id: int, customer_id: int) -> Customer:
        customer = (
            self.db.query(Customer)
            .filter(Customer.id == customer_id, Customer.owned_by(account_id))
            .first()
        )
        if customer is None:
            raise InvalidReferenceError(f"Customer {customer_id} not found")
        return customer

    def _log_status(self, order: Order, previous: Optional[str], new: str) -> None:
        order.status_logs.append(OrderStatusLog(previous_status=previous, new_status=new))

    def create_order(self, account_id: int, plan_id: str, data: OrderCreate) -> Order:
        """Create a pending order with price and cost snapshots.

        Raises:
            PlanLimitExceeded: the monthly order limit is reached.
            InvalidReferenceError: a product or the customer is not the account's.
        """
        self.subscription_service.ensure_within_limit(account_id, plan_id, LimitKey.ORDERS)

        customer = None
        if data.customer_id is not None:
            customer = self._get_customer(account_id, data.customer_id)

        product_ids = {item.product_id for item in data.items}
        products = {
            p.id: p for p in self.stock_service.load_products(account_id, product_ids)
        }
        unknown = product_ids - set(products)
        if unknown:
            raise InvalidReferenceError(
                f"Product(s) not found: {', '.join(str(i) for i in sorted(unknown))}"
            )

        order = Order(
            account_id=account_id,
            display_id=self._next_display_id(account_id),
            order_number=data.order_number,
            customer_id=customer.id if customer else None,
            status=OrderStatus.PENDING.value,
            delivery_date=data.delivery_date,
            delivery_time=data.delivery_time,
            delivery_method=data.delivery_method.value,
            delivery_fee=data.delivery_fee,
            payment_method=data.payment_method.value if data.payment_method else None,
            notes=data.notes,
        )

        for item_data in data.items:
            product = products[item_data.product_id]
            unit_price = (
                item_data.unit_price
                if item_data.unit_price is not None
                else Decimal(product.selling_price)
            )
            self._add_item(
                order,
                product_id=product.id,
                product_name=product.name,
                quantity=item_data.quantity,
                unit_price=unit_price,
                unit_cost=calculate_product_cost(product).total_cost,
            )

        return self._finalize_new_order(order, customer)

    def _add_item(
        self,
        order: Order,
        product_id: Optional[int],
        product_name: str,
        quantity: Decimal,
        unit_price: Decimal,
        unit_cost: Optional[Decimal],
    ) -> OrderItem:
        quantity = Decimal(quantity)
        unit_price = Decimal(unit_price)
        item = OrderItem(
            product_id=product_id,
            product_name=product_name,
            quantity=quantity,
            unit_price=unit_price,
            subtotal=(unit_price * quantity).quantize(CENT, rounding=ROUND_HALF_UP),
            unit_cost=unit_cost,
        )
        order.items.append(item)
        return item

    def _finalize_new_order(self, order: Order, customer: Optional[Customer]) -> Order:
        items_total = sum((Decimal(i.subtotal) for i in order.items), Decimal("0"))
        order.total_value = items_total + Decimal(order.delivery_fee or 0)
        order.total_cost = calculate_order_cost(order)
        self._log_status(order, None, order.status)

        if customer is not None:
            customer.total_orders = (customer.total_orders or 0) + 1
            customer.total_spent = Decimal(customer.total_spent or 0) + order.total_value
            customer.last_order_date = order.delivery_date or date.today()

        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        logger.info(
            f"Order #{order.display_id} created for account {order.account_id}: "
            f"{len(order.items)} item(s), total {order.total_value}"
        )
        return order

    # ===== STATUS FLOW =====

    def change_status(self, account_id: int, order_id: int, target: OrderStatus) -> Order:
        """Move an order to another column.

        Raises:
            InvalidStatusTransition: backward move, same status or terminal order.
        """
        order = self.get_order(account_id, order_id)
        target = OrderStatus(target)
        current = OrderStatus(order.status)

        if not can_transition(current, target):
            raise InvalidStatusTransition(current.value, target.value)

        now = datetime.now(timezone.utc)
        if target == OrderStatus.PREPARING:
            order.production_started_at = now
        elif target == OrderStatus.READY:
            order.production_completed_at = now
        elif target == OrderStatus.DELIVERED:
            order.delivered_at = now
            if order.production_completed_at is None:
                order.production_completed_at = now
            self.stock_service.consume_for_order(account_id, order)

        order.status = target.value
        self._log_status(order, current.value, target.value)
        self.db.commit()
        self.db.refresh(order)

        logger.info(f"Order #{order.display_id}: {current.value} -> {target.value}")
        return order

    # ===== DUPLICATE / DELETE =====

    def duplicate_order(
        self,
        account_id: int,
        plan_id: str,
        order_id: int,
        auto_restock: bool = False,
    ) -> Order:
        """Copy an order as a new pending one.

        A source that already left ``pending`` is checked against current
        stock first. Missing ingredients fail the request with
        MissingStockError unless ``auto_restock`` is set, in which case ``in``
        movements cover them before the copy is created.
        """
        source = self.get_order(account_id, order_id)
        self.subscription_service.ensure_within_limit(account_id, plan_id, LimitKey.ORDERS)

        if source.status != OrderStatus.PENDING.value:
            items = [
                (item.product_id, Decimal(item.quantity))
                for item in source.items
                if item.product_id is not None
            ]
            missing = self.stock_service.check_stock(account_id, items)
            if missing:
                if not auto_restock:
                    raise MissingStockError([m.as_dict() for m in missing])
                self.stock_service.auto_restock(
                    account_id,
                    missing,
                    reason=f"Automatic restock to duplicate order #{source.display_id}",
                )

        customer = None
        if source.customer_id is not None:
            customer = self.db.get(Customer, source.customer_id)

        copy = Order(
            account_id=account_id,
            display_id=self._next_display_id(account_id),
            customer_id=source.customer_id,
            status=OrderStatus.PENDING.value,
            delivery_method=source.delivery_method,
            delivery_fee=source.delivery_fee,
            payment_method=source.payment_method,
            notes=source.notes,
        )
        for item in source.items:
            self._add_item(
                copy,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                unit_cost=item.unit_cost,
            )

        logger.info(f"Duplicating order #{source.display_id}")
        return self._finalize_new_order(copy, customer)

    def delete_order(self, account_id: int, order_id: int) -> None:
        """Delete an order with its items. Recorded stock movements are kept."""
        order = self.get_order(account_id, order_id)
        self.db.delete(order)
        self.db.commit()
        logger.info(f"Order #{order.display_id} deleted for account {account_id}")

    # ===== IMPORT =====

    def create_imported_order(
        self,
        account_id: int,
        customer: Optional[Customer],
        status: OrderStatus,
        lines: Iterable[Tuple[Product, Decimal]],
        delivery_date: Optional[date],
        notes: Optional[str] = None,
    ) -> Order:
        """Materialize an order whose items were resolved by the importer.

        Imported orders keep their spreadsheet status as-is; no stock is
        consumed for rows that arrive already delivered.
        """
        status = OrderStatus(status)
        order = Order(
            account_id=account_id,
            display_id=self._next_display_id(account_id),
            customer_id=customer.id if customer else None,
            status=status.value,
            delivery_date=delivery_date,
            notes=notes,
        )
        if status == OrderStatus.DELIVERED:
            order.delivered_at = datetime.now(timezone.utc)

        for product, quantity in lines:
            self._add_item(
                order,
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=product.selling_price,
                unit_cost=calculate_product_cost(product).total_cost,
            )
        return self._finalize_new_order(order, customer)
