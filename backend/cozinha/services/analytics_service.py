"""Dashboard analytics: revenue, cost, profit and product performance.

Cancelled orders are excluded from money figures. An order is dated by its
delivery date, or by its creation date when no delivery date is set.
"""

import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session, selectinload

from cozinha.models.ingredient import Ingredient
from cozinha.models.order import Order, OrderStatus
from cozinha.models.product import Product
from cozinha.services.costing_service import calculate_order_cost
from cozinha.services.stock_analysis_service import analyze_stock_demand, in_period
from cozinha.services.stock_service import StockService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

ALLOWED_PERIODS = (7, 30, 90)
DEFAULT_PERIOD = 30


def _q(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO.quantize(CENT)
    return _q(part / whole * HUNDRED)


def resolve_period(
    period: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> Tuple[date, Optional[date]]:
    """Turn a period in days or a custom range into a ``(start, end)`` window.

    A custom range wins when ``start`` is given. A period window is open
    ended, so orders scheduled for the future are included.
    """
    today = today or date.today()
    if start is not None:
        if end is not None and end < start:
            raise ValueError("end must not be before start")
        return start, end
    days = period or DEFAULT_PERIOD
    if days not in ALLOWED_PERIODS:
        raise ValueError(f"period must be one of {ALLOWED_PERIODS}")
    return today - timedelta(days=days), None


def calculate_metrics(orders: Sequence[Order]) -> dict:
    valid = [o for o in orders if o.status != OrderStatus.CANCELLED.value]

    revenue = sum((Decimal(o.total_value) for o in valid), ZERO)
    cost = sum((calculate_order_cost(o) for o in valid), ZERO)
    profit = revenue - cost

    counts = {s: 0 for s in OrderStatus}
    for order in orders:
        counts[OrderStatus(order.status)] += 1

    return {
        "revenue": _q(revenue),
        "cost": _q(cost),
        "profit": _q(profit),
        "margin_percent": _percent(profit, revenue),
        "orders": len(valid),
        "avg_ticket": _q(revenue / len(valid)) if valid else ZERO.quantize(CENT),
        "pending_orders": counts[OrderStatus.PENDING],
        "preparing_orders": counts[OrderStatus.PREPARING],
        "ready_orders": counts[OrderStatus.READY],
        "delivered_orders": counts[OrderStatus.DELIVERED],
    }


def chart_data(orders: Sequence[Order], first_day: date, last_day: date) -> List[dict]:
    """One point per day, inclusive of both ends."""
    by_day: Dict[date, List[Order]] = {}
    for order in orders:
        if order.status == OrderStatus.CANCELLED.value:
            continue
        ref = order.reference_date
        if ref is not None:
            by_day.setdefault(ref, []).append(order)

    points = []
    day = first_day
    while day <= last_day:
        day_orders = by_day.get(day, [])
        revenue = sum((Decimal(o.total_value) for o in day_orders), ZERO)
        cost = sum((calculate_order_cost(o) for o in day_orders), ZERO)
        points.append(
            {
                "day": day,
                "label": day.strftime("%d/%m"),
                "revenue": _q(revenue),
                "cost": _q(cost),
                "profit": _q(revenue - cost),
                "orders": len(day_orders),
            }
        )
        day += timedelta(days=1)
    return points


def product_performance(orders: Sequence[Order], products: Sequence[Product]) -> List[dict]:
    """Sales figures per product, best sellers by revenue first."""
    stats: Dict[int, dict] = {}
    for order in orders:
        if order.status == OrderStatus.CANCELLED.value:
            continue
        for item in order.items:
            if item.product_id is None:
                continue
            s = stats.setdefault(
                item.product_id,
                {"times_sold": 0, "quantity": ZERO, "revenue": ZERO, "cost": ZERO, "prices": []},
            )
            quantity = Decimal(item.quantity)
            s["times_sold"] += 1
            s["quantity"] += quantity
            s["revenue"] += Decimal(item.subtotal)
            s["cost"] += Decimal(item.unit_cost or 0) * quantity
            s["prices"].append(Decimal(item.unit_price))

    results = []
    for product in products:
        s = stats.get(product.id)
        if s is None:
            results.append(
                {
                    "product_id": product.id,
                    "name": product.name,
                    "times_sold": 0,
                    "total_quantity": ZERO,
                    "total_revenue": ZERO.quantize(CENT),
                    "avg_price": _q(product.selling_price),
                    "total_profit": ZERO.quantize(CENT),
                    "margin_percent": ZERO.quantize(CENT),
                }
            )
            continue
        profit = s["revenue"] - s["cost"]
        results.append(
            {
                "product_id": product.id,
                "name": product.name,
                "times_sold": s["times_sold"],
                "total_quantity": s["quantity"],
                "total_revenue": _q(s["revenue"]),
                "avg_price": _q(sum(s["prices"], ZERO) / len(s["prices"])),
                "total_profit": _q(profit),
                "margin_percent": _percent(profit, s["revenue"]),
            }
        )

    results.sort(key=lambda r: r["total_revenue"], reverse=True)
    return results


class AnalyticsService:
    """Builds the dashboard for an account."""

    def __init__(self, db: Session):
        self.db = db

    def dashboard(
        self,
        account_id: int,
        period: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        today: Optional[date] = None,
    ) -> dict:
        today = today or date.today()
        window_start, window_end = resolve_period(period, start, end, today)

        orders = (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.owned_by(account_id))
            .all()
        )
        products = StockService(self.db).load_products(account_id)
        ingredients = (
            self.db.query(Ingredient).filter(Ingredient.owned_by(account_id)).all()
        )

        in_window = [o for o in orders if in_period(o, window_start, window_end)]
        chart_start = window_start if start is not None else window_start + timedelta(days=1)
        chart_end = window_end or today

        return {
            "start": window_start,
            "end": window_end,
            "metrics": calculate_metrics(in_window),
            "chart": chart_data(in_window, chart_start, chart_end),
            "products": product_performance(in_window, products),
            "stock": [s.as_dict() for s in analyze_stock_demand(ingredients, products, orders)],
        }
