"""Dashboard analytics schemas."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

from cozinha.schemas.stock import StockDemandItem


class DashboardMetrics(BaseModel):
    revenue: Decimal
    cost: Decimal
    profit: Decimal
    margin_percent: Decimal
    orders: int
    avg_ticket: Decimal
    pending_orders: int
    preparing_orders: int
    ready_orders: int
    delivered_orders: int


class ChartDataPoint(BaseModel):
    day: date
    label: str
    revenue: Decimal
    cost: Decimal
    profit: Decimal
    orders: int


class ProductPerformance(BaseModel):
    product_id: int
    name: str
    times_sold: int
    total_quantity: Decimal
    total_revenue: Decimal
    avg_price: Decimal
    total_profit: Decimal
    margin_percent: Decimal


class DashboardResponse(BaseModel):
    start: Optional[date]
    end: Optional[date]
    metrics: DashboardMetrics
    chart: List[ChartDataPoint]
    products: List[ProductPerformance]
    stock: List[StockDemandItem]
