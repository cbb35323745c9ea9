"""Order schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from cozinha.models.order import DeliveryMethod, OrderStatus, PaymentMethod


class OrderItemCreate(BaseModel):
    """Order line creation schema. ``unit_price`` defaults to the product price."""

    product_id: int
    quantity: Decimal = Field(gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)


class OrderItemResponse(BaseModel):
    id: int
    product_id: Optional[int]
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    subtotal: Decimal
    unit_cost: Optional[Decimal] = None

    model_config = {"from_attributes": True}


class OrderCreate(BaseModel):
    """Order creation schema."""

    customer_id: Optional[int] = None
    order_number: Optional[str] = Field(None, max_length=50)
    items: List[OrderItemCreate] = Field(min_length=1)
    delivery_date: Optional[date] = None
    delivery_time: Optional[str] = Field(None, max_length=10)
    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    delivery_fee: Decimal = Field(Decimal("0"), ge=0)
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderStatusLogResponse(BaseModel):
    previous_status: Optional[str]
    new_status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: int
    display_id: int
    order_number: Optional[str] = None
    customer_id: Optional[int] = None
    status: OrderStatus
    total_value: Decimal
    total_cost: Decimal
    delivery_date: Optional[date] = None
    delivery_time: Optional[str] = None
    delivery_method: str
    delivery_fee: Decimal
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    production_started_at: Optional[datetime] = None
    production_completed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime
    items: List[OrderItemResponse] = []

    model_config = {"from_attributes": True}


class OrderDetailResponse(OrderResponse):
    status_logs: List[OrderStatusLogResponse] = []


class KanbanBoardResponse(BaseModel):
    """Open orders grouped by status column."""

    columns: Dict[str, List[OrderResponse]]
    total: int


class OrderImportResult(BaseModel):
    created: int
    skipped: int
    errors: List[str] = []
