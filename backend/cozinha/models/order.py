"""Customer order models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cozinha.db.base import AccountOwnedMixin, Base, TimestampMixin


class OrderStatus(str, Enum):
    """Kanban columns an order moves through."""

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
OPEN_STATUSES = frozenset(s for s in OrderStatus if s not in TERMINAL_STATUSES)

# Forward order of the production flow; cancelled sits outside it.
STATUS_FLOW = (
    OrderStatus.PENDING,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.DELIVERED,
)


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class PaymentMethod(str, Enum):
    CASH = "cash"
    PIX = "pix"
    CARD = "card"
    TRANSFER = "transfer"


class Order(Base, AccountOwnedMixin, TimestampMixin):
    """An order placed by a customer."""

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("account_id", "display_id", name="uq_order_account_display_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    display_id: Mapped[int] = mapped_column(Integer, nullable=False)
    order_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    customer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=OrderStatus.PENDING.value, nullable=False, index=True
    )
    total_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 4), default=0, nullable=False)

    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    delivery_time: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    delivery_method: Mapped[str] = mapped_column(
        String(20), default=DeliveryMethod.PICKUP.value, nullable=False
    )
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    production_started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    production_completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    customer: Mapped[Optional["Customer"]] = relationship("Customer", back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )
    status_logs: Mapped[list["OrderStatusLog"]] = relationship(
        "OrderStatusLog",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusLog.id",
    )

    @property
    def is_open(self) -> bool:
        return self.status not in {s.value for s in TERMINAL_STATUSES}

    @property
    def reference_date(self) -> Optional[date]:
        """Date used for period filters: delivery date, else creation date."""
        if self.delivery_date is not None:
            return self.delivery_date
        return self.created_at.date() if self.created_at else None


class OrderItem(Base):
    """A line of an order. Name, price and cost are snapshots."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True
    )
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 3), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)

    # Relationships
    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped[Optional["Product"]] = relationship("Product")


class OrderStatusLog(Base):
    """History of status changes of an order."""

    __tablename__ = "order_status_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    previous_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    order: Mapped["Order"] = relationship("Order", back_populates="status_logs")


# Forward references
from cozinha.models.customer import Customer
from cozinha.models.product import Product
