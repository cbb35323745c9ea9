"""Stock movement ledger."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cozinha.db.base import AccountOwnedMixin, Base


class MovementType(str, Enum):
    """Kinds of stock movements."""

    IN = "in"  # Purchase, restock, regularization
    OUT = "out"  # Manual withdrawal
    ADJUSTMENT = "adjustment"  # Sets the absolute level after a count
    LOSS = "loss"  # Spoilage, breakage
    SALE = "sale"  # Consumption by a delivered order


OUTBOUND_TYPES = frozenset({MovementType.OUT, MovementType.LOSS, MovementType.SALE})


class StockMovement(Base, AccountOwnedMixin):
    """Ledger of all stock changes (single source of truth).

    ``quantity`` is what the operator entered; ``qty_delta`` is the signed
    change actually applied to the ingredient's ``stock_quantity``.
    """

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(primary_key=True)
    ts: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    ingredient_id: Mapped[int] = mapped_column(
        ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    qty_delta: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Relationships
    ingredient: Mapped["Ingredient"] = relationship("Ingredient", back_populates="stock_movements")


# Forward references
from cozinha.models.ingredient import Ingredient
