"""Ingredient model."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cozinha.db.base import AccountOwnedMixin, Base, TimestampMixin


class Ingredient(Base, AccountOwnedMixin, TimestampMixin):
    """Raw material bought by the business.

    ``stock_quantity`` is signed: it goes negative when sales were recorded
    without a matching stock-in. It is only ever changed through the stock
    movement ledger.
    """

    __tablename__ = "ingredients"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    unit: Mapped[str] = mapped_column(String(20), default="un", nullable=False)  # kg, g, l, ml, un
    cost_per_unit: Mapped[Decimal] = mapped_column(Numeric(12, 4), default=0, nullable=False)
    stock_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), default=0, nullable=False)
    min_stock_threshold: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)

    # Relationships
    product_ingredients: Mapped[list["ProductIngredient"]] = relationship(
        "ProductIngredient", back_populates="ingredient"
    )
    stock_movements: Mapped[list["StockMovement"]] = relationship(
        "StockMovement", back_populates="ingredient", cascade="all, delete-orphan"
    )


# Forward references
from cozinha.models.product import ProductIngredient
from cozinha.models.stock import StockMovement
