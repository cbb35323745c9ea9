"""Product (recipe) and bill of materials models."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cozinha.db.base import AccountOwnedMixin, Base, TimestampMixin


class Product(Base, AccountOwnedMixin, TimestampMixin):
    """A product sold by the business, with its recipe."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    selling_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    selling_unit: Mapped[str] = mapped_column(String(20), default="un", nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    preparation_time_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    product_ingredients: Mapped[list["ProductIngredient"]] = relationship(
        "ProductIngredient", back_populates="product", cascade="all, delete-orphan"
    )


class ProductIngredient(Base):
    """A single line of a product's bill of materials.

    ``ingredient_id`` is nulled when the ingredient is deleted; such lines
    are skipped by costing and demand calculations.
    """

    __tablename__ = "product_ingredients"

    id: Mapped[int] = mapped_column(primary_key=True)
    product_id: Mapped[int] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ingredient_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("ingredients.id", ondelete="SET NULL"), nullable=True, index=True
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)  # per unit sold

    # Relationships
    product: Mapped["Product"] = relationship("Product", back_populates="product_ingredients")
    ingredient: Mapped[Optional["Ingredient"]] = relationship(
        "Ingredient", back_populates="product_ingredients"
    )


# Forward references
from cozinha.models.ingredient import Ingredient
