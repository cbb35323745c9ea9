"""Ingredient schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class IngredientBase(BaseModel):
    """Base ingredient schema."""

    name: str = Field(min_length=1, max_length=255)
    unit: str = Field("un", min_length=1, max_length=20)
    cost_per_unit: Decimal = Field(Decimal("0"), ge=0)
    min_stock_threshold: Optional[Decimal] = Field(None, ge=0)


class IngredientCreate(IngredientBase):
    """Ingredient creation schema. ``stock_quantity`` is the opening balance."""

    stock_quantity: Decimal = Field(Decimal("0"), ge=0)


class IngredientUpdate(BaseModel):
    """Ingredient update schema. Stock changes go through stock movements."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    unit: Optional[str] = Field(None, min_length=1, max_length=20)
    cost_per_unit: Optional[Decimal] = Field(None, ge=0)
    min_stock_threshold: Optional[Decimal] = Field(None, ge=0)


class IngredientResponse(IngredientBase):
    """Ingredient response schema."""

    id: int
    stock_quantity: Decimal
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
