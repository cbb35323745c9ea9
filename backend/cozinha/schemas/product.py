"""Product (recipe) schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class ProductIngredientCreate(BaseModel):
    """Bill of materials line creation schema."""

    ingredient_id: int
    quantity: Decimal = Field(gt=0)


class ProductIngredientResponse(BaseModel):
    """Bill of materials line response schema."""

    id: int
    ingredient_id: Optional[int]
    quantity: Decimal

    model_config = {"from_attributes": True}


class ProductBase(BaseModel):
    """Base product schema."""

    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    selling_price: Decimal = Field(ge=0)
    selling_unit: str = Field("un", max_length=20)
    category: Optional[str] = Field(None, max_length=100)
    preparation_time_minutes: int = Field(0, ge=0)


class ProductCreate(ProductBase):
    """Product creation schema."""

    ingredients: List[ProductIngredientCreate] = []


class ProductUpdate(BaseModel):
    """Product update schema. ``ingredients`` replaces the whole recipe."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    selling_price: Optional[Decimal] = Field(None, ge=0)
    selling_unit: Optional[str] = Field(None, max_length=20)
    category: Optional[str] = Field(None, max_length=100)
    preparation_time_minutes: Optional[int] = Field(None, ge=0)
    active: Optional[bool] = None
    ingredients: Optional[List[ProductIngredientCreate]] = None


class ProductResponse(ProductBase):
    """Product response schema."""

    id: int
    active: bool
    created_at: datetime
    updated_at: datetime
    product_ingredients: List[ProductIngredientResponse] = []

    model_config = {"from_attributes": True}


class CostLine(BaseModel):
    ingredient_id: int
    ingredient_name: str
    unit: str
    quantity: Decimal
    cost_per_unit: Decimal
    line_cost: Decimal

    model_config = {"from_attributes": True}


class ProductCostResponse(BaseModel):
    """Cost roll-up of one product."""

    product_id: int
    name: str
    selling_price: Decimal
    total_cost: Decimal
    profit: Decimal
    margin_percent: Optional[Decimal]
    unresolved_ingredients: int
    lines: List[CostLine] = []

    model_config = {"from_attributes": True}
