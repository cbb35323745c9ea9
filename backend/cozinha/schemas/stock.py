"""Stock ledger, analysis and reconciliation schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from cozinha.models.stock import MovementType


class StockMovementCreate(BaseModel):
    """Manual stock movement. For ``adjustment`` the quantity is the new level."""

    ingredient_id: int
    type: MovementType
    quantity: Decimal = Field(ge=0)
    reason: Optional[str] = Field(None, max_length=500)
    order_id: Optional[int] = None


class StockMovementResponse(BaseModel):
    id: int
    ts: datetime
    ingredient_id: int
    type: MovementType
    quantity: Decimal
    qty_delta: Decimal
    reason: Optional[str] = None
    order_id: Optional[int] = None

    model_config = {"from_attributes": True}


class StockDemandItem(BaseModel):
    ingredient_id: int
    ingredient_name: str
    unit: str
    stock: Decimal
    demand: Decimal
    balance: Decimal
    status: str


class StockCheckItem(BaseModel):
    product_id: int
    quantity: Decimal = Field(gt=0)


class StockCheckRequest(BaseModel):
    items: List[StockCheckItem] = Field(min_length=1)


class MissingIngredientResponse(BaseModel):
    ingredient_id: int
    name: str
    unit: str
    current: Decimal
    needed: Decimal
    missing: Decimal

    model_config = {"from_attributes": True}


class StockCheckResponse(BaseModel):
    is_valid: bool
    missing: List[MissingIngredientResponse] = []


class StockDeficitResponse(BaseModel):
    ingredient_id: int
    ingredient_name: str
    unit: str
    stock_quantity: Decimal
    deficit: Decimal

    model_config = {"from_attributes": True}


class ReconciliationFailure(BaseModel):
    ingredient_id: int
    error: str


class ReconciliationResponse(BaseModel):
    order_id: int
    success: bool
    applied: List[StockMovementResponse] = []
    failed: List[ReconciliationFailure] = []


class StockAlertResponse(BaseModel):
    order_id: int
    display_id: int
    deficits: List[StockDeficitResponse]
