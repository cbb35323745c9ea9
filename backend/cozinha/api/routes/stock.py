"""Stock ledger and stock analysis routes."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, Request, status
from sqlalchemy.orm import selectinload

from cozinha.core.auth import CurrentAccount
from cozinha.core.rate_limit import limiter
from cozinha.core.responses import list_response
from cozinha.db.session import DbSession
from cozinha.models.ingredient import Ingredient
from cozinha.models.order import OPEN_STATUSES, Order
from cozinha.models.stock import MovementType
from cozinha.schemas.stock import (
    MissingIngredientResponse,
    StockCheckRequest,
    StockCheckResponse,
    StockDemandItem,
    StockMovementCreate,
    StockMovementResponse,
)
from cozinha.services.stock_analysis_service import analyze_stock_demand
from cozinha.services.stock_service import StockService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/movements")
@limiter.limit("60/minute")
def list_movements(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    ingredient_id: Optional[int] = Query(None),
    order_id: Optional[int] = Query(None),
    movement_type: Optional[MovementType] = Query(None, alias="type"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    """Stock ledger, newest first."""
    movements, total = StockService(db).list_movements(
        current_account.account_id, ingredient_id, order_id, movement_type, skip, limit
    )
    return list_response([StockMovementResponse.model_validate(m) for m in movements], total)


@router.post("/movements", response_model=StockMovementResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_movement(
    request: Request,
    body: StockMovementCreate,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Record a stock movement (purchase, withdrawal, loss, count adjustment)."""
    return StockService(db).record_movement(
        current_account.account_id,
        body.ingredient_id,
        body.type,
        body.quantity,
        reason=body.reason,
        order_id=body.order_id,
    )


@router.get("/analysis")
@limiter.limit("60/minute")
def stock_analysis(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
):
    """Stock of every ingredient against the demand of open orders."""
    account_id = current_account.account_id
    ingredients = db.query(Ingredient).filter(Ingredient.owned_by(account_id)).all()
    products = StockService(db).load_products(account_id)
    orders = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.owned_by(account_id), Order.status.in_([s.value for s in OPEN_STATUSES]))
        .all()
    )
    results = analyze_stock_demand(ingredients, products, orders, start, end)
    return list_response([StockDemandItem(**r.as_dict()) for r in results])


@router.post("/check", response_model=StockCheckResponse)
@limiter.limit("60/minute")
def check_stock(
    request: Request,
    body: StockCheckRequest,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Ingredients current stock cannot cover for a candidate order."""
    missing = StockService(db).check_stock(
        current_account.account_id,
        [(item.product_id, item.quantity) for item in body.items],
    )
    return StockCheckResponse(
        is_valid=not missing,
        missing=[MissingIngredientResponse.model_validate(m) for m in missing],
    )
