"""Ingredient routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from cozinha.core.auth import CurrentAccount
from cozinha.core.exceptions import NotFoundError
from cozinha.core.rate_limit import limiter
from cozinha.core.responses import list_response
from cozinha.db.session import DbSession
from cozinha.models.ingredient import Ingredient
from cozinha.models.stock import MovementType
from cozinha.schemas.ingredient import IngredientCreate, IngredientResponse, IngredientUpdate
from cozinha.services.stock_service import StockService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_ingredient(db, account_id: int, ingredient_id: int) -> Ingredient:
    ingredient = (
        db.query(Ingredient)
        .filter(Ingredient.id == ingredient_id, Ingredient.owned_by(account_id))
        .first()
    )
    if ingredient is None:
        raise NotFoundError("Ingredient", ingredient_id)
    return ingredient


@router.get("")
@limiter.limit("60/minute")
def list_ingredients(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    search: Optional[str] = Query(None),
    low_stock: bool = Query(False, description="Only ingredients at or below their threshold"),
):
    """List the account's ingredients."""
    query = db.query(Ingredient).filter(Ingredient.owned_by(current_account.account_id))
    if search:
        query = query.filter(Ingredient.name.ilike(f"%{search}%"))
    if low_stock:
        query = query.filter(
            Ingredient.min_stock_threshold.isnot(None),
            Ingredient.stock_quantity <= Ingredient.min_stock_threshold,
        )
    ingredients = query.order_by(Ingredient.name).all()
    return list_response([IngredientResponse.model_validate(i) for i in ingredients])


@router.post("", response_model=IngredientResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_ingredient(
    request: Request,
    body: IngredientCreate,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Create an ingredient. An opening stock is recorded as an ``in`` movement."""
    data = body.model_dump(exclude={"stock_quantity"})
    ingredient = Ingredient(account_id=current_account.account_id, stock_quantity=0, **data)
    db.add(ingredient)
    db.commit()
    db.refresh(ingredient)

    if body.stock_quantity > 0:
        StockService(db).record_movement(
            current_account.account_id,
            ingredient.id,
            MovementType.IN,
            body.stock_quantity,
            reason="Opening stock",
        )
        db.refresh(ingredient)

    logger.info(f"Ingredient {ingredient.id} ({ingredient.name}) created")
    return ingredient


@router.get("/{ingredient_id}", response_model=IngredientResponse)
@limiter.limit("60/minute")
def get_ingredient(
    request: Request, ingredient_id: int, db: DbSession, current_account: CurrentAccount
):
    return _get_ingredient(db, current_account.account_id, ingredient_id)


@router.put("/{ingredient_id}", response_model=IngredientResponse)
@limiter.limit("30/minute")
def update_ingredient(
    request: Request,
    ingredient_id: int,
    body: IngredientUpdate,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Update an ingredient. Stock is changed through stock movements only."""
    ingredient = _get_ingredient(db, current_account.account_id, ingredient_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(ingredient, field, value)
    db.commit()
    db.refresh(ingredient)
    return ingredient


@router.delete("/{ingredient_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def delete_ingredient(
    request: Request, ingredient_id: int, db: DbSession, current_account: CurrentAccount
):
    """Delete an ingredient. Recipes using it keep an unresolvable line."""
    ingredient = _get_ingredient(db, current_account.account_id, ingredient_id)
    db.delete(ingredient)
    db.commit()
    logger.info(f"Ingredient {ingredient_id} deleted")
