"""Product (recipe) routes."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Query, Request, status
from sqlalchemy.orm import selectinload

from cozinha.core.auth import CurrentAccount
from cozinha.core.exceptions import InvalidReferenceError, NotFoundError
from cozinha.core.plans import LimitKey
from cozinha.core.rate_limit import limiter
from cozinha.core.responses import list_response
from cozinha.db.session import DbSession
from cozinha.models.ingredient import Ingredient
from cozinha.models.product import Product, ProductIngredient
from cozinha.schemas.product import (
    ProductCostResponse,
    ProductCreate,
    ProductIngredientCreate,
    ProductResponse,
    ProductUpdate,
)
from cozinha.services.costing_service import CostingService
from cozinha.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_product(db, account_id: int, product_id: int) -> Product:
    product = (
        db.query(Product)
        .options(selectinload(Product.product_ingredients))
        .filter(Product.id == product_id, Product.owned_by(account_id))
        .first()
    )
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


def _build_bom(db, account_id: int, lines: List[ProductIngredientCreate]) -> List[ProductIngredient]:
    """Validate that every line uses one of the account's ingredients."""
    ids = {line.ingredient_id for line in lines}
    owned = {
        row.id
        for row in db.query(Ingredient.id)
        .filter(Ingredient.id.in_(ids), Ingredient.owned_by(account_id))
        .all()
    }
    unknown = ids - owned
    if unknown:
        raise InvalidReferenceError(
            f"Ingredient(s) not found: {', '.join(str(i) for i in sorted(unknown))}"
        )
    return [
        ProductIngredient(ingredient_id=line.ingredient_id, quantity=line.quantity)
        for line in lines
    ]


@router.get("")
@limiter.limit("60/minute")
def list_products(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    active: Optional[bool] = Query(None),
):
    """List the account's products with their recipes."""
    query = (
        db.query(Product)
        .options(selectinload(Product.product_ingredients))
        .filter(Product.owned_by(current_account.account_id))
    )
    if search:
        query = query.filter(Product.name.ilike(f"%{search}%"))
    if category:
        query = query.filter(Product.category == category)
    if active is not None:
        query = query.filter(Product.active.is_(active))
    products = query.order_by(Product.name).all()
    return list_response([ProductResponse.model_validate(p) for p in products])


@router.get("/costs")
@limiter.limit("60/minute")
def list_product_costs(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    active_only: bool = Query(False),
):
    """Cost, profit and margin of every product."""
    costs = CostingService(db).all_product_costs(current_account.account_id, active_only)
    return list_response([ProductCostResponse.model_validate(c) for c in costs])


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_product(
    request: Request,
    body: ProductCreate,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Create a product with its bill of materials."""
    account_id = current_account.account_id
    SubscriptionService(db).ensure_within_limit(account_id, current_account.plan_id, LimitKey.PRODUCTS)

    product = Product(account_id=account_id, **body.model_dump(exclude={"ingredients"}))
    product.product_ingredients = _build_bom(db, account_id, body.ingredients)
    db.add(product)
    db.commit()
    db.refresh(product)

    logger.info(f"Product {product.id} ({product.name}) created with {len(body.ingredients)} ingredient(s)")
    return product


@router.get("/{product_id}", response_model=ProductResponse)
@limiter.limit("60/minute")
def get_product(request: Request, product_id: int, db: DbSession, current_account: CurrentAccount):
    return _get_product(db, current_account.account_id, product_id)


@router.get("/{product_id}/cost", response_model=ProductCostResponse)
@limiter.limit("60/minute")
def get_product_cost(
    request: Request, product_id: int, db: DbSession, current_account: CurrentAccount
):
    """Cost roll-up of one product."""
    cost = CostingService(db).product_cost(current_account.account_id, product_id)
    return ProductCostResponse.model_validate(cost)


@router.put("/{product_id}", response_model=ProductResponse)
@limiter.limit("30/minute")
def update_product(
    request: Request,
    product_id: int,
    body: ProductUpdate,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Update a product. When ``ingredients`` is sent it replaces the recipe."""
    account_id = current_account.account_id
    product = _get_product(db, account_id, product_id)

    data = body.model_dump(exclude_unset=True, exclude={"ingredients"})
    if data.get("active") and not product.active:
        SubscriptionService(db).ensure_within_limit(
            account_id, current_account.plan_id, LimitKey.PRODUCTS
        )
    for field, value in data.items():
        setattr(product, field, value)

    if body.ingredients is not None:
        product.product_ingredients = _build_bom(db, account_id, body.ingredients)

    db.commit()
    db.refresh(product)
    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def delete_product(
    request: Request, product_id: int, db: DbSession, current_account: CurrentAccount
):
    """Delete a product. Past order items keep their name snapshot."""
    product = _get_product(db, current_account.account_id, product_id)
    db.delete(product)
    db.commit()
    logger.info(f"Product {product_id} deleted")
