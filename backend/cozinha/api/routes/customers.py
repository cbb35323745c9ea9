"""Customer routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, status

from cozinha.core.auth import CurrentAccount
from cozinha.core.exceptions import NotFoundError
from cozinha.core.plans import LimitKey
from cozinha.core.rate_limit import limiter
from cozinha.core.responses import list_response
from cozinha.db.session import DbSession
from cozinha.models.customer import Customer
from cozinha.schemas.customer import CustomerCreate, CustomerResponse, CustomerUpdate
from cozinha.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_customer(db, account_id: int, customer_id: int) -> Customer:
    customer = (
        db.query(Customer)
        .filter(Customer.id == customer_id, Customer.owned_by(account_id))
        .first()
    )
    if customer is None:
        raise NotFoundError("Customer", customer_id)
    return customer


@router.get("")
@limiter.limit("60/minute")
def list_customers(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    search: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    query = db.query(Customer).filter(Customer.owned_by(current_account.account_id))
    if search:
        term = f"%{search}%"
        query = query.filter(Customer.name.ilike(term) | Customer.phone.ilike(term))
    total = query.count()
    customers = query.order_by(Customer.name).offset(skip).limit(limit).all()
    return list_response([CustomerResponse.model_validate(c) for c in customers], total)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_customer(
    request: Request,
    body: CustomerCreate,
    db: DbSession,
    current_account: CurrentAccount,
):
    account_id = current_account.account_id
    SubscriptionService(db).ensure_within_limit(account_id, current_account.plan_id, LimitKey.CUSTOMERS)

    customer = Customer(account_id=account_id, **body.model_dump())
    db.add(customer)
    db.commit()
    db.refresh(customer)
    logger.info(f"Customer {customer.id} created")
    return customer


@router.get("/{customer_id}", response_model=CustomerResponse)
@limiter.limit("60/minute")
def get_customer(request: Request, customer_id: int, db: DbSession, current_account: CurrentAccount):
    return _get_customer(db, current_account.account_id, customer_id)


@router.put("/{customer_id}", response_model=CustomerResponse)
@limiter.limit("30/minute")
def update_customer(
    request: Request,
    customer_id: int,
    body: CustomerUpdate,
    db: DbSession,
    current_account: CurrentAccount,
):
    customer = _get_customer(db, current_account.account_id, customer_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(customer, field, value)
    db.commit()
    db.refresh(customer)
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def delete_customer(
    request: Request, customer_id: int, db: DbSession, current_account: CurrentAccount
):
    """Delete a customer. Their orders are kept without a customer."""
    customer = _get_customer(db, current_account.account_id, customer_id)
    db.delete(customer)
    db.commit()
    logger.info(f"Customer {customer_id} deleted")
