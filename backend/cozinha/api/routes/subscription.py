"""Subscription routes."""

from fastapi import APIRouter, Request

from cozinha.core.auth import CurrentAccount
from cozinha.core.rate_limit import limiter
from cozinha.db.session import DbSession
from cozinha.models.account import Account
from cozinha.schemas.subscription import SubscriptionResponse
from cozinha.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("", response_model=SubscriptionResponse)
@limiter.limit("60/minute")
def get_subscription(request: Request, db: DbSession, current_account: CurrentAccount):
    """Current plan, usage against its limits, and enabled features."""
    account = db.get(Account, current_account.account_id)
    return SubscriptionService(db).summary(
        account.id, account.plan_id, account.subscription_status
    )
