"""Subscription plan usage and limit enforcement."""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy.orm import Session

from cozinha.core.config import settings
from cozinha.core.exceptions import PlanLimitExceeded
from cozinha.core.plans import FeatureKey, LimitKey, PlanConfig, get_plan
from cozinha.models.customer import Customer
from cozinha.models.order import Order
from cozinha.models.product import Product

logger = logging.getLogger(__name__)


def month_start(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return datetime(now.year, now.month, 1, tzinfo=timezone.utc)


class SubscriptionService:
    """Counts what an account uses against what its plan allows."""

    def __init__(self, db: Session):
        self.db = db

    def count(self, account_id: int, key: LimitKey) -> int:
        if key == LimitKey.ORDERS:
            return (
                self.db.query(Order)
                .filter(Order.owned_by(account_id), Order.created_at >= month_start())
                .count()
            )
        if key == LimitKey.PRODUCTS:
            return (
                self.db.query(Product)
                .filter(Product.owned_by(account_id), Product.active.is_(True))
                .count()
            )
        if key == LimitKey.CUSTOMERS:
            return self.db.query(Customer).filter(Customer.owned_by(account_id)).count()
        raise ValueError(f"Unknown limit key: {key}")

    def usage(self, account_id: int) -> Dict[LimitKey, int]:
        return {key: self.count(account_id, key) for key in LimitKey}

    def ensure_within_limit(self, account_id: int, plan_id: str, key: LimitKey) -> None:
        """Raise PlanLimitExceeded if one more ``key`` entity would exceed the plan."""
        if not settings.plan_limits_enabled:
            return
        plan = get_plan(plan_id)
        current = self.count(account_id, key)
        if not plan.check_limit(key, current):
            logger.info(
                f"Account {account_id} hit the {key.value} limit of plan {plan.id.value} "
                f"({current}/{plan.limit_for(key)})"
            )
            raise PlanLimitExceeded(plan.id.value, key.value, plan.limit_for(key))

    def summary(self, account_id: int, plan_id: str, subscription_status: str) -> dict:
        plan: PlanConfig = get_plan(plan_id)
        usage = self.usage(account_id)
        return {
            "plan_id": plan.id.value,
            "plan_name": plan.name,
            "price": plan.price,
            "subscription_status": subscription_status,
            "usage": {
                key.value: {
                    "used": used,
                    "limit": plan.limit_for(key),
                    "allowed": plan.check_limit(key, used),
                }
                for key, used in usage.items()
            },
            "features": {feature.value: plan.can_access(feature) for feature in FeatureKey},
        }
