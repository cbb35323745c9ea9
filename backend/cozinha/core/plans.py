"""Subscription plan catalog.

A limit of ``None`` means unlimited.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional


class PlanType(str, Enum):
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


class LimitKey(str, Enum):
    ORDERS = "orders"  # per calendar month
    PRODUCTS = "products"  # total active
    CUSTOMERS = "customers"  # total


class FeatureKey(str, Enum):
    AI_INSIGHTS = "ai_insights"
    PUBLIC_MENU = "public_menu"
    PRIORITY_SUPPORT = "priority_support"
    CUSTOM_DOMAIN = "custom_domain"


@dataclass(frozen=True)
class PlanConfig:
    id: PlanType
    name: str
    price: Decimal
    limits: Dict[LimitKey, Optional[int]] = field(default_factory=dict)
    features: Dict[FeatureKey, bool] = field(default_factory=dict)

    def limit_for(self, key: LimitKey) -> Optional[int]:
        return self.limits.get(key)

    def check_limit(self, key: LimitKey, current_count: int) -> bool:
        """True when one more entity fits under the limit."""
        limit = self.limit_for(key)
        if limit is None:
            return True
        return current_count < limit

    def can_access(self, feature: FeatureKey) -> bool:
        return self.features.get(feature, False)


PLANS: Dict[PlanType, PlanConfig] = {
    PlanType.FREE: PlanConfig(
        id=PlanType.FREE,
        name="Gratuito",
        price=Decimal("0"),
        limits={LimitKey.ORDERS: 30, LimitKey.PRODUCTS: 10, LimitKey.CUSTOMERS: 20},
        features={
            FeatureKey.AI_INSIGHTS: False,
            FeatureKey.PUBLIC_MENU: True,
            FeatureKey.PRIORITY_SUPPORT: False,
            FeatureKey.CUSTOM_DOMAIN: False,
        },
    ),
    PlanType.PRO: PlanConfig(
        id=PlanType.PRO,
        name="PRO",
        price=Decimal("49.90"),
        limits={LimitKey.ORDERS: 200, LimitKey.PRODUCTS: 20, LimitKey.CUSTOMERS: 150},
        features={
            FeatureKey.AI_INSIGHTS: True,
            FeatureKey.PUBLIC_MENU: True,
            FeatureKey.PRIORITY_SUPPORT: False,
            FeatureKey.CUSTOM_DOMAIN: False,
        },
    ),
    PlanType.PREMIUM: PlanConfig(
        id=PlanType.PREMIUM,
        name="Premium",
        price=Decimal("97.00"),
        limits={LimitKey.ORDERS: None, LimitKey.PRODUCTS: None, LimitKey.CUSTOMERS: None},
        features={
            FeatureKey.AI_INSIGHTS: True,
            FeatureKey.PUBLIC_MENU: True,
            FeatureKey.PRIORITY_SUPPORT: True,
            FeatureKey.CUSTOM_DOMAIN: True,
        },
    ),
}


def get_plan(plan_id: Optional[str]) -> PlanConfig:
    """Resolve a plan id, falling back to the free plan for unknown ids."""
    try:
        return PLANS[PlanType(plan_id)]
    except ValueError:
        return PLANS[PlanType.FREE]
