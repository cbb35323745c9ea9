"""Subscription schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel


class UsageLimit(BaseModel):
    used: int
    limit: Optional[int]
    allowed: bool


class SubscriptionResponse(BaseModel):
    plan_id: str
    plan_name: str
    price: Decimal
    subscription_status: str
    usage: Dict[str, UsageLimit]
    features: Dict[str, bool]
