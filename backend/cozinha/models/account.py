"""Account model."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from cozinha.core.plans import PlanType
from cozinha.db.base import Base, TimestampMixin


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"


class Account(Base, TimestampMixin):
    """A home food business. Owns every other row in the system."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    slug: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    plan_id: Mapped[str] = mapped_column(String(20), default=PlanType.FREE.value, nullable=False)
    subscription_status: Mapped[str] = mapped_column(
        String(20), default=SubscriptionStatus.TRIAL.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
