"""SQLAlchemy declarative base and common utilities."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class AccountOwnedMixin:
    """Rows that belong to exactly one business account.

    Every query issued on behalf of a user must filter with ``owned_by()``.
    """

    @declared_attr
    def account_id(cls) -> Mapped[int]:
        return mapped_column(
            ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
        )

    @classmethod
    def owned_by(cls, account_id: int):
        """SQLAlchemy filter expression: ``WHERE account_id = :account_id``."""
        return cls.account_id == account_id
