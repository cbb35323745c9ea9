"""Domain errors raised by services and their HTTP mapping."""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class DomainError(Exception):
    """Base class for errors the API reports back to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> Any:
        return self.message


class NotFoundError(DomainError):
    """Raised when an entity does not exist or belongs to another account."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidReferenceError(DomainError):
    """Raised when a payload references an entity the account does not own."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStatusTransition(DomainError):
    """Raised when an order status move is not allowed."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from '{current}' to '{target}'")


class MissingStockError(DomainError):
    """Raised when an operation needs more stock than is on hand."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, missing: List[Dict[str, Any]]):
        self.missing = missing
        names = ", ".join(item["name"] for item in missing)
        super().__init__(f"Insufficient stock for: {names}")

    def to_detail(self) -> Any:
        return {
            "message": self.message,
            "missing": [
                {k: (float(v) if isinstance(v, Decimal) else v) for k, v in item.items()}
                for item in self.missing
            ],
        }


class PlanLimitExceeded(DomainError):
    """Raised when the account's plan does not allow another entity."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, plan_id: str, limit_key: str, limit: Optional[int]):
        self.plan_id = plan_id
        self.limit_key = limit_key
        self.limit = limit
        super().__init__(
            f"Plan '{plan_id}' allows at most {limit} {limit_key}. Upgrade to continue."
        )

    def to_detail(self) -> Any:
        return {
            "message": self.message,
            "plan": self.plan_id,
            "limit_key": self.limit_key,
            "limit": self.limit,
        }


class StockWriteError(DomainError):
    """Raised when a stock movement could not be persisted."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, ingredient_id: int, reason: str):
        self.ingredient_id = ingredient_id
        self.reason = reason
        super().__init__(f"Failed to record stock movement for ingredient {ingredient_id}: {reason}")


async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def register_exception_handlers(app: FastAPI) -> None:
    """Map every DomainError subclass to its status code."""
    app.add_exception_handler(DomainError, domain_exception_handler)
