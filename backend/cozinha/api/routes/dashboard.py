"""Dashboard routes."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from cozinha.core.auth import CurrentAccount
from cozinha.core.rate_limit import limiter
from cozinha.db.session import DbSession
from cozinha.schemas.analytics import DashboardResponse
from cozinha.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get("/metrics", response_model=DashboardResponse)
@limiter.limit("60/minute")
def get_metrics(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    period: Optional[int] = Query(None, description="7, 30 or 90 days"),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
):
    """Revenue, cost, profit, product performance and stock for a period."""
    try:
        return AnalyticsService(db).dashboard(current_account.account_id, period, start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
