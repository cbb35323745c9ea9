"""Order routes: CRUD, kanban flow, duplication, import and stock reconciliation."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile, status

from cozinha.core.auth import CurrentAccount
from cozinha.core.rate_limit import limiter
from cozinha.core.responses import list_response
from cozinha.db.session import DbSession
from cozinha.models.order import OrderStatus
from cozinha.schemas.order import (
    KanbanBoardResponse,
    OrderCreate,
    OrderDetailResponse,
    OrderImportResult,
    OrderResponse,
    OrderStatusUpdate,
)
from cozinha.schemas.stock import (
    ReconciliationResponse,
    StockAlertResponse,
    StockDeficitResponse,
    StockMovementResponse,
)
from cozinha.services.order_import_service import OrderImportService
from cozinha.services.order_service import OrderService
from cozinha.services.stock_reconciliation_service import StockReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_IMPORT_BYTES = 5 * 1024 * 1024
XLSX_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/octet-stream",
}


@router.get("")
@limiter.limit("60/minute")
def list_orders(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    customer_id: Optional[int] = Query(None),
    start: Optional[date] = Query(None, description="Delivery date from"),
    end: Optional[date] = Query(None, description="Delivery date to"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    orders, total = OrderService(db).list_orders(
        current_account.account_id, status_filter, customer_id, start, end, skip, limit
    )
    return list_response([OrderResponse.model_validate(o) for o in orders], total)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_order(
    request: Request,
    body: OrderCreate,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Create a pending order."""
    return OrderService(db).create_order(
        current_account.account_id, current_account.plan_id, body
    )


@router.get("/board", response_model=KanbanBoardResponse)
@limiter.limit("60/minute")
def get_board(request: Request, db: DbSession, current_account: CurrentAccount):
    """Open orders grouped by kanban column."""
    columns = OrderService(db).board(current_account.account_id)
    return {
        "columns": {
            key: [OrderResponse.model_validate(o) for o in orders]
            for key, orders in columns.items()
        },
        "total": sum(len(orders) for orders in columns.values()),
    }


@router.get("/stock-alerts")
@limiter.limit("60/minute")
def list_stock_alerts(request: Request, db: DbSession, current_account: CurrentAccount):
    """Open orders that use an ingredient whose stock is below zero."""
    alerts = StockReconciliationService(db).orders_with_negative_stock(current_account.account_id)
    return list_response(
        [
            StockAlertResponse(
                order_id=order.id,
                display_id=order.display_id,
                deficits=[StockDeficitResponse.model_validate(d) for d in deficits],
            )
            for order, deficits in alerts
        ]
    )


@router.post("/import", response_model=OrderImportResult)
@limiter.limit("5/minute")
def import_orders(
    request: Request,
    db: DbSession,
    current_account: CurrentAccount,
    file: UploadFile = File(...),
):
    """Import orders from an .xlsx spreadsheet."""
    if file.filename and not file.filename.lower().endswith(".xlsx"):
        raise HTTPException(status_code=400, detail="Only .xlsx files are supported")
    if file.content_type and file.content_type not in XLSX_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported content type: {file.content_type}")

    content = file.file.read()
    if len(content) > MAX_IMPORT_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    summary = OrderImportService(db).import_workbook(
        current_account.account_id, current_account.plan_id, content
    )
    return OrderImportResult(created=summary.created, skipped=summary.skipped, errors=summary.errors)


@router.get("/{order_id}", response_model=OrderDetailResponse)
@limiter.limit("60/minute")
def get_order(request: Request, order_id: int, db: DbSession, current_account: CurrentAccount):
    return OrderService(db).get_order(current_account.account_id, order_id)


@router.patch("/{order_id}/status", response_model=OrderResponse)
@limiter.limit("60/minute")
def update_order_status(
    request: Request,
    order_id: int,
    body: OrderStatusUpdate,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Move an order to another kanban column."""
    return OrderService(db).change_status(current_account.account_id, order_id, body.status)


@router.post("/{order_id}/duplicate", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def duplicate_order(
    request: Request,
    order_id: int,
    db: DbSession,
    current_account: CurrentAccount,
    auto_restock: bool = Query(False, description="Cover missing stock with 'in' movements"),
):
    """Copy an order as a new pending one."""
    return OrderService(db).duplicate_order(
        current_account.account_id, current_account.plan_id, order_id, auto_restock
    )


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def delete_order(request: Request, order_id: int, db: DbSession, current_account: CurrentAccount):
    OrderService(db).delete_order(current_account.account_id, order_id)


@router.get("/{order_id}/stock-deficits")
@limiter.limit("60/minute")
def get_stock_deficits(
    request: Request, order_id: int, db: DbSession, current_account: CurrentAccount
):
    """Negative ingredients a reconciliation of this order would regularize."""
    service = StockReconciliationService(db)
    order = service.get_order(current_account.account_id, order_id)
    deficits = service.preview(current_account.account_id, order)
    return list_response([StockDeficitResponse.model_validate(d) for d in deficits])


@router.post("/{order_id}/reconcile-stock", response_model=ReconciliationResponse)
@limiter.limit("10/minute")
def reconcile_stock(
    request: Request, order_id: int, db: DbSession, current_account: CurrentAccount
):
    """Bring every negative ingredient of the order back to zero."""
    service = StockReconciliationService(db)
    order = service.get_order(current_account.account_id, order_id)
    result = service.reconcile(current_account.account_id, order)
    return ReconciliationResponse(
        order_id=result.order_id,
        success=result.success,
        applied=[StockMovementResponse.model_validate(m) for m in result.applied],
        failed=result.failed,
    )
