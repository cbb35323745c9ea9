"""Import orders from an Excel workbook.

The first worksheet is read with openpyxl; its first row holds the headers.
Headers are matched case-insensitively against Portuguese and English
aliases, so spreadsheets exported by the app and hand-made ones both work.

Each row becomes an ``ImportedOrderRow`` before anything is written:

    Cliente | Status      | Itens                      | Data Entrega
    Maria   | Em Produção | Brownie (2), Bolo de Pote  | 2024-05-10

Items without a ``(qty)`` suffix count as one unit. Unknown customers are
created, unknown products are skipped, and a row left without any product is
reported as an error.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional, Tuple

from openpyxl import load_workbook
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cozinha.core.exceptions import DomainError
from cozinha.core.plans import LimitKey
from cozinha.models.customer import Customer
from cozinha.models.order import OrderStatus
from cozinha.services.order_service import OrderService

logger = logging.getLogger(__name__)

CUSTOMER_ALIASES = ["Cliente", "name", "Customer", "cliente", "Nome"]
STATUS_ALIASES = ["Status", "status", "Estado", "Situacao"]
ITEMS_ALIASES = ["Items", "items", "Itens", "Produtos", "products"]
DATE_ALIASES = ["Data Entrega", "delivery_date", "Data", "Date", "Entrega"]

# Kanban column labels as shown in the app and in exported sheets
STATUS_LABELS = {
    "A Fazer": OrderStatus.PENDING,
    "Em Produção": OrderStatus.PREPARING,
    "Pronto": OrderStatus.READY,
    "Entregue": OrderStatus.DELIVERED,
}

NO_CUSTOMER = "Não informado"
IMPORT_NOTE = "Importado via Excel"

_ITEM_RE = re.compile(r"^(.*)\s\((\d+)\)$")
_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d/%m/%y", "%Y-%m-%d %H:%M:%S")


class ImportFileError(DomainError):
    """Raised when the uploaded file is not a readable workbook."""


@dataclass
class ImportedOrderRow:
    row_number: int
    customer_name: Optional[str]
    status: OrderStatus
    items: List[Tuple[str, int]] = field(default_factory=list)
    delivery_date: Optional[date] = None


@dataclass
class ImportSummary:
    created: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def get_value(row: Dict[str, Any], aliases: Iterable[str]) -> Any:
    """First value whose header matches one of the aliases, ignoring case."""
    normalized = {str(k).strip().lower(): v for k, v in row.items() if k is not None}
    for alias in aliases:
        if alias in row and row[alias] is not None:
            return row[alias]
        value = normalized.get(alias.strip().lower())
        if value is not None:
            return value
    return None


def parse_status(value: Any) -> OrderStatus:
    if value is None:
        return OrderStatus.PENDING
    text = str(value).strip()
    if text in STATUS_LABELS:
        return STATUS_LABELS[text]
    try:
        status = OrderStatus(text.lower())
    except ValueError:
        return OrderStatus.PENDING
    # Cancelled orders have no kanban column
    return status if status != OrderStatus.CANCELLED else OrderStatus.PENDING


def parse_items(value: Any) -> List[Tuple[str, int]]:
    """``"Brownie (2), Bolo"`` -> ``[("Brownie", 2), ("Bolo", 1)]``."""
    if not value:
        return []
    items = []
    for part in str(value).split(","):
        part = part.strip()
        if not part:
            continue
        match = _ITEM_RE.match(part)
        if match:
            quantity = int(match.group(2))
            if quantity <= 0:
                raise ValueError(f"Quantity must be positive: {part}")
            items.append((match.group(1).strip(), quantity))
        else:
            items.append((part, 1))
    return items


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date: {text}")


def read_rows(content: bytes) -> List[Dict[str, Any]]:
    """Rows of the first worksheet as header -> value dicts."""
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ImportFileError(f"Could not read workbook: {e}") from e

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        keys = [str(h).strip() if h is not None else None for h in header]
        result = []
        for values in rows:
            if values is None or all(v is None for v in values):
                continue
            result.append({k: v for k, v in zip(keys, values) if k})
        return result
    finally:
        workbook.close()


def parse_row(row_number: int, row: Dict[str, Any]) -> ImportedOrderRow:
    customer = get_value(row, CUSTOMER_ALIASES)
    customer_name = str(customer).strip() if customer is not None else None
    return ImportedOrderRow(
        row_number=row_number,
        customer_name=customer_name or None,
        status=parse_status(get_value(row, STATUS_ALIASES)),
        items=parse_items(get_value(row, ITEMS_ALIASES)),
        delivery_date=parse_date(get_value(row, DATE_ALIASES)),
    )


class OrderImportService:
    """Creates customers and orders from parsed spreadsheet rows."""

    def __init__(self, db: Session, order_service: Optional[OrderService] = None):
        self.db = db
        self.order_service = order_service or OrderService(db)

    def import_workbook(self, account_id: int, plan_id: str, content: bytes) -> ImportSummary:
        summary = ImportSummary()
        rows = read_rows(content)

        customers = {
            c.name.lower(): c
            for c in self.db.query(Customer).filter(Customer.owned_by(account_id)).all()
        }
        products = {
            p.name.lower(): p for p in self.order_service.stock_service.load_products(account_id)
        }

        # Header is row 1
        for row_number, raw in enumerate(rows, start=2):
            try:
                parsed = parse_row(row_number, raw)
            except ValueError as e:
                summary.errors.append(f"Row {row_number}: {e}")
                continue

            if not parsed.customer_name or parsed.customer_name == NO_CUSTOMER:
                summary.skipped += 1
                continue

            lines = []
            for name, qty in parsed.items:
                product = products.get(name.lower())
                if product is None:
                    logger.warning(f"Import row {row_number}: unknown product '{name}' skipped")
                    continue
                lines.append((product, Decimal(qty)))

            if not lines:
                summary.errors.append(f"Row {row_number}: no known products")
                continue

            try:
                customer = customers.get(parsed.customer_name.lower())
                if customer is None:
                    customer = self._create_customer(account_id, plan_id, parsed.customer_name)
                    customers[customer.name.lower()] = customer

                self.order_service.subscription_service.ensure_within_limit(
                    account_id, plan_id, LimitKey.ORDERS
                )
                self.order_service.create_imported_order(
                    account_id,
                    customer,
                    parsed.status,
                    lines,
                    parsed.delivery_date,
                    notes=IMPORT_NOTE,
                )
            except DomainError as e:
                summary.errors.append(f"Row {row_number}: {e.message}")
                continue
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Import row {row_number} failed: {e}")
                summary.errors.append(f"Row {row_number}: database error")
                continue

            summary.created += 1

        logger.info(
            f"Order import for account {account_id}: {summary.created} created, "
            f"{summary.skipped} skipped, {len(summary.errors)} error(s)"
        )
        return summary

    def _create_customer(self, account_id: int, plan_id: str, name: str) -> Customer:
        self.order_service.subscription_service.ensure_within_limit(
            account_id, plan_id, LimitKey.CUSTOMERS
        )
        customer = Customer(account_id=account_id, name=name)
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        logger.info(f"Customer '{name}' created by order import")
        return customer
