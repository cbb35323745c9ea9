"""Tests for importing orders from Excel workbooks."""

import pytest
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook

from cozinha.models.customer import Customer
from cozinha.models.order import Order, OrderStatus
from cozinha.models.stock import StockMovement
from cozinha.services.order_import_service import (
    IMPORT_NOTE,
    ImportFileError,
    OrderImportService,
    get_value,
    parse_date,
    parse_items,
    parse_status,
)


def build_workbook(rows, header=("Cliente", "Status", "Itens", "Data Entrega")):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(list(header))
    for row in rows:
        sheet.append(list(row))
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# ============== Parsing ==============

class TestParsing:
    def test_parse_items(self):
        assert parse_items("Brownie (2), Bolo de Pote , ,Cookie (10)") == [
            ("Brownie", 2),
            ("Bolo de Pote", 1),
            ("Cookie", 10),
        ]

    def test_parse_items_empty(self):
        assert parse_items(None) == []
        assert parse_items("") == []

    def test_parse_items_rejects_zero_quantity(self):
        with pytest.raises(ValueError):
            parse_items("Brownie (2), Cookie (0)")

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("A Fazer", OrderStatus.PENDING),
            ("Em Produção", OrderStatus.PREPARING),
            ("Pronto", OrderStatus.READY),
            ("Entregue", OrderStatus.DELIVERED),
            ("delivered", OrderStatus.DELIVERED),
            ("cancelled", OrderStatus.PENDING),
            ("???", OrderStatus.PENDING),
            (None, OrderStatus.PENDING),
        ],
    )
    def test_parse_status(self, value, expected):
        assert parse_status(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2026-05-10", date(2026, 5, 10)),
            ("10/05/2026", date(2026, 5, 10)),
            ("10/05/26", date(2026, 5, 10)),
            (datetime(2026, 5, 10, 14, 30), date(2026, 5, 10)),
            (date(2026, 5, 10), date(2026, 5, 10)),
            (None, None),
        ],
    )
    def test_parse_date(self, value, expected):
        assert parse_date(value) == expected

    def test_parse_date_invalid(self):
        with pytest.raises(ValueError):
            parse_date("next friday")

    def test_get_value_ignores_header_case(self):
        assert get_value({"CLIENTE": "Ana"}, ["Cliente"]) == "Ana"
        assert get_value({"name": "Ana"}, ["Cliente", "name"]) == "Ana"
        assert get_value({"Outro": "x"}, ["Cliente"]) is None


# ============== OrderImportService ==============

class TestImportWorkbook:
    def test_creates_orders_and_customers(self, db_session, test_account, brownie, test_customer):
        content = build_workbook([
            ("Maria Silva", "Em Produção", "Brownie (2)", "10/05/2026"),
            ("Nova Cliente", "A Fazer", "brownie, Bolo inexistente", None),
        ])
        summary = OrderImportService(db_session).import_workbook(test_account.id, "free", content)

        assert summary.created == 2
        assert summary.skipped == 0
        assert summary.errors == []

        orders = db_session.query(Order).order_by(Order.display_id).all()
        assert orders[0].customer_id == test_customer.id
        assert orders[0].status == "preparing"
        assert orders[0].delivery_date == date(2026, 5, 10)
        assert orders[0].total_value == Decimal("16.00")
        assert orders[0].notes == IMPORT_NOTE
        assert orders[1].items[0].quantity == Decimal("1")

        new_customer = db_session.query(Customer).filter(Customer.name == "Nova Cliente").one()
        assert new_customer.total_orders == 1

    def test_skips_rows_without_customer(self, db_session, test_account, brownie):
        content = build_workbook([
            ("Não informado", "A Fazer", "Brownie", None),
            (None, "A Fazer", "Brownie", None),
        ])
        summary = OrderImportService(db_session).import_workbook(test_account.id, "free", content)
        assert summary.created == 0
        assert summary.skipped == 2

    def test_reports_bad_rows(self, db_session, test_account, brownie):
        content = build_workbook([
            ("Ana", "A Fazer", "Torta de limão", None),
            ("Bia", "A Fazer", "Brownie", "amanhã"),
            ("Carla", "Pronto", "Brownie (4)", "2026-05-12"),
        ])
        summary = OrderImportService(db_session).import_workbook(test_account.id, "free", content)

        assert summary.created == 1
        assert len(summary.errors) == 2
        assert summary.errors[0].startswith("Row 2:")
        assert summary.errors[1].startswith("Row 3:")

    def test_zero_quantity_row_is_an_error(self, db_session, test_account, brownie):
        content = build_workbook([("Joana", "A Fazer", "Brownie (0)", None)])
        summary = OrderImportService(db_session).import_workbook(test_account.id, "free", content)

        assert summary.created == 0
        assert len(summary.errors) == 1
        assert summary.errors[0].startswith("Row 2:")
        assert db_session.query(Order).count() == 0
        assert db_session.query(Customer).filter(Customer.name == "Joana").count() == 0

    def test_delivered_rows_do_not_consume_stock(self, db_session, test_account, brownie, egg):
        content = build_workbook([("Ana", "Entregue", "Brownie (3)", "2026-05-01")])
        summary = OrderImportService(db_session).import_workbook(test_account.id, "free", content)

        assert summary.created == 1
        order = db_session.query(Order).one()
        assert order.status == "delivered"
        assert order.delivered_at is not None
        db_session.refresh(egg)
        assert egg.stock_quantity == Decimal("12")
        assert db_session.query(StockMovement).count() == 0

    def test_english_headers(self, db_session, test_account, brownie):
        content = build_workbook(
            [("Ana", "ready", "Brownie (1)", "2026-05-12")],
            header=("name", "status", "items", "delivery_date"),
        )
        summary = OrderImportService(db_session).import_workbook(test_account.id, "free", content)
        assert summary.created == 1
        assert db_session.query(Order).one().status == "ready"

    def test_unreadable_file(self, db_session, test_account):
        with pytest.raises(ImportFileError):
            OrderImportService(db_session).import_workbook(test_account.id, "free", b"not a workbook")


# ============== API ==============

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class TestImportApi:
    def test_upload(self, client, auth_headers, brownie):
        content = build_workbook([("Maria", "A Fazer", "Brownie (2)", "2026-05-10")])
        response = client.post(
            "/api/v1/orders/import",
            files={"file": ("pedidos.xlsx", content, XLSX)},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"created": 1, "skipped": 0, "errors": []}

    def test_rejects_other_extensions(self, client, auth_headers):
        response = client.post(
            "/api/v1/orders/import",
            files={"file": ("pedidos.csv", b"Cliente,Itens", "text/csv")},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_corrupt_workbook(self, client, auth_headers):
        response = client.post(
            "/api/v1/orders/import",
            files={"file": ("pedidos.xlsx", b"garbage", XLSX)},
            headers=auth_headers,
        )
        assert response.status_code == 400
