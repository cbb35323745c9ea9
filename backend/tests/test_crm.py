"""Tests for CRM message templates and WhatsApp links."""

import pytest
from datetime import date
from decimal import Decimal

from cozinha.models.crm import InteractionLog
from cozinha.models.customer import Customer
from cozinha.models.order import Order, OrderItem, OrderStatus
from cozinha.schemas.order import OrderCreate, OrderItemCreate
from cozinha.services.crm_service import (
    DEFAULT_STATUS_TEMPLATES,
    format_quantity,
    generate_whatsapp_link,
    parse_message_template,
)
from cozinha.services.order_service import OrderService


@pytest.fixture
def customer_order(db_session, test_account, brownie, test_customer):
    return OrderService(db_session).create_order(
        test_account.id,
        "free",
        OrderCreate(
            customer_id=test_customer.id,
            items=[OrderItemCreate(product_id=brownie.id, quantity=Decimal("3"))],
            delivery_date=date(2026, 5, 10),
        ),
    )


# ============== Placeholders ==============

class TestParseMessageTemplate:
    def test_customer_placeholders(self):
        customer = Customer(name="Maria Silva")
        message = parse_message_template("Oi {client_name} ({client_full_name})", customer=customer)
        assert message == "Oi Maria (Maria Silva)"

    def test_order_placeholders(self):
        order = Order(display_id=7, total_value=Decimal("29"), delivery_date=date(2026, 5, 10))
        order.items = [
            OrderItem(product_name="Brownie", quantity=Decimal("3.000"),
                      unit_price=Decimal("8"), subtotal=Decimal("24")),
            OrderItem(product_name="Bolo de pote", quantity=Decimal("1.5"),
                      unit_price=Decimal("10"), subtotal=Decimal("15")),
        ]
        message = parse_message_template(
            "Pedido #{order_id}: {items} = {total_value}, entrega {delivery_date}", order=order
        )
        assert message == "Pedido #7: 3x Brownie, 1.5x Bolo de pote = R$ 29.00, entrega 10/05/2026"

    def test_order_number_wins_over_display_id(self):
        order = Order(display_id=7, order_number="ENC-42", total_value=Decimal("0"))
        assert parse_message_template("#{order_id}", order=order) == "#ENC-42"

    def test_missing_delivery_date(self):
        order = Order(display_id=1, total_value=Decimal("0"))
        assert parse_message_template("{delivery_date}", order=order) == "Data a confirmar"

    def test_placeholders_without_source_are_kept(self):
        assert parse_message_template("Oi {client_name}") == "Oi {client_name}"

    def test_format_quantity(self):
        assert format_quantity(Decimal("2.000")) == "2"
        assert format_quantity(Decimal("0.250")) == "0.25"


class TestWhatsappLink:
    def test_phone_digits_only(self):
        link = generate_whatsapp_link("+55 (11) 98888-7777", "Oi")
        assert link == "https://wa.me/5511988887777?text=Oi"

    def test_message_is_percent_encoded(self):
        link = generate_whatsapp_link("5511988887777", "Olá Maria & cia #1")
        assert link.endswith("?text=Ol%C3%A1%20Maria%20%26%20cia%20%231")

    def test_every_status_has_a_default_template(self):
        assert set(DEFAULT_STATUS_TEMPLATES) == set(OrderStatus)


# ============== API ==============

class TestCrmApi:
    def test_create_and_list_templates(self, client, auth_headers):
        response = client.post(
            "/api/v1/crm/templates",
            json={"title": "Lembrete", "content": "Oi {client_name}, seu pedido sai amanhã!"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert response.json()["channel"] == "whatsapp"

        listing = client.get("/api/v1/crm/templates", headers=auth_headers).json()
        assert listing["total"] == 1

    def test_preview_uses_status_default(self, client, auth_headers, customer_order):
        response = client.post(
            "/api/v1/crm/messages/preview",
            json={"order_id": customer_order.id},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["message"].startswith("Olá Maria! Recebemos seu pedido #1 no valor de R$ 24.00")
        assert data["phone"] == "+55 (11) 98888-7777"
        assert data["whatsapp_link"].startswith("https://wa.me/5511988887777?text=")

    def test_preview_with_template(self, client, auth_headers, test_customer):
        template = client.post(
            "/api/v1/crm/templates",
            json={"title": "Oi", "content": "Oi {client_full_name}!"},
            headers=auth_headers,
        ).json()
        response = client.post(
            "/api/v1/crm/messages/preview",
            json={"customer_id": test_customer.id, "template_id": template["id"]},
            headers=auth_headers,
        )
        assert response.json()["message"] == "Oi Maria Silva!"

    def test_send_logs_interaction(self, client, auth_headers, db_session, customer_order):
        response = client.post(
            "/api/v1/crm/messages",
            json={"order_id": customer_order.id, "content": "Seu pedido #{order_id} está pronto"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "Seu pedido #1 está pronto"

        log = db_session.get(InteractionLog, data["interaction_id"])
        assert log.order_id == customer_order.id
        assert log.customer_id == customer_order.customer_id
        assert log.content == data["message"]

    def test_target_required(self, client, auth_headers):
        response = client.post("/api/v1/crm/messages/preview", json={"content": "Oi"}, headers=auth_headers)
        assert response.status_code == 422

    def test_order_of_other_customer_rejected(self, client, auth_headers, db_session, test_account, customer_order):
        other = Customer(account_id=test_account.id, name="João")
        db_session.add(other)
        db_session.commit()
        response = client.post(
            "/api/v1/crm/messages/preview",
            json={"customer_id": other.id, "order_id": customer_order.id},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_other_account_customer(self, client, other_headers, test_customer):
        response = client.post(
            "/api/v1/crm/messages/preview",
            json={"customer_id": test_customer.id, "content": "Oi"},
            headers=other_headers,
        )
        assert response.status_code == 404
