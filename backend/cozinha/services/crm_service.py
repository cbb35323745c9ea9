"""CRM messaging: templates, WhatsApp links and interaction history."""

import logging
import re
from datetime import date
from decimal import Decimal
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy.orm import Session, selectinload

from cozinha.core.config import settings
from cozinha.core.exceptions import InvalidReferenceError, NotFoundError
from cozinha.models.crm import InteractionLog, MessageChannel, MessageTemplate
from cozinha.models.customer import Customer
from cozinha.models.order import Order, OrderStatus

logger = logging.getLogger(__name__)

NO_DATE = "Data a confirmar"

DEFAULT_STATUS_TEMPLATES = {
    OrderStatus.PENDING: (
        "Olá {client_name}! Recebemos seu pedido #{order_id} no valor de {total_value}. "
        "Já vamos confirmar e começar a preparar! 👩‍🍳"
    ),
    OrderStatus.PREPARING: (
        "Oi {client_name}! Tudo certo com seu pedido #{order_id}. Ele já está sendo "
        "preparado com muito carinho e em breve estará pronto! 🥘"
    ),
    OrderStatus.READY: (
        "Olá {client_name}! Boas notícias: seu pedido #{order_id} está pronto e saindo "
        "para entrega/retirada! 🎉"
    ),
    OrderStatus.DELIVERED: (
        "Oi {client_name}, seu pedido foi entregue! Espero que goste. Muito obrigado pela "
        "preferência e até a próxima! ❤️"
    ),
    OrderStatus.CANCELLED: (
        "Olá {client_name}, infelizmente seu pedido #{order_id} precisou ser cancelado. "
        "Por favor, entre em contato para mais detalhes."
    ),
}


def default_template_for_status(status: OrderStatus) -> str:
    try:
        return DEFAULT_STATUS_TEMPLATES[OrderStatus(status)]
    except ValueError:
        return ""


def format_money(value: Decimal) -> str:
    return f"{settings.currency_symbol} {Decimal(value):.2f}"


def format_quantity(value: Decimal) -> str:
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def format_date(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value else NO_DATE


def parse_message_template(
    template: str,
    order: Optional[Order] = None,
    customer: Optional[Customer] = None,
) -> str:
    """Fill ``{placeholder}`` fields from a customer and an order.

    Placeholders whose source is not given are left untouched.
    """
    message = template

    if customer is not None:
        full_name = customer.name.strip()
        first_name = full_name.split(" ")[0] if full_name else ""
        message = message.replace("{client_name}", first_name)
        message = message.replace("{client_full_name}", full_name)

    if order is not None:
        items = ", ".join(
            f"{format_quantity(i.quantity)}x {i.product_name}" for i in order.items
        )
        message = message.replace("{order_id}", order.order_number or str(order.display_id))
        message = message.replace("{total_value}", format_money(order.total_value))
        message = message.replace("{delivery_date}", format_date(order.delivery_date))
        message = message.replace("{items}", items)

    return message


def generate_whatsapp_link(phone: str, message: str) -> str:
    digits = re.sub(r"\D", "", phone)
    return f"https://wa.me/{digits}?text={quote(message, safe='')}"


class CRMService:
    """Renders messages for customers and records what was sent."""

    def __init__(self, db: Session):
        self.db = db

    def list_templates(self, account_id: int) -> List[MessageTemplate]:
        return (
            self.db.query(MessageTemplate)
            .filter(MessageTemplate.owned_by(account_id))
            .order_by(MessageTemplate.title)
            .all()
        )

    def create_template(
        self, account_id: int, title: str, content: str, channel: MessageChannel
    ) -> MessageTemplate:
        template = MessageTemplate(
            account_id=account_id,
            title=title,
            content=content,
            channel=MessageChannel(channel).value,
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)
        return template

    def _resolve(
        self,
        account_id: int,
        customer_id: Optional[int],
        order_id: Optional[int],
    ):
        order = None
        if order_id is not None:
            order = (
                self.db.query(Order)
                .options(selectinload(Order.items))
                .filter(Order.id == order_id, Order.owned_by(account_id))
                .first()
            )
            if order is None:
                raise NotFoundError("Order", order_id)

        customer = None
        if customer_id is not None:
            customer = (
                self.db.query(Customer)
                .filter(Customer.id == customer_id, Customer.owned_by(account_id))
                .first()
            )
            if customer is None:
                raise NotFoundError("Customer", customer_id)
            if order is not None and order.customer_id not in (None, customer.id):
                raise InvalidReferenceError(
                    f"Order {order.id} does not belong to customer {customer.id}"
                )
        elif order is not None and order.customer_id is not None:
            customer = self.db.get(Customer, order.customer_id)

        return customer, order

    def render(
        self,
        account_id: int,
        customer_id: Optional[int] = None,
        order_id: Optional[int] = None,
        template_id: Optional[int] = None,
        content: Optional[str] = None,
        channel: MessageChannel = MessageChannel.WHATSAPP,
    ) -> dict:
        """Message text and, for WhatsApp, the deep link to send it."""
        customer, order = self._resolve(account_id, customer_id, order_id)

        if content is None and template_id is not None:
            template = (
                self.db.query(MessageTemplate)
                .filter(MessageTemplate.id == template_id, MessageTemplate.owned_by(account_id))
                .first()
            )
            if template is None:
                raise NotFoundError("MessageTemplate", template_id)
            content = template.content
        if content is None:
            content = default_template_for_status(order.status) if order is not None else ""

        message = parse_message_template(content, order=order, customer=customer)
        phone = customer.phone if customer is not None else None
        link = None
        if phone and MessageChannel(channel) == MessageChannel.WHATSAPP:
            link = generate_whatsapp_link(phone, message)

        return {
            "message": message,
            "phone": phone,
            "whatsapp_link": link,
            "customer": customer,
            "order": order,
        }

    def send(
        self,
        account_id: int,
        customer_id: Optional[int] = None,
        order_id: Optional[int] = None,
        template_id: Optional[int] = None,
        content: Optional[str] = None,
        channel: MessageChannel = MessageChannel.WHATSAPP,
    ) -> dict:
        """Render a message and record it in the customer's history."""
        rendered = self.render(account_id, customer_id, order_id, template_id, content, channel)
        customer = rendered.pop("customer")
        order = rendered.pop("order")

        log = InteractionLog(
            account_id=account_id,
            customer_id=customer.id if customer else None,
            order_id=order.id if order else None,
            channel=MessageChannel(channel).value,
            content=rendered["message"],
        )
        self.db.add(log)
        self.db.commit()
        self.db.refresh(log)

        logger.info(
            f"Message logged for account {account_id} "
            f"(customer={log.customer_id}, order={log.order_id}, channel={log.channel})"
        )
        rendered["interaction_id"] = log.id
        rendered["sent_at"] = log.sent_at
        return rendered
