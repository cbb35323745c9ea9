"""CRM schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from cozinha.models.crm import MessageChannel


class MessageTemplateCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    channel: MessageChannel = MessageChannel.WHATSAPP


class MessageTemplateResponse(BaseModel):
    id: int
    title: str
    content: str
    channel: MessageChannel
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageRequest(BaseModel):
    """Render a message for a customer and/or order.

    Either ``template_id`` or raw ``content`` may be given; with neither, the
    default text for the order's status is used.
    """

    customer_id: Optional[int] = None
    order_id: Optional[int] = None
    template_id: Optional[int] = None
    content: Optional[str] = None
    channel: MessageChannel = MessageChannel.WHATSAPP

    @model_validator(mode="after")
    def require_target(self) -> "MessageRequest":
        if self.customer_id is None and self.order_id is None:
            raise ValueError("customer_id or order_id is required")
        return self


class MessagePreview(BaseModel):
    message: str
    phone: Optional[str] = None
    whatsapp_link: Optional[str] = None


class MessageSentResponse(MessagePreview):
    interaction_id: int
    sent_at: datetime
