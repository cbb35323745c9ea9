"""CRM routes: message templates and customer messages."""

from fastapi import APIRouter, Request, status

from cozinha.core.auth import CurrentAccount
from cozinha.core.rate_limit import limiter
from cozinha.core.responses import list_response
from cozinha.db.session import DbSession
from cozinha.schemas.crm import (
    MessagePreview,
    MessageRequest,
    MessageSentResponse,
    MessageTemplateCreate,
    MessageTemplateResponse,
)
from cozinha.services.crm_service import CRMService

router = APIRouter()


@router.get("/templates")
@limiter.limit("60/minute")
def list_templates(request: Request, db: DbSession, current_account: CurrentAccount):
    templates = CRMService(db).list_templates(current_account.account_id)
    return list_response([MessageTemplateResponse.model_validate(t) for t in templates])


@router.post("/templates", response_model=MessageTemplateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_template(
    request: Request,
    body: MessageTemplateCreate,
    db: DbSession,
    current_account: CurrentAccount,
):
    return CRMService(db).create_template(
        current_account.account_id, body.title, body.content, body.channel
    )


@router.post("/messages/preview", response_model=MessagePreview)
@limiter.limit("60/minute")
def preview_message(
    request: Request,
    body: MessageRequest,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Render a message without recording it."""
    rendered = CRMService(db).render(
        current_account.account_id,
        customer_id=body.customer_id,
        order_id=body.order_id,
        template_id=body.template_id,
        content=body.content,
        channel=body.channel,
    )
    return MessagePreview(
        message=rendered["message"],
        phone=rendered["phone"],
        whatsapp_link=rendered["whatsapp_link"],
    )


@router.post("/messages", response_model=MessageSentResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def send_message(
    request: Request,
    body: MessageRequest,
    db: DbSession,
    current_account: CurrentAccount,
):
    """Render a message, log it in the customer's history and return its link."""
    return CRMService(db).send(
        current_account.account_id,
        customer_id=body.customer_id,
        order_id=body.order_id,
        template_id=body.template_id,
        content=body.content,
        channel=body.channel,
    )
