from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from app.api.deps import get_confirmation_processor
from app.schemas.payment import WebhookAck
from app.services.confirmation_service import ConfirmationProcessor

router = APIRouter()


@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    processor: ConfirmationProcessor = Depends(get_confirmation_processor)
):
    """
    Stripe event intake. The body is read raw: the signature is computed
    over the exact bytes sent.
    """
    payload = await request.body()
    result = await processor.process(payload, stripe_signature)
    return WebhookAck(outcome=result.outcome.value)
