from fastapi import APIRouter, Depends

from app.api.deps import get_payment_intent_guard
from app.schemas.payment import PaymentIntentRequest, PaymentIntentResponse
from app.services.payment_intent_service import PaymentIntentGuard

router = APIRouter()


@router.post("/create", response_model=PaymentIntentResponse, response_model_by_alias=True)
async def create_payment(
    request: PaymentIntentRequest,
    guard: PaymentIntentGuard = Depends(get_payment_intent_guard)
):
    """Start a checkout session for a pending debt"""
    return await guard.create_intent(debt_id=request.debt_id, email=request.email)
