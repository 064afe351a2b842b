import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from app.core.config import settings
from app.core.errors import ConflictError, ValidationError
from app.models.debt import Debt
from app.repositories.debt_repo import DebtStore
from app.schemas.payment import PaymentIntentResponse
from app.services.payment_gateway import StripeGateway
from app.utils.money import to_minor_units

logger = logging.getLogger(__name__)


class PaymentIntentGuard:
    """
    Gates the start of a payment attempt.

    Read-only towards the store: a checkout that is abandoned or fails
    leaves the debt exactly as it was. Settlement is recorded only by the
    ConfirmationProcessor.
    """

    def __init__(
        self,
        store: DebtStore,
        gateway: StripeGateway,
        base_url: Optional[str] = None,
        currency: Optional[str] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.base_url = (base_url or settings.APP_BASE_URL).rstrip("/")
        self.currency = currency or settings.STRIPE_CURRENCY

    async def resolve(self, debt_id: Optional[str] = None, email: Optional[str] = None) -> Debt:
        if debt_id:
            return await self.store.find_by_id(debt_id)
        if email and email.strip():
            return await self.store.find_by_email(email)
        raise ValidationError("Either debtId or email is required")

    async def create_intent(
        self, debt_id: Optional[str] = None, email: Optional[str] = None
    ) -> PaymentIntentResponse:
        debt = await self.resolve(debt_id=debt_id, email=email)

        if debt.is_paid:
            raise ConflictError("This debt has already been paid")

        amount_minor = to_minor_units(debt.amount)
        if amount_minor <= 0:
            raise ValidationError("Invalid debt amount")

        session = await self.gateway.create_checkout_session(
            self.build_session_params(debt, amount_minor)
        )
        logger.info("Checkout session %s created for debt %s", session.id, debt.id)

        return PaymentIntentResponse(session_id=session.id, redirect_url=session.url)

    def build_session_params(self, debt: Debt, amount_minor: int) -> Dict[str, Any]:
        # The metadata is the correlation key the webhook handler relies on.
        metadata = {
            "debtId": str(debt.id),
            "email": debt.email,
            "name": debt.name,
            "debtSubject": debt.subject,
        }
        return {
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": debt.subject,
                            "description": f"Debt payment for {debt.name}",
                        },
                        "unit_amount": amount_minor,
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": f"{self.base_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.base_url}/debtor/{quote(debt.email, safe='')}?canceled=true",
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "customer_email": debt.email,
        }
