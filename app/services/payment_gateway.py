"""
Stripe boundary: checkout session creation and webhook signature checks.

The stripe SDK is blocking, so calls go through FastAPI's threadpool.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import (
    AuthenticationError,
    ExternalServiceError,
    ProviderErrorKind,
)

logger = logging.getLogger(__name__)

USER_MESSAGES = {
    ProviderErrorKind.CARD_DECLINED: (
        "Your card was declined. Please check your card details or use another payment method."
    ),
    ProviderErrorKind.RATE_LIMITED: "Too many requests. Please try again in a moment.",
    ProviderErrorKind.INVALID_REQUEST: "Invalid request. Please check the information provided.",
    ProviderErrorKind.PROVIDER_UNAVAILABLE: (
        "The payment service is unavailable. Please try again later."
    ),
    ProviderErrorKind.MISCONFIGURED: "The payment service is not configured correctly.",
}


@dataclass
class CheckoutSession:
    id: str
    url: str


def classify_stripe_error(exc: Exception) -> ExternalServiceError:
    """Map an SDK exception onto the closed provider error kinds."""
    if isinstance(exc, stripe.CardError):
        kind = ProviderErrorKind.CARD_DECLINED
    elif isinstance(exc, stripe.RateLimitError):
        kind = ProviderErrorKind.RATE_LIMITED
    elif isinstance(exc, stripe.InvalidRequestError):
        kind = ProviderErrorKind.INVALID_REQUEST
    elif isinstance(exc, stripe.AuthenticationError):
        kind = ProviderErrorKind.MISCONFIGURED
    elif isinstance(exc, (stripe.APIConnectionError, stripe.APIError)):
        kind = ProviderErrorKind.PROVIDER_UNAVAILABLE
    else:
        kind = ProviderErrorKind.PROVIDER_UNAVAILABLE

    return ExternalServiceError(
        kind,
        USER_MESSAGES[kind],
        detail=getattr(exc, "user_message", None) or str(exc),
        provider_code=getattr(exc, "code", None),
    )


class StripeGateway:
    """Thin wrapper over the stripe SDK."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        tolerance: Optional[int] = None,
    ):
        self.api_key = settings.STRIPE_SECRET_KEY if api_key is None else api_key
        self.webhook_secret = (
            settings.STRIPE_WEBHOOK_SECRET if webhook_secret is None else webhook_secret
        )
        self.tolerance = settings.STRIPE_WEBHOOK_TOLERANCE if tolerance is None else tolerance

    async def create_checkout_session(self, params: Dict[str, Any]) -> CheckoutSession:
        if not self.api_key:
            raise ExternalServiceError(
                ProviderErrorKind.MISCONFIGURED,
                USER_MESSAGES[ProviderErrorKind.MISCONFIGURED],
                detail="STRIPE_SECRET_KEY is not set",
            )
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create, api_key=self.api_key, **params
            )
        except stripe.StripeError as exc:
            error = classify_stripe_error(exc)
            logger.error(
                "Stripe error creating session (%s, code=%s): %s",
                error.provider_kind.value, error.provider_code, error.detail
            )
            raise error from exc

        return CheckoutSession(id=session.id, url=session.url)

    def verify_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Check the Stripe-Signature header against the raw body and return
        the decoded event. The body must be the exact bytes received.
        """
        if not signature:
            raise AuthenticationError("Missing stripe-signature header")
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not set")
            raise ExternalServiceError(
                ProviderErrorKind.MISCONFIGURED,
                "Webhook secret not configured",
            )

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise AuthenticationError("Webhook payload is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, self.tolerance
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            raise AuthenticationError("Webhook signature verification failed") from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise AuthenticationError("Webhook payload is not valid JSON") from exc
        if not isinstance(event, dict):
            raise AuthenticationError("Webhook payload is not an event object")
        return event
