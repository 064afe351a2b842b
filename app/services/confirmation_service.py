"""
ConfirmationProcessor - applies provider settlement events exactly-once-effectively.

Per event: received -> signature-verified -> dispatched -> applied | ignored,
or rejected (AuthenticationError) before dispatch.

Delivery is at-least-once. Both writes are idempotent (conditional status
transition, unique external_ref on payment records), so a redelivery after
any partial failure is always safe.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from app.core.errors import DuplicateError, NotFoundError, ValidationError
from app.models.debt import Debt
from app.models.payment_record import PaymentRecord
from app.repositories.debt_repo import DebtStore, TransitionOutcome
from app.services.notification_service import NotificationError, Notifier
from app.services.payment_gateway import StripeGateway
from app.utils.money import from_minor_units

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "payment_intent.succeeded"


class ConfirmationOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_PAID = "already-paid"
    IGNORED = "ignored"


@dataclass
class ConfirmationResult:
    outcome: ConfirmationOutcome
    event_type: str
    debt_id: Optional[str] = None


def _reference(value: Any) -> Optional[str]:
    # payment_intent may arrive expanded as an object
    if isinstance(value, dict):
        return value.get("id")
    return value or None


def _minor_amount(value: Any) -> Optional[Decimal]:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return from_minor_units(value)
    return None


class ConfirmationProcessor:
    def __init__(
        self,
        store: DebtStore,
        gateway: StripeGateway,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.notifier = notifier

    async def process(self, payload: bytes, signature: Optional[str]) -> ConfirmationResult:
        """Verify the raw payload, then dispatch the decoded event."""
        event = self.gateway.verify_event(payload, signature)
        return await self.dispatch(event)

    async def dispatch(self, event: Dict[str, Any]) -> ConfirmationResult:
        event_type = event.get("type") or ""
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == CHECKOUT_COMPLETED:
            return await self._handle_checkout_completed(obj)
        if event_type == PAYMENT_SUCCEEDED:
            return await self._handle_payment_succeeded(obj)

        # Unknown types are acknowledged so the sender does not retry them.
        logger.info("Unhandled event type: %s", event_type)
        return ConfirmationResult(ConfirmationOutcome.IGNORED, event_type)

    async def _handle_checkout_completed(self, session: Dict[str, Any]) -> ConfirmationResult:
        metadata = session.get("metadata") or {}
        debt_id = metadata.get("debtId")
        if not debt_id:
            logger.error("No debtId in session metadata (session %s)", session.get("id"))
            raise ValidationError("Missing debtId in session metadata")

        if session.get("payment_status") != "paid":
            logger.info(
                "Checkout session %s for debt %s not paid (%s), ignoring",
                session.get("id"), debt_id, session.get("payment_status")
            )
            return ConfirmationResult(ConfirmationOutcome.IGNORED, CHECKOUT_COMPLETED, debt_id)

        reference = _reference(session.get("payment_intent")) or session.get("id")
        if not reference:
            raise ValidationError("Missing payment reference in checkout session")

        try:
            debt = await self.store.find_by_id(debt_id)
        except NotFoundError:
            logger.warning("Checkout session %s references unknown debt %s", session.get("id"), debt_id)
            return ConfirmationResult(ConfirmationOutcome.IGNORED, CHECKOUT_COMPLETED, debt_id)

        outcome = await self._settle(debt, reference, _minor_amount(session.get("amount_total")))
        return ConfirmationResult(outcome, CHECKOUT_COMPLETED, str(debt.id))

    async def _handle_payment_succeeded(self, intent: Dict[str, Any]) -> ConfirmationResult:
        """
        Fallback path. Correlation by email is weaker than by id: the email
        is only as good as the metadata attached when the intent was created.
        """
        metadata = intent.get("metadata") or {}
        reference = intent.get("id")
        debt_id = metadata.get("debtId")
        email = metadata.get("email")

        if not reference or not (debt_id or email):
            return ConfirmationResult(ConfirmationOutcome.IGNORED, PAYMENT_SUCCEEDED)

        try:
            if debt_id:
                debt = await self.store.find_by_id(debt_id)
            else:
                debt = await self.store.find_by_email(email)
        except NotFoundError:
            logger.info("payment_intent %s matches no debt, ignoring", reference)
            return ConfirmationResult(ConfirmationOutcome.IGNORED, PAYMENT_SUCCEEDED)

        if debt.is_paid:
            return ConfirmationResult(ConfirmationOutcome.IGNORED, PAYMENT_SUCCEEDED, str(debt.id))

        amount = _minor_amount(intent.get("amount_received")) or _minor_amount(intent.get("amount"))
        outcome = await self._settle(debt, reference, amount)
        return ConfirmationResult(outcome, PAYMENT_SUCCEEDED, str(debt.id))

    async def _settle(
        self, debt: Debt, reference: str, amount: Optional[Decimal]
    ) -> ConfirmationOutcome:
        transition = await self.store.transition_to_paid_if_pending(debt.id, reference)
        record = PaymentRecord(
            debt_id=debt.id,
            amount=amount or debt.amount,
            external_ref=reference,
        )

        if transition == TransitionOutcome.ALREADY_PAID:
            current = await self.store.find_by_id(debt.id)
            if current.external_ref == reference:
                # Same settlement replayed: make sure its record exists, in
                # case an earlier delivery stopped between the two writes.
                try:
                    await self.store.append_payment_record(debt.id, record)
                    logger.info("Recovered missing payment record %s for debt %s", reference, debt.id)
                except DuplicateError:
                    pass
            logger.info("Debt %s already paid, event %s is a no-op", debt.id, reference)
            return ConfirmationOutcome.ALREADY_PAID

        try:
            await self.store.append_payment_record(debt.id, record)
        except DuplicateError:
            logger.warning("Payment record %s already exists (debt %s)", reference, debt.id)

        logger.info("Debt %s marked as paid. Payment ID: %s", debt.id, reference)
        await self._notify_paid(debt, record)
        return ConfirmationOutcome.APPLIED

    async def _notify_paid(self, debt: Debt, record: PaymentRecord) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.send_payment_confirmation_email(
                debt.email, debt.name, record.amount, debt.subject, record.external_ref
            )
        except NotificationError as exc:
            logger.warning("Failed to send payment confirmation to %s: %s", debt.email, exc)
