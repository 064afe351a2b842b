from decimal import Decimal

import pytest
from bson import ObjectId

from app.core.errors import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ProviderErrorKind,
    ValidationError,
)
from app.models.debt import DebtStatus
from app.services.payment_intent_service import PaymentIntentGuard
from tests.helpers import row


@pytest.fixture
def guard(store, fake_gateway):
    return PaymentIntentGuard(
        store, fake_gateway, base_url="https://pay.example.com/", currency="eur"
    )


@pytest.mark.asyncio
class TestCreateIntent:

    async def test_pending_debt_by_id(self, guard, fake_gateway, pending_debt):
        response = await guard.create_intent(debt_id=str(pending_debt.id))

        assert response.success is True
        assert response.session_id == "cs_test_123"
        assert response.redirect_url.startswith("https://checkout.stripe.com/")

        params = fake_gateway.create_checkout_session.await_args.args[0]
        assert params["line_items"][0]["price_data"]["unit_amount"] == 10000
        assert params["line_items"][0]["price_data"]["currency"] == "eur"
        assert params["metadata"]["debtId"] == str(pending_debt.id)
        assert params["payment_intent_data"]["metadata"]["email"] == "a@x.com"

    async def test_pending_debt_by_email(self, guard, fake_gateway, pending_debt):
        response = await guard.create_intent(email="A@x.com")

        assert response.session_id == "cs_test_123"
        fake_gateway.create_checkout_session.assert_awaited_once()

    async def test_debt_id_takes_precedence(self, guard, store, fake_gateway, pending_debt):
        _, other = await store.upsert_from_import(row(email="b@x.com", amount="7"))

        await guard.create_intent(debt_id=str(other.id), email="a@x.com")

        params = fake_gateway.create_checkout_session.await_args.args[0]
        assert params["metadata"]["debtId"] == str(other.id)
        assert params["line_items"][0]["price_data"]["unit_amount"] == 700

    async def test_paid_debt_conflicts_without_calling_gateway(
        self, guard, store, fake_gateway, pending_debt
    ):
        await store.transition_to_paid_if_pending(pending_debt.id, "pi_1")

        with pytest.raises(ConflictError, match="already been paid"):
            await guard.create_intent(debt_id=str(pending_debt.id))

        fake_gateway.create_checkout_session.assert_not_awaited()

    async def test_missing_identifiers(self, guard, fake_gateway):
        with pytest.raises(ValidationError, match="Either debtId or email"):
            await guard.create_intent()
        with pytest.raises(ValidationError):
            await guard.create_intent(email="   ")

        fake_gateway.create_checkout_session.assert_not_awaited()

    async def test_unknown_debt(self, guard, fake_gateway):
        with pytest.raises(NotFoundError):
            await guard.create_intent(debt_id=str(ObjectId()))
        with pytest.raises(NotFoundError):
            await guard.create_intent(email="nobody@x.com")

        fake_gateway.create_checkout_session.assert_not_awaited()

    async def test_amount_below_one_cent_rejected(self, guard, store, fake_gateway):
        _, debt = await store.upsert_from_import(row(email="tiny@x.com", amount="0.004"))

        with pytest.raises(ValidationError, match="Invalid debt amount"):
            await guard.create_intent(debt_id=str(debt.id))

        fake_gateway.create_checkout_session.assert_not_awaited()

    async def test_gateway_failure_leaves_debt_untouched(self, guard, fake_gateway, store, pending_debt):
        fake_gateway.create_checkout_session.side_effect = ExternalServiceError(
            ProviderErrorKind.CARD_DECLINED, "Your card was declined."
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await guard.create_intent(debt_id=str(pending_debt.id))

        assert exc_info.value.status_code == 402
        debt = await store.find_by_id(pending_debt.id)
        assert debt.status == DebtStatus.PENDING
        assert debt.external_ref is None
        assert await store.list_payment_records(pending_debt.id) == []


class TestBuildSessionParams:

    @pytest.mark.asyncio
    async def test_urls(self, guard, pending_debt):
        params = guard.build_session_params(pending_debt, 10000)

        assert params["mode"] == "payment"
        assert params["customer_email"] == "a@x.com"
        assert params["success_url"] == (
            "https://pay.example.com/payment/success?session_id={CHECKOUT_SESSION_ID}"
        )
        assert params["cancel_url"] == "https://pay.example.com/debtor/a%40x.com?canceled=true"
        assert params["metadata"] == {
            "debtId": str(pending_debt.id),
            "email": "a@x.com",
            "name": "A",
            "debtSubject": "rent",
        }

    @pytest.mark.asyncio
    async def test_rounding_is_half_to_even(self, guard, store):
        _, debt = await store.upsert_from_import(row(email="r@x.com", amount="10.015"))

        await guard.create_intent(debt_id=str(debt.id))

        params = guard.gateway.create_checkout_session.await_args.args[0]
        assert debt.amount == Decimal("10.015")
        assert params["line_items"][0]["price_data"]["unit_amount"] == 1002
