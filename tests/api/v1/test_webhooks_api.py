"""
Webhook intake and the full import -> pay -> confirm -> redeliver flow.
"""

from unittest.mock import AsyncMock

import pytest

from app.core.errors import PersistenceError
from app.repositories.debt_repo import DebtStore
from app.services.status_poller import PollOutcome, StatusPoller, http_status_reader
from tests.helpers import (
    checkout_completed_event,
    encode_event,
    payment_succeeded_event,
    sign_payload,
)

WEBHOOK_URL = "/api/v1/webhooks/stripe"


async def deliver(client, event, secret=None):
    payload = encode_event(event)
    signature = sign_payload(payload) if secret is None else sign_payload(payload, secret=secret)
    return await client.post(
        WEBHOOK_URL,
        content=payload,
        headers={"Stripe-Signature": signature, "Content-Type": "application/json"},
    )


@pytest.mark.asyncio
class TestStripeWebhook:

    async def test_applies_checkout_event(self, client, pending_debt):
        response = await deliver(client, checkout_completed_event(str(pending_debt.id)))

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "applied"}

    async def test_redelivery_acknowledged(self, client, pending_debt):
        event = checkout_completed_event(str(pending_debt.id))

        await deliver(client, event)
        response = await deliver(client, event)

        assert response.status_code == 200
        assert response.json()["outcome"] == "already-paid"

    async def test_bad_signature_is_400(self, client, store, pending_debt):
        response = await deliver(
            client, checkout_completed_event(str(pending_debt.id)), secret="whsec_wrong"
        )

        assert response.status_code == 400
        assert response.json()["code"] == "AUTHENTICATION_ERROR"
        assert (await store.find_by_id(pending_debt.id)).status.value == "PENDING"

    async def test_storage_fault_is_503_and_redelivery_recovers(
        self, client, store, pending_debt, monkeypatch
    ):
        event = checkout_completed_event(str(pending_debt.id), payment_intent="pi_retry")
        monkeypatch.setattr(
            DebtStore, "transition_to_paid_if_pending",
            AsyncMock(side_effect=PersistenceError("Database error: down")),
        )

        failed = await deliver(client, event)

        assert failed.status_code == 503
        assert failed.json()["code"] == "PERSISTENCE_ERROR"
        assert (await store.find_by_id(pending_debt.id)).status.value == "PENDING"

        monkeypatch.undo()
        retried = await deliver(client, event)

        assert retried.status_code == 200
        assert retried.json()["outcome"] == "applied"
        records = await store.list_payment_records(pending_debt.id)
        assert [record.external_ref for record in records] == ["pi_retry"]

    async def test_missing_signature_is_400(self, client, pending_debt):
        response = await client.post(
            WEBHOOK_URL, content=encode_event(checkout_completed_event(str(pending_debt.id)))
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Missing stripe-signature header"

    async def test_missing_debt_id_is_400(self, client):
        response = await deliver(client, checkout_completed_event(""))

        assert response.status_code == 400

    async def test_unhandled_event_acknowledged(self, client):
        response = await deliver(client, {"id": "evt_x", "type": "customer.created", "data": {"object": {}}})

        assert response.status_code == 200
        assert response.json()["outcome"] == "ignored"

    async def test_payment_intent_fallback(self, client, store, pending_debt):
        response = await deliver(client, payment_succeeded_event(intent_id="pi_fb"))

        assert response.json()["outcome"] == "applied"
        assert (await store.find_by_id(pending_debt.id)).external_ref == "pi_fb"


@pytest.mark.asyncio
async def test_import_pay_confirm_and_redeliver(client, fake_gateway):
    csv = "name,email,debtSubject,debtAmount\nA,a@x.com,rent,100\n"
    imported = await client.post(
        "/api/v1/debts/import", files={"file": ("debts.csv", csv.encode(), "text/csv")}
    )
    assert imported.json()["summary"]["created"] == 1

    debt = (await client.get("/api/v1/debts/a@x.com")).json()
    assert debt["status"] == "PENDING"

    intent = await client.post("/api/v1/payments/create", json={"debtId": debt["id"]})
    assert intent.status_code == 200
    params = fake_gateway.create_checkout_session.await_args.args[0]
    assert params["line_items"][0]["price_data"]["unit_amount"] == 10000

    event = checkout_completed_event(params["metadata"]["debtId"], payment_intent="pi_e2e")
    first = await deliver(client, event)
    second = await deliver(client, event)
    assert first.json()["outcome"] == "applied"
    assert second.json()["outcome"] == "already-paid"

    debt = (await client.get("/api/v1/debts/a@x.com")).json()
    assert debt["status"] == "PAID"
    assert debt["external_ref"] == "pi_e2e"

    history = (await client.get("/api/v1/debts/a@x.com/payments")).json()
    assert [record["external_ref"] for record in history] == ["pi_e2e"]

    retry = await client.post("/api/v1/payments/create", json={"debtId": debt["id"]})
    assert retry.status_code == 409
    assert fake_gateway.create_checkout_session.await_count == 1

    settled = []
    poller = StatusPoller(
        http_status_reader(client, "a@x.com"), lambda: settled.append(True), interval=0, timeout=0
    )
    assert await poller.run() == PollOutcome.SETTLED
    assert settled == [True]
