import hashlib
import hmac
import json
import time
import uuid
from decimal import Decimal

from app.schemas.importing import ImportRow

TEST_WEBHOOK_SECRET = "whsec_test_secret"


def sign_payload(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for a raw payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_event(
    debt_id: str,
    payment_intent: str = "pi_test_1",
    payment_status: str = "paid",
    amount_total: int = 10000,
    email: str = "a@x.com",
) -> dict:
    return {
        "id": f"evt_{uuid.uuid4().hex[:12]}",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_test_123",
                "object": "checkout.session",
                "payment_intent": payment_intent,
                "payment_status": payment_status,
                "amount_total": amount_total,
                "metadata": {"debtId": debt_id, "email": email},
            }
        },
    }


def payment_succeeded_event(
    intent_id: str = "pi_test_2",
    email: str = "a@x.com",
    debt_id: str = None,
    amount_received: int = 10000,
) -> dict:
    metadata = {"email": email}
    if debt_id:
        metadata["debtId"] = debt_id
    return {
        "id": f"evt_{uuid.uuid4().hex[:12]}",
        "object": "event",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "amount_received": amount_received,
                "metadata": metadata,
            }
        },
    }


def encode_event(event: dict) -> bytes:
    return json.dumps(event).encode("utf-8")


def row(name="A", email="a@x.com", subject="rent", amount="100") -> ImportRow:
    return ImportRow(name=name, email=email, debtSubject=subject, debtAmount=Decimal(amount))
