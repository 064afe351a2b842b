import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.api.deps import get_gateway, get_notifier
from app.db.mongo import create_indexes, get_db
from app.main import app
from app.repositories.debt_repo import DebtStore
from app.schemas.importing import ImportRow
from app.services.notification_service import Notifier
from app.services.payment_gateway import CheckoutSession, StripeGateway
from tests.helpers import TEST_WEBHOOK_SECRET


@pytest_asyncio.fixture
async def test_db():
    """In-memory Mongo database with the production indexes."""
    client = AsyncMongoMockClient(tz_aware=True)
    db = client[f"debts_test_{uuid.uuid4().hex}"]
    await create_indexes(db)
    yield db


@pytest_asyncio.fixture
async def store(test_db) -> DebtStore:
    return DebtStore(test_db)


@pytest.fixture
def sample_row() -> ImportRow:
    return ImportRow(name="A", email="a@x.com", debtSubject="rent", debtAmount="100")


@pytest_asyncio.fixture
async def pending_debt(store, sample_row):
    _, debt = await store.upsert_from_import(sample_row)
    return debt


@pytest.fixture
def fake_gateway():
    """Gateway whose checkout call is mocked but whose signature check is real."""
    gateway = StripeGateway(api_key="sk_test_123", webhook_secret=TEST_WEBHOOK_SECRET)
    gateway.create_checkout_session = AsyncMock(
        return_value=CheckoutSession(
            id="cs_test_123",
            url="https://checkout.stripe.com/c/pay/cs_test_123",
        )
    )
    return gateway


@pytest.fixture
def fake_notifier():
    notifier = MagicMock(spec=Notifier)
    notifier.send_debt_creation_email = AsyncMock(return_value=True)
    notifier.send_payment_confirmation_email = AsyncMock(return_value=True)
    return notifier


@pytest_asyncio.fixture
async def client(test_db, fake_gateway, fake_notifier):
    """HTTP client against the app with the database and Stripe swapped out."""
    app.dependency_overrides[get_db] = lambda: test_db
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_notifier] = lambda: fake_notifier
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()

