from typing import Optional

from fastapi import Depends, Header
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.errors import AuthenticationError, PersistenceError
from app.db.mongo import get_db
from app.repositories.debt_repo import DebtStore
from app.services.confirmation_service import ConfirmationProcessor
from app.services.import_service import ImportReconciler
from app.services.notification_service import Notifier
from app.services.payment_gateway import StripeGateway
from app.services.payment_intent_service import PaymentIntentGuard


def get_store(db: AsyncIOMotorDatabase = Depends(get_db)) -> DebtStore:
    if db is None:
        raise PersistenceError("Database is not connected")
    return DebtStore(db)


def get_gateway() -> StripeGateway:
    return StripeGateway()


def get_notifier() -> Notifier:
    return Notifier()


def get_import_reconciler(
    store: DebtStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> ImportReconciler:
    return ImportReconciler(store, notifier)


def get_payment_intent_guard(
    store: DebtStore = Depends(get_store),
    gateway: StripeGateway = Depends(get_gateway),
) -> PaymentIntentGuard:
    return PaymentIntentGuard(store, gateway)


def get_confirmation_processor(
    store: DebtStore = Depends(get_store),
    gateway: StripeGateway = Depends(get_gateway),
    notifier: Notifier = Depends(get_notifier),
) -> ConfirmationProcessor:
    return ConfirmationProcessor(store, gateway, notifier)


async def require_admin_key(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """Shared-key guard for the admin listing; disabled when ADMIN_API_KEY is empty."""
    if settings.ADMIN_API_KEY and x_admin_key != settings.ADMIN_API_KEY:
        raise AuthenticationError("Invalid admin key", status_code=401)
