"""
DebtStore - sole owner of the debts and payment_records collections.

Every mutation is one conditional, atomic MongoDB operation:
- upsert_from_import: update_one(upsert=True); status only on insert
- transition_to_paid_if_pending: find_one_and_update filtered on status=PENDING
- append_payment_record: insert_one guarded by the unique external_ref index

No read-modify-write happens in application code, so concurrent imports,
webhook redeliveries and polls need no extra locking.
"""

import logging
import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from bson import Decimal128, ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.errors import DuplicateError, NotFoundError, PersistenceError
from app.models.debt import Debt, DebtStatus, normalize_email
from app.models.payment_record import PaymentRecord
from app.schemas.importing import ImportRow

logger = logging.getLogger(__name__)


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class TransitionOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_PAID = "already-paid"


SORTABLE_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "name": "name",
    "email": "email",
    "amount": "amount",
    "status": "status",
}


def _object_id(debt_id) -> ObjectId:
    if isinstance(debt_id, ObjectId):
        return debt_id
    if isinstance(debt_id, str) and ObjectId.is_valid(debt_id):
        return ObjectId(debt_id)
    raise NotFoundError("Debt not found")


class DebtStore:
    """Repository for debts and their payment records."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["debts"]
        self.payments = db["payment_records"]

    # ===== DEBTS =====

    async def upsert_from_import(self, row: ImportRow) -> Tuple[UpsertOutcome, Debt]:
        """
        Create a PENDING debt for an unseen email, otherwise refresh
        name/subject/amount. Status is written only on insert, so an
        existing PAID debt keeps its status and external_ref.
        """
        email = normalize_email(row.email)
        now = datetime.now(timezone.utc)
        update = {
            "$set": {
                "name": row.name,
                "subject": row.subject,
                "amount": Decimal128(str(row.amount)),
                "updated_at": now,
            },
            "$setOnInsert": {
                "email": email,
                "status": DebtStatus.PENDING.value,
                "external_ref": None,
                "created_at": now,
            },
        }

        try:
            try:
                result = await self.collection.update_one({"email": email}, update, upsert=True)
            except DuplicateKeyError:
                # Lost an insert race on the same email; the row now exists.
                result = await self.collection.update_one({"email": email}, update, upsert=True)
            doc = await self.collection.find_one({"email": email})
        except PyMongoError as exc:
            logger.error("Upsert failed for %s: %s", email, exc)
            raise PersistenceError(f"Database error: {exc}") from exc

        outcome = UpsertOutcome.CREATED if result.upserted_id is not None else UpsertOutcome.UPDATED
        return outcome, Debt(**doc)

    async def transition_to_paid_if_pending(self, debt_id, external_ref: str) -> TransitionOutcome:
        """
        Atomically: set status=PAID, external_ref, updated_at WHERE status=PENDING.

        A second call for the same debt is a no-op and reports ALREADY_PAID.
        """
        oid = _object_id(debt_id)
        try:
            updated = await self.collection.find_one_and_update(
                {"_id": oid, "status": DebtStatus.PENDING.value},
                {
                    "$set": {
                        "status": DebtStatus.PAID.value,
                        "external_ref": external_ref,
                        "updated_at": datetime.now(timezone.utc),
                    }
                },
                return_document=ReturnDocument.AFTER
            )
            if updated is not None:
                return TransitionOutcome.APPLIED

            exists = await self.collection.find_one({"_id": oid}, {"_id": 1})
        except PyMongoError as exc:
            logger.error("Transition failed for debt %s: %s", oid, exc)
            raise PersistenceError(f"Database error: {exc}") from exc

        if exists is None:
            raise NotFoundError("Debt not found")
        return TransitionOutcome.ALREADY_PAID

    async def find_by_email(self, email: str) -> Debt:
        try:
            doc = await self.collection.find_one({"email": normalize_email(email)})
        except PyMongoError as exc:
            raise PersistenceError(f"Database error: {exc}") from exc
        if doc is None:
            raise NotFoundError("Debt not found for this email address")
        return Debt(**doc)

    async def find_by_id(self, debt_id) -> Debt:
        oid = _object_id(debt_id)
        try:
            doc = await self.collection.find_one({"_id": oid})
        except PyMongoError as exc:
            raise PersistenceError(f"Database error: {exc}") from exc
        if doc is None:
            raise NotFoundError("Debt not found")
        return Debt(**doc)

    async def list_debts(
        self,
        page: int = 1,
        limit: int = 20,
        search: str = "",
        status: Optional[DebtStatus] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> Tuple[List[Debt], int]:
        """Paginated listing for administrators. Returns (debts, total)."""
        query: dict = {}
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"name": pattern}, {"email": pattern}, {"subject": pattern}]
        if status is not None:
            query["status"] = DebtStatus(status).value

        field = SORTABLE_FIELDS.get(sort_by, "created_at")
        direction = 1 if sort_order == "asc" else -1
        skip = max(page - 1, 0) * limit

        try:
            total = await self.collection.count_documents(query)
            cursor = self.collection.find(
                query, sort=[(field, direction)], skip=skip, limit=limit
            )
            docs = await cursor.to_list(None)
        except PyMongoError as exc:
            raise PersistenceError(f"Database error: {exc}") from exc
        return [Debt(**doc) for doc in docs], total

    # ===== PAYMENT RECORDS =====

    async def append_payment_record(self, debt_id, record: PaymentRecord) -> PaymentRecord:
        """
        Insert a settlement receipt. A record with the same external_ref
        (for any debt) already existing raises DuplicateError and writes nothing.
        """
        oid = _object_id(debt_id)
        doc = {
            "_id": record.id,
            "debt_id": oid,
            "amount": Decimal128(str(record.amount)),
            "external_ref": record.external_ref,
            "status": record.status,
            "paid_at": record.paid_at,
        }
        try:
            await self.payments.insert_one(doc)
        except DuplicateKeyError as exc:
            raise DuplicateError(
                f"Payment record {record.external_ref} already exists"
            ) from exc
        except PyMongoError as exc:
            logger.error("Payment record insert failed for debt %s: %s", oid, exc)
            raise PersistenceError(f"Database error: {exc}") from exc

        return PaymentRecord(**doc)

    async def list_payment_records(self, debt_id, limit: Optional[int] = None) -> List[PaymentRecord]:
        """Payment records for a debt, most recent first."""
        oid = _object_id(debt_id)
        try:
            cursor = self.payments.find(
                {"debt_id": oid}, sort=[("paid_at", -1)], limit=limit or 0
            )
            docs = await cursor.to_list(None)
        except PyMongoError as exc:
            raise PersistenceError(f"Database error: {exc}") from exc
        return [PaymentRecord(**doc) for doc in docs]

