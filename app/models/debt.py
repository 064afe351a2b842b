"""
Debt model - one owed amount tied to one email identity.

Invariants (enforced by DebtStore, never by callers):
- email is unique, trimmed and lower-cased
- amount > 0, kept as a Decimal in major units
- status moves PENDING -> PAID only; PAID is absorbing
- external_ref is set iff status is PAID
- updated_at never decreases
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from app.models.base import MongoModel, to_decimal


class DebtStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Debt(MongoModel):
    name: str
    email: str
    subject: str
    amount: Decimal = Field(gt=0)
    status: DebtStatus = DebtStatus.PENDING
    external_ref: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _decimal_from_bson(cls, value):
        return to_decimal(value)

    @property
    def is_paid(self) -> bool:
        return self.status == DebtStatus.PAID
