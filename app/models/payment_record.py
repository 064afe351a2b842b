from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.models.base import PyObjectId, _utcnow, as_utc, to_decimal


class PaymentRecord(BaseModel):
    """
    Append-only settlement receipt. external_ref is unique across all
    records and doubles as the idempotency key for replayed confirmations.
    """
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    id: PyObjectId = Field(default_factory=PyObjectId, alias="_id")
    debt_id: PyObjectId
    amount: Decimal
    external_ref: str
    status: str = "succeeded"
    paid_at: datetime = Field(default_factory=_utcnow)

    @field_validator("amount", mode="before")
    @classmethod
    def _decimal_from_bson(cls, value):
        return to_decimal(value)

    @field_validator("paid_at")
    @classmethod
    def _normalise_paid_at(cls, value: datetime) -> datetime:
        return as_utc(value)
