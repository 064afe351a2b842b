from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, field_serializer

from app.models.debt import Debt, DebtStatus
from app.models.payment_record import PaymentRecord


class PaymentRecordResponse(BaseModel):
    id: str
    amount: Decimal
    external_ref: str
    status: str
    paid_at: datetime

    @field_serializer("amount")
    def _amount_as_str(self, value: Decimal) -> str:
        return str(value)

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentRecordResponse":
        return cls(
            id=str(record.id),
            amount=record.amount,
            external_ref=record.external_ref,
            status=record.status,
            paid_at=record.paid_at,
        )


class DebtResponse(BaseModel):
    """Debt read contract."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    email: str
    subject: str
    amount: Decimal
    status: DebtStatus
    external_ref: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("amount")
    def _amount_as_str(self, value: Decimal) -> str:
        return str(value)

    @classmethod
    def from_debt(cls, debt: Debt) -> "DebtResponse":
        return cls(
            id=str(debt.id),
            name=debt.name,
            email=debt.email,
            subject=debt.subject,
            amount=debt.amount,
            status=debt.status,
            external_ref=debt.external_ref,
            created_at=debt.created_at,
            updated_at=debt.updated_at,
        )


class DebtWithPaymentsResponse(DebtResponse):
    payment_history: List[PaymentRecordResponse] = []

    @classmethod
    def from_debt_and_records(
        cls, debt: Debt, records: List[PaymentRecord]
    ) -> "DebtWithPaymentsResponse":
        base = DebtResponse.from_debt(debt)
        return cls(
            **base.model_dump(),
            payment_history=[PaymentRecordResponse.from_record(r) for r in records],
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class DebtListResponse(BaseModel):
    success: bool = True
    data: List[DebtWithPaymentsResponse]
    pagination: Pagination
