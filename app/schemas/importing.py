from decimal import Decimal, DecimalException
from typing import List

from bson import Decimal128
from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator


class ImportRow(BaseModel):
    """One validated row of the bulk import feed."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(min_length=1)
    email: EmailStr
    subject: str = Field(min_length=1, alias="debtSubject")
    amount: Decimal = Field(alias="debtAmount")

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value):
        if isinstance(value, str):
            value = value.strip()
        try:
            amount = Decimal(str(value))
        except (DecimalException, ValueError):
            raise ValueError("Debt amount must be a positive number")
        if not amount.is_finite() or amount <= 0:
            raise ValueError("Debt amount must be a positive number")
        try:
            # must fit a BSON decimal: 34 significant digits, bounded exponent
            Decimal128(str(amount))
        except DecimalException:
            raise ValueError("Debt amount has too many digits or is out of range")
        return amount


class ImportSummary(BaseModel):
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    created: int = 0
    updated: int = 0
    errors: List[str] = []

    @computed_field
    @property
    def total_processed(self) -> int:
        return self.created + self.updated


class ImportResponse(BaseModel):
    success: bool
    summary: ImportSummary
