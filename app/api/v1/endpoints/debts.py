import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.api.deps import get_import_reconciler, get_store
from app.core.errors import ValidationError
from app.repositories.debt_repo import DebtStore
from app.schemas.debt import DebtResponse, PaymentRecordResponse
from app.schemas.importing import ImportResponse
from app.services.import_service import ImportReconciler
from app.utils.csv_rows import iter_csv_rows

logger = logging.getLogger(__name__)

_email_adapter = TypeAdapter(EmailStr)

router = APIRouter()


def _valid_email(email: str) -> str:
    try:
        return _email_adapter.validate_python(email.strip())
    except PydanticValidationError:
        raise ValidationError("Invalid email address")


@router.post("/import", response_model=ImportResponse)
async def import_debts(
    file: UploadFile = File(...),
    reconciler: ImportReconciler = Depends(get_import_reconciler)
):
    """Import debts from an uploaded CSV file."""
    raw = await file.read()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise ValidationError("CSV file must be UTF-8 encoded")

    summary = await reconciler.reconcile(iter_csv_rows(content))
    response = ImportResponse(success=summary.valid_rows > 0, summary=summary)
    if not response.success:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=response.model_dump(mode="json")
        )
    return response


@router.get("/id/{debt_id}", response_model=DebtResponse)
async def get_debt_by_id(debt_id: str, store: DebtStore = Depends(get_store)):
    """Get a debt by its id"""
    debt = await store.find_by_id(debt_id)
    return DebtResponse.from_debt(debt)


@router.get("/{email}", response_model=DebtResponse)
async def get_debt(email: str, store: DebtStore = Depends(get_store)):
    """Get the debt registered for an email address"""
    debt = await store.find_by_email(_valid_email(email))
    return DebtResponse.from_debt(debt)


@router.get("/{email}/payments", response_model=List[PaymentRecordResponse])
async def list_debt_payments(email: str, store: DebtStore = Depends(get_store)):
    """Payment records for a debt, most recent first"""
    debt = await store.find_by_email(_valid_email(email))
    records = await store.list_payment_records(debt.id)
    return [PaymentRecordResponse.from_record(record) for record in records]
