import math
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_store, require_admin_key
from app.models.debt import DebtStatus
from app.repositories.debt_repo import DebtStore
from app.schemas.debt import (
    DebtListResponse,
    DebtWithPaymentsResponse,
    Pagination,
)

router = APIRouter(dependencies=[Depends(require_admin_key)])

RECENT_PAYMENTS = 5


@router.get("/debts", response_model=DebtListResponse)
async def list_debts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str = "",
    status: Optional[DebtStatus] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    store: DebtStore = Depends(get_store)
):
    """List debts with their most recent payments"""
    debts, total = await store.list_debts(
        page=page,
        limit=limit,
        search=search,
        status=status,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    data = []
    for debt in debts:
        records = await store.list_payment_records(debt.id, limit=RECENT_PAYMENTS)
        data.append(DebtWithPaymentsResponse.from_debt_and_records(debt, records))

    return DebtListResponse(
        data=data,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )
