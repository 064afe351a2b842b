from fastapi import APIRouter
from app.api.v1.endpoints import admin, debts, payments, webhooks

api_router = APIRouter()

api_router.include_router(debts.router, prefix="/debts", tags=["debts"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
