import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import DebtServiceError, ExternalServiceError
from app.core.logging import configure_logging
from app.db.mongo import connect_to_mongo, close_mongo_connection
from app.api.v1.api import api_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await connect_to_mongo()
    yield
    await close_mongo_connection()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DebtServiceError)
async def debt_service_error_handler(request: Request, exc: DebtServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    content = {"success": False, "error": exc.message, "code": exc.kind.value}
    if isinstance(exc, ExternalServiceError):
        content["provider_error"] = exc.provider_kind.value
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/")
async def root():
    return {"message": "Welcome to the Debt Reconciliation API"}

app.include_router(api_router, prefix=settings.API_V1_STR)
