"""
Quotation Back-office – FastAPI application entry point.

Run with:
    uvicorn backoffice.main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from backoffice.api.routes import router
from backoffice.api.category_routes import category_router
from backoffice.api.product_routes import product_router
from backoffice.api.quotation_routes import quotation_router
from backoffice.api.finance_routes import finance_router
from backoffice.core.config import settings
from backoffice.core.database import create_db_and_tables
from backoffice.core.errors import BackofficeError, InvariantViolation
from backoffice.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown hooks."""
    setup_logging()
    logger.info("Starting quotation back-office backend …")
    create_db_and_tables()
    logger.info("Database tables ready")
    yield
    logger.info("Quotation back-office backend shut down")


app = FastAPI(
    title="Quotation Back-office API",
    description="Category tree, product catalog, quotations and their payment ledger",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS – allow admin UI dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BackofficeError)
async def backoffice_error_handler(request: Request, exc: BackofficeError) -> JSONResponse:
    message = f"{request.method} {request.url.path} -> {exc.kind}: {exc.message}"
    if isinstance(exc, InvariantViolation):
        logger.error(message)
    else:
        logger.warning(message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(router)
app.include_router(category_router)
app.include_router(product_router)
app.include_router(quotation_router)
app.include_router(finance_router)


@app.get("/")
def root():
    return {"message": "Quotation Back-office API", "docs": "/docs"}
