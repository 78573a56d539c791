"""
FastAPI application entry point.
Configures routes, middleware, and lifecycle events.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import init_db, close_db
from app.exceptions import CheckoutError
from app.logging_config import configure_logging

from app.api.checkout import router as checkout_router
from app.api.orders import router as orders_router
from app.api.webhooks.flutterwave import router as flutterwave_router
from app.api.admin.orders import router as admin_orders_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    configure_logging()
    logger.info("Starting up SWISStools checkout...")

    await init_db()

    yield

    await close_db()
    logger.info("Shutting down...")


app = FastAPI(
    title="SWISStools Checkout",
    description="Payment verification and order creation for the SWISStools store",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


@app.exception_handler(CheckoutError)
async def checkout_exception_handler(request: Request, exc: CheckoutError):
    logger.warning(f"Checkout error {exc.error_code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error_code": "checkout:missing_fields",
            "message": "Invalid request body",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg")}
        for err in exc.errors()
    ]


origins = [
    settings.store_url,
    "https://www.swisstools.store",
]
if settings.is_development:
    origins.append("*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
    }


app.include_router(
    checkout_router,
    prefix="/api",
    tags=["checkout"],
)
app.include_router(
    orders_router,
    prefix="/api",
    tags=["orders"],
)
app.include_router(
    flutterwave_router,
    prefix="/webhooks",
    tags=["webhooks"],
)
app.include_router(
    admin_orders_router,
    prefix="/admin",
    tags=["admin"],
)
