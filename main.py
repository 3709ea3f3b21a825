# main.py
import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import IntegrityError

from vision_pos.routers import (
    auth_router,
    quote_approval_router,
    quote_expiration_router,
    quote_status_router,
    quote_router,
)

from vision_pos.core.config import APP_ENV, CORS_ORIGINS, ENABLE_SCHEDULER
from vision_pos.core.db import init_models
from vision_pos.core.scheduler import scheduler
from vision_pos.core.exceptions import AppException
from vision_pos.core.logging import setup_logging
from vision_pos.middleware.request_logging import request_logging_middleware
from vision_pos.core.error_handlers import (
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    integrity_error_handler,
    unhandled_exception_handler,
)

# ------------------------------------------------------------------------------
# ENV CONFIG
# ------------------------------------------------------------------------------
APP_NAME = "Vision POS – Quote Lifecycle API"
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

# ------------------------------------------------------------------------------
# LOGGING
# ------------------------------------------------------------------------------
setup_logging()
logger = logging.getLogger(__name__)

# ------------------------------------------------------------------------------
# LIFESPAN
# ------------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting application")

    if APP_ENV == "development":
        await init_models()
        logger.info("📦 Database models initialized (development)")
    else:
        logger.info("📦 %s mode: init_models() skipped", APP_ENV)

    # Production runs the sweep only when explicitly enabled; tests never do
    if ENABLE_SCHEDULER or APP_ENV == "development":
        scheduler.start()
        logger.info("🕒 Scheduler started (%s)", APP_ENV)
    else:
        logger.info("🕒 Scheduler disabled (%s)", APP_ENV)

    yield

    logger.info("🛑 Shutting down application")
    if scheduler.running:
        scheduler.shutdown()

# ------------------------------------------------------------------------------
# APP INIT
# ------------------------------------------------------------------------------
app = FastAPI(
    title=APP_NAME,
    description="Quote lifecycle, validation and expiration API for Vision POS",
    version=APP_VERSION,
    docs_url="/docs" if APP_ENV != "production" else None,
    redoc_url=None,
    lifespan=lifespan,
)

# ------------------------------------------------------------------------------
# EXCEPTION HANDLERS
# ------------------------------------------------------------------------------
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# ------------------------------------------------------------------------------
# MIDDLEWARE
# ------------------------------------------------------------------------------
app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------------------------
# HEALTH CHECK
# ------------------------------------------------------------------------------
@app.get("/", tags=["Health"])
async def health_check():
    return {
        "status": "ok",
        "service": "vision-pos-quote-api",
        "environment": APP_ENV,
        "version": APP_VERSION,
    }

# ------------------------------------------------------------------------------
# ROUTERS
# ------------------------------------------------------------------------------
# fixed /quotes/<segment> prefixes must register before /quotes/{quote_id}
app.include_router(auth_router)
app.include_router(quote_approval_router)
app.include_router(quote_expiration_router)
app.include_router(quote_status_router)
app.include_router(quote_router)
