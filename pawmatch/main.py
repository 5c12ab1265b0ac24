import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

# Load env from pawmatch/.env
app_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(app_dir, ".env"))

# Import after dotenv is loaded
from pawmatch.core.config import settings, validate_config
from pawmatch.core.database import create_all_tables
from pawmatch.core.errors import (
    AppError,
    app_error_handler,
    database_unavailable_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from pawmatch.core.logging import configure_logging
from pawmatch.core.middleware.request_id import RequestIdMiddleware
from pawmatch.core.validation import validate_env
from pawmatch.api import boosts, chat, consumables, crosslane, feed, health, likes, subscription, swipes

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("pawmatch")
    logger.info("Starting PawMatch matching API...")
    if settings.ENV.lower() in ("development", "test"):
        create_all_tables()
    try:
        yield
    finally:
        logging.getLogger("pawmatch").info("Stopping PawMatch matching API...")


app = FastAPI(title="PawMatch - Matching API", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(OperationalError, database_unavailable_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.ALLOWED_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(swipes.router)
app.include_router(chat.router)
app.include_router(feed.router)
app.include_router(crosslane.router)
app.include_router(consumables.router)
app.include_router(boosts.router)
app.include_router(subscription.router)
app.include_router(likes.router)
