import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from the project root .env
project_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(project_dir, ".env"))

# Import after dotenv is loaded
from shopledger.core.config import settings, validate_config
from shopledger.core.logging import configure_logging
from shopledger.core.middleware.request_id import RequestIdMiddleware
from shopledger.core.database import create_all_tables, get_database_url
from shopledger.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from shopledger.api import health, shop_settings

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("shopledger")
    logger.info("Starting shop admin service...")
    if get_database_url():
        create_all_tables()
    try:
        yield
    finally:
        logging.getLogger("shopledger").info("Stopping shop admin service...")


app = FastAPI(title="Shop Ledger - Admin API", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.root_router, tags=["health"])
app.include_router(shop_settings.router, tags=["shop-settings"])
