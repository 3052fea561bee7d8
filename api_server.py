"""
FastAPI application for the GameVault marketplace backend
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import Config
from database import create_tables, test_connection
from routes import admin, chat, marketplace, orders, support, users, wallet
from utils.exception_handler import MarketplaceError, error_payload

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: make sure the schema exists before serving requests"""
    logger.info(f"🔧 {Config.PLATFORM_NAME} API starting ({Config.CURRENT_ENVIRONMENT})")
    create_tables()
    yield
    logger.info(f"🔄 {Config.PLATFORM_NAME} API shutting down")


app = FastAPI(
    title=f"{Config.PLATFORM_NAME} Marketplace API",
    description="Escrow marketplace for game accounts with a manually reviewed wallet",
    lifespan=lifespan,
)

for module in (users, marketplace, orders, wallet, support, chat, admin):
    app.include_router(module.router)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.http_status >= 500:
        logger.error(f"❌ {type(exc).__name__} on {request.method} {request.url.path}: {exc}")
    else:
        logger.warning(f"⚠️ {type(exc).__name__} on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=exc.http_status, content=error_payload(exc))


@app.get("/health")
def health_check():
    database_ok = test_connection()
    payload = {
        "status": "healthy" if database_ok else "degraded",
        "service": "gamevault-marketplace",
        "database": database_ok,
    }
    return JSONResponse(content=payload, status_code=200 if database_ok else 503)
