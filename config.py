"""Configuration management for the GameVault marketplace backend"""

import os
import logging
from decimal import Decimal, InvalidOperation
from typing import List

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class Config:
    """Application configuration"""

    # Environment detection: ENVIRONMENT takes priority, anything else is development
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower().strip()
    IS_PRODUCTION = ENVIRONMENT == "production"
    CURRENT_ENVIRONMENT = "production" if IS_PRODUCTION else "development"

    PLATFORM_NAME = os.getenv("PLATFORM_NAME", "GameVault")

    # Database configuration
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./gamevault.db")
    # Legacy Heroku-style URLs are not accepted by SQLAlchemy 2.x
    if DATABASE_URL.startswith("postgres://"):
        DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)
    DATABASE_SOURCE = "SQLite (Local)" if DATABASE_URL.startswith("sqlite") else "PostgreSQL"
    SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

    @staticmethod
    def _validate_decimal(env_var: str, default: str, min_val: str, max_val: str) -> Decimal:
        """Read a Decimal from the environment with bounds checking"""
        raw = os.getenv(env_var, default)
        try:
            value = Decimal(raw)
        except (InvalidOperation, TypeError):
            logger.error(f"❌ Invalid {env_var} value '{raw}'. Using default {default}")
            return Decimal(default)

        if value < Decimal(min_val) or value > Decimal(max_val):
            logger.error(f"❌ {env_var}={value} outside [{min_val}, {max_val}]. Using default {default}")
            return Decimal(default)

        return value

    # Wallet fee applied to deposits and withdrawals (fraction, not percent)
    WALLET_FEE_PERCENTAGE = _validate_decimal("WALLET_FEE_PERCENTAGE", "0.05", "0", "0.99")

    # Wallet request limits
    MIN_WALLET_AMOUNT = _validate_decimal("MIN_WALLET_AMOUNT", "10", "0", "1000000")
    MAX_WALLET_AMOUNT = _validate_decimal("MAX_WALLET_AMOUNT", "5000", "1", "1000000")

    # Listing price limits
    MIN_LISTING_PRICE = _validate_decimal("MIN_LISTING_PRICE", "1", "0", "1000000")
    MAX_LISTING_PRICE = _validate_decimal("MAX_LISTING_PRICE", "10000", "1", "1000000")

    CURRENCY_CODE = os.getenv("CURRENCY_CODE", "EGP")
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "EGP")
    DEFAULT_PHONE_REGION = os.getenv("DEFAULT_PHONE_REGION", "EG")

    # Level system cap
    MAX_LEVEL = 250

    # Admin API access (auth itself lives upstream, this only gates admin routes)
    ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "")

    # Telegram admin notifications
    BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN") or os.getenv("BOT_TOKEN")

    _admin_ids_env = os.getenv("ADMIN_IDS", "").strip()
    try:
        ADMIN_IDS: List[int] = [int(uid.strip()) for uid in _admin_ids_env.split(",") if uid.strip()]
    except ValueError:
        logger.error(f"❌ ADMIN_IDS must be comma separated integers, got '{_admin_ids_env}'")
        ADMIN_IDS = []

    ADMIN_NOTIFICATIONS_ENABLED = (
        os.getenv("ADMIN_NOTIFICATIONS_ENABLED", "true").lower() == "true"
        and bool(BOT_TOKEN)
        and bool(ADMIN_IDS)
    )

    # HTTP server
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "8000"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    @staticmethod
    def log_environment_config():
        """Log current environment configuration for debugging"""
        logger.info(f"🔧 {Config.PLATFORM_NAME} Environment Configuration:")
        logger.info(f"   Environment: {Config.CURRENT_ENVIRONMENT.upper()}")
        logger.info(f"   Database: {Config.DATABASE_SOURCE}")
        logger.info(f"   Wallet fee: {Config.WALLET_FEE_PERCENTAGE * 100}%")
        logger.info(
            f"   Wallet limits: {Config.MIN_WALLET_AMOUNT}-{Config.MAX_WALLET_AMOUNT} {Config.CURRENCY_CODE}"
        )
        logger.info(f"   Admin API token configured: {bool(Config.ADMIN_API_TOKEN)}")
        if Config.ADMIN_NOTIFICATIONS_ENABLED:
            logger.info(f"   Admin notifications: enabled for {len(Config.ADMIN_IDS)} admin(s)")
        else:
            logger.info("   Admin notifications: disabled")
