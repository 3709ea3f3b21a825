# vision_pos/core/config.py

import os
import logging
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

# =====================================================
# APPLICATION
# =====================================================
APP_ENV = os.getenv("APP_ENV")
if APP_ENV not in {"development", "staging", "production", "test"}:
    raise ValueError("APP_ENV must be development | staging | production | test")

IS_PRODUCTION = APP_ENV == "production"

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "").rstrip("/")

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if APP_ENV == "development" else "INFO").upper()

# =====================================================
# DATABASE
# =====================================================
DB_TYPE = os.getenv("DB_TYPE")
if DB_TYPE not in {"postgres", "sqlite"}:
    raise ValueError("DB_TYPE must be postgres | sqlite")

if DB_TYPE == "postgres":
    DATABASE_URL = os.getenv("DATABASE_URL")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL is required for Postgres")

elif DB_TYPE == "sqlite":
    if IS_PRODUCTION:
        raise ValueError("SQLite is NOT allowed in production")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./vision_pos.db")

# ---- Pool tuning (safe defaults) ----
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", 10))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", 20))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", 30))
DB_ECHO_POOL = os.getenv("DB_ECHO_POOL", "false").lower() == "true"

# ---- SSL ----
DB_SSL_VERIFY = os.getenv("DB_SSL_VERIFY", "true").lower() == "true"
if IS_PRODUCTION and not DB_SSL_VERIFY:
    logger.warning("Running in production with relaxed SSL verification")

# =====================================================
# JWT / AUTH
# =====================================================
JWT_ACCESS_SECRET_KEY = os.getenv("JWT_ACCESS_SECRET_KEY")
if not JWT_ACCESS_SECRET_KEY:
    raise ValueError("JWT_ACCESS_SECRET_KEY must be set")

JWT_ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 15)
)

# =====================================================
# QUOTE LIFECYCLE
# =====================================================
QUOTE_AUTO_EXPIRE_DAYS = int(os.getenv("QUOTE_AUTO_EXPIRE_DAYS", 30))
QUOTE_EXPIRATION_WARNING_DAYS = int(os.getenv("QUOTE_EXPIRATION_WARNING_DAYS", 3))
QUOTE_STALE_AFTER_DAYS = int(os.getenv("QUOTE_STALE_AFTER_DAYS", 7))

HIGH_VALUE_QUOTE_THRESHOLD = Decimal(os.getenv("HIGH_VALUE_QUOTE_THRESHOLD", "10000"))

# Evaluated in this zone for off-hours signing advisories
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "UTC")


def _business_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"BUSINESS_TIMEZONE is not a known time zone: {name!r}") from e


BUSINESS_TZ = _business_zone(BUSINESS_TIMEZONE)

# =====================================================
# EXPIRATION SWEEP
# =====================================================
EXPIRY_BATCH_SIZE = int(os.getenv("EXPIRY_BATCH_SIZE", 100))
EXPIRY_MAX_QUOTES_PER_RUN = int(os.getenv("EXPIRY_MAX_QUOTES_PER_RUN", 1000))
EXPIRY_SEND_NOTIFICATIONS = os.getenv("EXPIRY_SEND_NOTIFICATIONS", "true").lower() == "true"

if EXPIRY_BATCH_SIZE < 1 or EXPIRY_MAX_QUOTES_PER_RUN < 1:
    raise ValueError("EXPIRY_BATCH_SIZE and EXPIRY_MAX_QUOTES_PER_RUN must be positive")

ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER", "false").lower() == "true"
