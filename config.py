# config.py
import os

# --- 1. Runtime environment ---
# "development" turns on the diagnostic channel (resolution traces in error bodies)
# and allows the development-only escape hatches below.
APP_ENV = os.getenv("APP_ENV", "development").lower()
DEV_MODE = APP_ENV == "development"


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# --- 2. Database settings ---
# One PostgreSQL server, three logically separate databases:
# tradesmen / customers partitions plus the shared "default" database for messaging.
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "5432"))

TRADESMEN_DB = os.getenv("TRADESMEN_DB", "kaarigar_tradesmen")
CUSTOMERS_DB = os.getenv("CUSTOMERS_DB", "kaarigar_customers")
DEFAULT_DB = os.getenv("DEFAULT_DB", "kaarigar")

# Seconds to wait for a pooled connection before the request is treated as transient
DB_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "10"))

# --- 3. Authentication cookie ---
JWT_SECRET = os.getenv("JWT_SECRET", "kaarigar_dev_secret_please_change_me")
JWT_ALGORITHM = "HS256"
JWT_MAX_AGE = int(os.getenv("JWT_MAX_AGE", str(60 * 60 * 24 * 7)))  # 7 days
COOKIE_NAME = "token"

# --- 4. Development-only escape hatches ---
# Both are forced off outside development regardless of the environment variable.
FUZZY_IDENTITY_MATCH = DEV_MODE and _flag("FUZZY_IDENTITY_MATCH")
ALLOW_UNRESOLVED_CONVERSATIONS = DEV_MODE and _flag("ALLOW_UNRESOLVED_CONVERSATIONS")

# --- 5. Uploads ---
UPLOAD_ROOT = os.getenv("UPLOAD_ROOT", "uploads")
