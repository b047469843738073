# backend/config.py
"""Runtime configuration, read from the environment (and .env when present)."""
import os

from dotenv import load_dotenv

from models.trade import ConfirmationMode

load_dotenv()


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SUPABASE_URL = os.getenv("SUPABASE_URL")
# Must be the service_role key; the trade tables and functions deny every other role
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# "supabase" or "memory"; memory is the fallback when no project is configured
STORE_BACKEND = os.getenv("STORE_BACKEND") or ("supabase" if SUPABASE_URL else "memory")

TRADE_CONFIRMATION_MODE = ConfirmationMode(
    os.getenv("TRADE_CONFIRMATION_MODE", ConfirmationMode.SINGLE.value)
)

STORE_RETRY_ATTEMPTS = int(os.getenv("STORE_RETRY_ATTEMPTS", "3"))
STORE_RETRY_BASE_DELAY_MS = int(os.getenv("STORE_RETRY_BASE_DELAY_MS", "50"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = _bool_env("LOG_JSON")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
