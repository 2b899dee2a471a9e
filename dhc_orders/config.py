import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000") or 3000)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DOWNLOADS_DIR = Path(os.getenv("DOWNLOADS_DIR") or Path.cwd() / "downloads")
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]

# Seconds
REQUEST_TIMEOUT = _float_env("REQUEST_TIMEOUT", 15)
SEARCH_TIMEOUT = _float_env("SEARCH_TIMEOUT", 20)
ORDERS_TIMEOUT = _float_env("ORDERS_TIMEOUT", 30)
PDF_TIMEOUT = _float_env("PDF_TIMEOUT", 60)
DOWNLOAD_DELAY = _float_env("DOWNLOAD_DELAY", 0.5)

ORDER_STORAGE_BUCKET = os.getenv("ORDER_STORAGE_BUCKET", "documents")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")


def ensure_downloads_dir() -> Path:
    DOWNLOADS_DIR.mkdir(parents=True, exist_ok=True)
    return DOWNLOADS_DIR
