import logging
from pathlib import Path
from typing import Optional

import requests

from supabase import Client, create_client

from . import config
from .delhi_hc import BROWSER_HEADERS
from .utils import safe_filename_part, truncate

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "dhc-orders"


def get_supabase_client() -> Optional[Client]:
    if not config.SUPABASE_URL or not config.SUPABASE_KEY:
        return None
    try:
        return create_client(config.SUPABASE_URL, config.SUPABASE_KEY)
    except Exception as exc:
        logger.warning("Failed to initialize Supabase client: %s", exc)
        return None


def fetch_order_pdf(order_url: str) -> bytes:
    """
    Download one order PDF. Raises on HTTP errors and when the site answers with an
    HTML page instead of the document.
    """
    headers = dict(BROWSER_HEADERS)
    headers["Accept"] = "application/pdf,*/*"
    resp = requests.get(order_url, headers=headers, timeout=config.PDF_TIMEOUT)
    resp.raise_for_status()
    content_type = (resp.headers.get("content-type") or "").lower()
    if "text/html" in content_type:
        logger.warning(
            "Expected PDF but got HTML from %s. Content preview: %s",
            order_url,
            truncate(resp.text, 200),
        )
        raise ValueError("Expected PDF but got HTML")
    return resp.content


def order_filename(index: int, order_date: Optional[str]) -> str:
    safe_date = (order_date or f"order_{index}").replace("/", "-")
    return f"Order_{index}_{safe_date}.pdf"


def merged_filename(case_info: Optional[str]) -> str:
    return f"Merged_Order_File_{safe_filename_part(case_info or 'case')}.pdf"


def save_order_pdf(content: bytes, filename: str) -> Path:
    path = config.ensure_downloads_dir() / filename
    path.write_bytes(content)
    return path


def persist_merged_to_storage(content: bytes, filename: str) -> Optional[dict]:
    """
    Upload the merged PDF to Supabase storage when credentials are configured.
    Returns the public URL details, or None when storage is unavailable or the upload fails.
    """
    supabase_client = get_supabase_client()
    if not supabase_client:
        return None

    storage_path = f"{STORAGE_PREFIX}/{filename}"
    bucket = supabase_client.storage.from_(config.ORDER_STORAGE_BUCKET)
    try:
        bucket.upload(
            storage_path,
            content,
            {"content-type": "application/pdf", "upsert": "true"},
        )
        public_url = bucket.get_public_url(storage_path)
    except Exception as exc:
        logger.warning("Failed to upload merged PDF to storage (%s): %s", storage_path, exc)
        return None

    logger.info("Uploaded merged PDF to %s", public_url)
    return {
        "public_url": public_url,
        "storage_bucket": config.ORDER_STORAGE_BUCKET,
        "storage_path": storage_path,
    }
