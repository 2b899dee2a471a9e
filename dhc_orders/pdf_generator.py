import io
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import fitz
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import (Paragraph, SimpleDocTemplate, Spacer, Table,
                                TableStyle)

from . import config, order_storage
from .search import OrderEntry

logger = logging.getLogger(__name__)


class NoPagesMergedError(Exception):
    def __init__(
        self,
        message: str,
        downloaded_files: Optional[List[Dict[str, Any]]] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message)
        self.downloaded_files = downloaded_files or []
        self.errors = errors or []


def generate_order_index_pdf(entries: List[Dict[str, Any]], title: str) -> bytes:
    """
    Build a one-table PDF listing the merged orders.

    entries: dicts with keys sno, case_no, date, pages
    """
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=30,
        leftMargin=30,
        topMargin=30,
        bottomMargin=30,
    )
    styles = getSampleStyleSheet()
    elements = [
        Paragraph(title, styles["Title"]),
        Paragraph("Index of Orders", styles["Heading2"]),
        Spacer(1, 20),
    ]

    data = [["S.No", "Case No", "Order Date", "Pages"]]
    for idx, entry in enumerate(entries, start=1):
        data.append(
            [
                str(entry.get("sno", idx)),
                entry.get("case_no") or "-",
                entry.get("date") or "-",
                str(entry.get("pages", "-")),
            ]
        )

    table = Table(data, colWidths=[50, 230, 150, 70], repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 10),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
            ]
        )
    )
    elements.append(table)
    doc.build(elements)
    return buffer.getvalue()


def append_pdf(merged: fitz.Document, content: bytes) -> int:
    """Copy every page of `content` onto the end of `merged`; returns the page count."""
    with fitz.open(stream=content, filetype="pdf") as src:
        # Owner-password-only PDFs open with an empty user password
        if src.needs_pass and not src.authenticate(""):
            raise ValueError("PDF is password protected")
        if src.page_count == 0:
            raise ValueError("PDF has no pages")
        merged.insert_pdf(src)
        return src.page_count


def download_and_merge(
    orders: List[OrderEntry],
    case_info: Optional[str] = None,
    include_index: bool = False,
    fetch_fn: Optional[Callable[[str], bytes]] = None,
) -> Dict[str, Any]:
    """
    Download every order PDF in sequence, keep each one on disk and merge all pages
    into a single file under the downloads directory.
    """
    if not orders:
        raise ValueError("No orders to download.")

    fetcher = fetch_fn or order_storage.fetch_order_pdf
    logger.info("Downloading and merging %s orders...", len(orders))

    downloaded_files: List[Dict[str, Any]] = []
    errors: List[Dict[str, Any]] = []
    index_entries: List[Dict[str, Any]] = []

    with fitz.open() as merged:
        for idx, order in enumerate(orders, start=1):
            logger.info(
                "Downloading order %s/%s: %s", idx, len(orders), order.date or "Unknown date"
            )
            try:
                content = fetcher(order.pdf_url)
            except Exception as exc:
                logger.error("Failed to download order %s: %s", idx, exc)
                errors.append({"index": idx, "date": order.date, "error": str(exc)})
                continue

            filename = order_storage.order_filename(idx, order.date)
            try:
                order_storage.save_order_pdf(content, filename)
            except (OSError, ValueError) as exc:
                logger.error("Failed to save order %s as %s: %s", idx, filename, exc)
                errors.append({"index": idx, "date": order.date, "error": str(exc)})
                continue

            try:
                pages = append_pdf(merged, content)
            except Exception as exc:
                logger.warning("Could not merge PDF %s: %s", idx, exc)
                errors.append(
                    {"index": idx, "date": order.date, "error": f"Could not merge: {exc}"}
                )
                downloaded_files.append(
                    {
                        "filename": filename,
                        "date": order.date,
                        "pages": 0,
                        "size": len(content),
                        "mergeError": True,
                    }
                )
            else:
                downloaded_files.append(
                    {
                        "filename": filename,
                        "date": order.date,
                        "pages": pages,
                        "size": len(content),
                    }
                )
                index_entries.append(
                    {"sno": order.sno, "case_no": order.case_no, "date": order.date, "pages": pages}
                )

            if idx < len(orders):
                time.sleep(config.DOWNLOAD_DELAY)

        if merged.page_count == 0:
            raise NoPagesMergedError(
                "None of the order PDFs could be merged.",
                downloaded_files=downloaded_files,
                errors=errors,
            )

        if include_index:
            index_pdf = generate_order_index_pdf(index_entries, case_info or "Orders")
            with fitz.open(stream=index_pdf, filetype="pdf") as index_doc:
                merged.insert_pdf(index_doc, start_at=0)

        merged_pages = merged.page_count
        merged_bytes = merged.tobytes(garbage=3, deflate=True)

    merged_name = order_storage.merged_filename(case_info)
    order_storage.save_order_pdf(merged_bytes, merged_name)
    logger.info("Merged PDF saved: %s (%s pages)", merged_name, merged_pages)

    result = {
        "mergedFile": f"/downloads/{merged_name}",
        "mergedPages": merged_pages,
        "mergedSize": len(merged_bytes),
        "downloadedFiles": downloaded_files,
        "errors": errors,
        "totalDownloaded": len(downloaded_files),
        "totalFailed": len(errors),
    }
    stored = order_storage.persist_merged_to_storage(merged_bytes, merged_name)
    if stored:
        result["storage"] = stored
    return result
