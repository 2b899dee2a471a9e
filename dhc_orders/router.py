import logging

import requests
from fastapi import APIRouter, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from . import delhi_hc, pdf_generator
from .search import DownloadMergeRequest, SearchCaseRequest
from .utils import truncate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["delhi_hc"])


def _failure(status_code: int, error: str, **extra) -> JSONResponse:
    payload = {"success": False, "error": error}
    payload.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed bodies in the same {success, error} shape as every other failure."""
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, problems)
    return _failure(400, "Invalid request: " + "; ".join(problems))


def _log_upstream_response(exc: Exception) -> None:
    response = getattr(exc, "response", None)
    if response is not None:
        logger.error("  Response status: %s", response.status_code)
        logger.error("  Response data (first 500 chars): %s", truncate(response.text))


@router.get("/case-types", summary="List Delhi HC case types and years")
def case_types():
    try:
        options = delhi_hc.get_case_options()
    except Exception as exc:
        logger.error("Error fetching case types: %s", exc, exc_info=True)
        return _failure(500, "Failed to fetch case types from DHC website.")
    return jsonable_encoder({"success": True, **options})


@router.post("/search-case", summary="Find a case and list its orders")
def search_case(body: SearchCaseRequest):
    if not body.case_type or not body.case_number or not body.year:
        return _failure(400, "Case type, number, and year are required.")

    try:
        result = delhi_hc.search_case(
            str(body.case_type), str(body.case_number), str(body.year)
        )
    except delhi_hc.CaseNotFoundError as exc:
        return _failure(200, str(exc))
    except delhi_hc.OrdersLinkNotFoundError as exc:
        return _failure(200, str(exc), caseDetails=exc.case_details)
    except Exception as exc:
        logger.error("Error searching case: %s", exc, exc_info=True)
        if isinstance(exc, requests.RequestException):
            _log_upstream_response(exc)
        return _failure(500, f"Failed to search case: {exc}")

    return jsonable_encoder({"success": True, **result})


@router.post("/download-and-merge", summary="Download all orders and merge them into one PDF")
def download_and_merge(body: DownloadMergeRequest):
    if not body.orders:
        return _failure(400, "No orders to download.")

    try:
        result = pdf_generator.download_and_merge(
            body.orders,
            case_info=body.case_info,
            include_index=body.include_index,
        )
    except pdf_generator.NoPagesMergedError as exc:
        logger.error("Error during download and merge: %s", exc)
        return _failure(
            500,
            f"Failed to download and merge: {exc}",
            downloadedFiles=exc.downloaded_files,
            errors=exc.errors,
            totalDownloaded=len(exc.downloaded_files),
            totalFailed=len(exc.errors),
        )
    except Exception as exc:
        logger.error("Error during download and merge: %s", exc, exc_info=True)
        return _failure(500, f"Failed to download and merge: {exc}")

    return {"success": True, **result}
