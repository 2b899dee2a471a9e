import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import unquote

import requests
from bs4 import BeautifulSoup
from tenacity import (retry, retry_if_exception_type, stop_after_attempt,
                      wait_exponential)

from . import config
from .search import CaseDetails, OrderEntry, SelectOption
from .utils import BASE_URL, absolute_url, strip_html, strip_tags, truncate

logger = logging.getLogger(__name__)

SEARCH_URL = f"{BASE_URL}/app/get-case-type-status"
VALIDATE_CAPTCHA_URL = f"{BASE_URL}/app/validateCaptcha"

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
    "Referer": SEARCH_URL,
}

XHR_ACCEPT = "application/json, text/javascript, */*; q=0.01"

TOKEN_PATTERN = re.compile(r'"_token"\s*:\s*"([^"]+)"')
# The site writes the orders href without quotes: href=https://...
ORDERS_HREF_PATTERN = re.compile(
    r"href=([^\s>']+case-type-status-details[^\s>']*)", re.IGNORECASE
)
ORDER_LINK_PATTERN = re.compile(r"""href=["']?([^"'\s>]+)""", re.IGNORECASE)
LINK_TEXT_PATTERN = re.compile(r">([^<]+)<")

CASE_SEARCH_COLUMNS = 4
ORDERS_COLUMNS = [
    ("DT_RowIndex", "DT_RowIndex", "false"),
    ("case_no_order_link", "case_no_order_link", "true"),
    ("order_date", "order_date.timestamp", "true"),
    ("corrigendum", "corrigendum", "true"),
    ("hindi_order", "hindi_order", "true"),
]


class DelhiHCError(Exception):
    pass


class CaptchaError(DelhiHCError):
    pass


class CaseNotFoundError(DelhiHCError):
    pass


class OrdersLinkNotFoundError(DelhiHCError):
    def __init__(self, case_details: CaseDetails):
        super().__init__("Case found but could not locate the orders link.")
        self.case_details = case_details


@dataclass
class SessionState:
    csrf_token: str
    captcha_code: str
    xsrf_token: str
    html: str


Params = List[Tuple[str, str]]


def _column_params(index: int, data: str, name: str, orderable: str) -> Params:
    prefix = f"columns[{index}]"
    return [
        (f"{prefix}[data]", data),
        (f"{prefix}[name]", name),
        (f"{prefix}[searchable]", "true"),
        (f"{prefix}[orderable]", orderable),
        (f"{prefix}[search][value]", ""),
        (f"{prefix}[search][regex]", "false"),
    ]


def _paging_params(length: int) -> Params:
    return [
        ("order[0][column]", "0"),
        ("order[0][dir]", "asc"),
        ("start", "0"),
        ("length", str(length)),
        ("search[value]", ""),
        ("search[regex]", "false"),
    ]


def build_case_search_params(
    case_type: str, case_number: str, year: str, csrf_token: str
) -> Params:
    """
    DataTables server-side parameters for the case-status table.
    Returned as ordered pairs so the query string matches what the site's own page sends.
    """
    params: Params = [("draw", "1")]
    for idx in range(CASE_SEARCH_COLUMNS):
        params.extend(_column_params(idx, str(idx), "", "true"))
    params.extend(_paging_params(50))
    params.extend(
        [
            ("case_type", case_type),
            ("case_number", case_number),
            ("case_year", year),
            ("_token", csrf_token),
        ]
    )
    return params


def build_orders_params() -> Params:
    """DataTables parameters for the orders table; length -1 asks for every row."""
    params: Params = [("draw", "1")]
    for idx, (data, name, orderable) in enumerate(ORDERS_COLUMNS):
        params.extend(_column_params(idx, data, name, orderable))
    params.extend(_paging_params(-1))
    return params


def extract_csrf_token(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    meta = soup.find("meta", attrs={"name": "csrf-token"})
    token = (meta.get("content") or "").strip() if meta else ""
    if token:
        return token
    match = TOKEN_PATTERN.search(html)
    return match.group(1) if match else ""


def extract_captcha_code(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    random_id = soup.find(id="randomid")
    code = (random_id.get("value") or "").strip() if random_id else ""
    if code:
        return code
    for element_id in ("cap", "captcha-code"):
        element = soup.find(id=element_id)
        if element:
            code = element.get_text(strip=True)
            if code:
                return code
    return ""


def parse_select_options(html: str, select_id: str) -> List[SelectOption]:
    soup = BeautifulSoup(html, "html.parser")
    select = soup.find("select", id=select_id)
    if not select:
        return []
    options = []
    for option in select.find_all("option"):
        value = option.get("value")
        if value:
            options.append(SelectOption(value=value, text=option.get_text(strip=True)))
    return options


def _row_cell(row: Union[Dict[str, Any], List[Any]], key: str, position: int) -> str:
    if isinstance(row, dict):
        value = row.get(key) or row.get(str(position))
    elif isinstance(row, (list, tuple)) and len(row) > position:
        value = row[position]
    else:
        value = None
    return str(value) if value else ""


def match_orders_href(case_html: str) -> str:
    match = ORDERS_HREF_PATTERN.search(case_html)
    return absolute_url(match.group(1)) if match else ""


def find_orders_link(case_html: str) -> str:
    """Fallback for rows whose orders link is quoted or points elsewhere."""
    orders_url = ""
    soup = BeautifulSoup(case_html, "html.parser")
    for link in soup.find_all("a"):
        href = (link.get("href") or "").strip()
        text = link.get_text(strip=True).lower()
        if href and ("order" in text or "case-type-status-details" in href):
            orders_url = absolute_url(href)
    return orders_url


def parse_case_row(
    row: Union[Dict[str, Any], List[Any]], case_info: str
) -> CaseDetails:
    """
    Columns: 'ctype' (case no. [status] + links), 'pet' (Petitioner Vs. Respondent),
    'orderdate' (listing date / court no.)
    """
    case_text = strip_html(_row_cell(row, "ctype", 1))
    parties = strip_html(_row_cell(row, "pet", 2))
    listing = strip_html(_row_cell(row, "orderdate", 3))

    details = CaseDetails(case_info=case_info, parties=parties, listing_date=listing)

    # Drop link captions so only "CASE NO. [STATUS]" remains
    case_text = re.sub(r"Click here for.*$", "", case_text, flags=re.IGNORECASE).strip()
    match = re.search(r"(.*?)\[(.*?)\]", case_text)
    if match:
        details.case_no = match.group(1).strip() or None
        details.status = match.group(2).strip() or None
    elif case_text:
        details.case_no = case_text

    if parties:
        parts = re.split(r"\s+VS\.?\s+", parties, flags=re.IGNORECASE)
        details.petitioner = parts[0].strip()
        if len(parts) >= 2:
            details.respondent = parts[1].strip()

    date_match = re.search(r"(\d{2}/\d{2}/\d{4})", listing)
    if date_match:
        details.next_listing_date = date_match.group(1)
    court_match = re.search(r"COURT NO\.?\s*:?\s*(\d+)", listing, re.IGNORECASE)
    if court_match:
        details.court_no = court_match.group(1)
    return details


def _order_date(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("display") or "")
    return strip_tags(value)


def parse_order_rows(rows: List[Dict[str, Any]], case_info: str) -> List[OrderEntry]:
    orders: List[OrderEntry] = []
    for row in rows:
        order_html = row.get("case_no_order_link") or ""
        link_match = ORDER_LINK_PATTERN.search(order_html)
        if not link_match:
            continue
        text_match = LINK_TEXT_PATTERN.search(order_html)
        orders.append(
            OrderEntry(
                sno=row.get("DT_RowIndex") or len(orders) + 1,
                case_no=text_match.group(1).strip() if text_match else case_info,
                date=_order_date(row.get("order_date")),
                pdf_url=absolute_url(link_match.group(1)),
            )
        )
    return orders


class DelhiHCService:
    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()
        self.session.headers.update(BROWSER_HEADERS)

    def _xsrf_from_cookies(self) -> str:
        value = self.session.cookies.get("XSRF-TOKEN")
        return unquote(value) if value else ""

    def _xhr_headers(self, state: SessionState) -> Dict[str, str]:
        return {
            "X-CSRF-TOKEN": state.csrf_token,
            "X-XSRF-TOKEN": state.xsrf_token,
            "X-Requested-With": "XMLHttpRequest",
            "Accept": XHR_ACCEPT,
        }

    def create_session(self) -> SessionState:
        """
        Load the search page once to pick up cookies, the CSRF token and the captcha code.
        """
        resp = self.session.get(SEARCH_URL, timeout=config.REQUEST_TIMEOUT)
        resp.raise_for_status()
        html = resp.text

        state = SessionState(
            csrf_token=extract_csrf_token(html),
            captcha_code=extract_captcha_code(html),
            xsrf_token=self._xsrf_from_cookies(),
            html=html,
        )
        if not state.csrf_token:
            logger.warning("Could not find CSRF token in page source.")
        logger.info(
            "Session: CSRF=%s... Captcha=%s Cookies=%s",
            state.csrf_token[:20],
            state.captcha_code,
            ", ".join(sorted(self.session.cookies.keys())),
        )
        return state

    def validate_captcha(self, state: SessionState) -> Dict[str, Any]:
        """
        Submit the captcha value read from the page. The DataTables endpoint refuses
        to draw until this has been posted for the session.
        """
        if not state.captcha_code:
            raise CaptchaError("Failed to retrieve CAPTCHA code")
        if not state.csrf_token:
            raise CaptchaError("Failed to retrieve CSRF token")

        logger.info("Validating captcha: %s", state.captcha_code)
        headers = self._xhr_headers(state)
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        resp = self.session.post(
            VALIDATE_CAPTCHA_URL,
            data={"_token": state.csrf_token, "captchaInput": state.captcha_code},
            headers=headers,
            timeout=config.REQUEST_TIMEOUT,
        )
        resp.raise_for_status()

        # New cookies from the validation response replace same-named session cookies
        self.session.cookies.update(resp.cookies)
        state.xsrf_token = self._xsrf_from_cookies() or state.xsrf_token

        try:
            result = resp.json()
        except ValueError:
            result = {"raw": truncate(resp.text, 200)}
        logger.info("Captcha validation response: %s", result)
        return result

    @retry(
        retry=retry_if_exception_type((requests.RequestException, CaptchaError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def open_validated_session(self) -> SessionState:
        state = self.create_session()
        self.validate_captcha(state)
        return state

    def get_case_options(self) -> Dict[str, List[SelectOption]]:
        state = self.create_session()
        return {
            "caseTypes": parse_select_options(state.html, "case_type"),
            "years": parse_select_options(state.html, "case_year"),
        }

    def search_case(self, case_type: str, case_number: str, year: str) -> Dict[str, Any]:
        """
        Locate a case in the case-status table and list all of its orders.
        Returns {"caseDetails": CaseDetails, "orders": [OrderEntry], "totalOrders": int}.
        """
        if not case_type or not case_number or not year:
            raise ValueError("Case type, number, and year are required.")

        logger.info("Searching for case: %s %s/%s", case_type, case_number, year)
        state = self.open_validated_session()

        logger.info("Fetching DataTable results...")
        resp = self.session.get(
            SEARCH_URL,
            params=build_case_search_params(case_type, case_number, year, state.csrf_token),
            headers=self._xhr_headers(state),
            timeout=config.SEARCH_TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
        rows = data.get("data") or []
        logger.info(
            "DataTable response: draw=%s, recordsTotal=%s, data rows=%s",
            data.get("draw"),
            data.get("recordsTotal"),
            len(rows),
        )
        if not rows:
            raise CaseNotFoundError(
                "No cases found for the given details. "
                "Please verify case type, number, and year."
            )

        case_info = f"{case_type} - {case_number} / {year}"
        orders_url = ""
        case_details = None
        for row in rows:
            case_html = _row_cell(row, "ctype", 1)
            logger.debug("Row ctype HTML: %s", case_html[:300])
            # An unquoted details href in a later row wins; the <a> scan only fills a gap
            orders_url = match_orders_href(case_html) or orders_url
            if not orders_url:
                orders_url = find_orders_link(case_html)
            case_details = parse_case_row(row, case_info)

        if not orders_url:
            raise OrdersLinkNotFoundError(case_details)

        logger.info("Orders URL: %s", orders_url[:80])
        orders = self.fetch_orders(orders_url, case_info)
        return {
            "caseDetails": case_details,
            "orders": orders,
            "totalOrders": len(orders),
        }

    def fetch_orders(self, orders_url: str, case_info: str) -> List[OrderEntry]:
        """
        The orders page is another DataTables endpoint; the session cookies carry the
        captcha validation over to it.
        """
        logger.info("Fetching orders via DataTables AJAX...")
        resp = self.session.get(
            orders_url,
            params=build_orders_params(),
            headers={"X-Requested-With": "XMLHttpRequest", "Accept": XHR_ACCEPT},
            timeout=config.ORDERS_TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
        rows = data.get("data") or []
        logger.info(
            "Orders DataTable: draw=%s, recordsTotal=%s, rows=%s",
            data.get("draw"),
            data.get("recordsTotal"),
            len(rows),
        )
        orders = parse_order_rows(rows, case_info)
        logger.info("Found %s orders", len(orders))
        return orders


def get_case_options() -> Dict[str, List[SelectOption]]:
    return DelhiHCService().get_case_options()


def search_case(case_type: str, case_number: str, year: str) -> Dict[str, Any]:
    # Fresh session per lookup; the captcha is bound to it
    return DelhiHCService().search_case(case_type, case_number, year)
