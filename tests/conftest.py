import copy
import time

import fitz
import pytest
import requests
from requests.cookies import RequestsCookieJar
from requests.structures import CaseInsensitiveDict

from dhc_orders import config

SEARCH_PAGE_HTML = """
<html>
<head><meta name="csrf-token" content="tok123"></head>
<body>
<select id="case_type">
  <option value="">Select Case Type</option>
  <option value="W.P.(C)">W.P.(C)</option>
  <option value="CS(OS)"> CS(OS) </option>
</select>
<select id="case_year">
  <option value="">Year</option>
  <option value="2025">2025</option>
  <option value="2024">2024</option>
</select>
<input type="hidden" id="randomid" value="4821">
<span id="captcha-code" class="captcha-code">4821</span>
</body>
</html>
"""


class FakeResponse:
    def __init__(
        self,
        text="",
        json_data=None,
        status_code=200,
        cookies=None,
        headers=None,
        content=None,
    ):
        self.text = text
        self._json = json_data
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self.content = content if content is not None else text.encode("utf-8")
        self.cookies = RequestsCookieJar()
        for name, value in (cookies or {}).items():
            self.cookies.set(name, value)

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeSession:
    """Replays queued responses in order and records every call, merging cookies like requests does."""

    def __init__(self, responses):
        self.headers = {}
        self.cookies = RequestsCookieJar()
        self.responses = list(responses)
        self.calls = []

    def _handle(self, method, url, **kwargs):
        self.calls.append(
            {"method": method, "url": url, "cookies": dict(self.cookies), **kwargs}
        )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        for cookie in response.cookies:
            self.cookies.set_cookie(copy.copy(cookie))
        return response

    def get(self, url, **kwargs):
        return self._handle("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._handle("POST", url, **kwargs)


def make_pdf(pages=1, text="Order"):
    doc = fitz.open()
    for number in range(1, pages + 1):
        page = doc.new_page()
        page.insert_text((72, 72), f"{text} page {number}")
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(time, "sleep", calls.append)
    return calls


@pytest.fixture(autouse=True)
def downloads_dir(tmp_path, monkeypatch):
    target = tmp_path / "downloads"
    monkeypatch.setattr(config, "DOWNLOADS_DIR", target)
    monkeypatch.setattr(config, "SUPABASE_URL", None)
    monkeypatch.setattr(config, "SUPABASE_KEY", None)
    return target


@pytest.fixture
def search_page():
    return FakeResponse(
        text=SEARCH_PAGE_HTML,
        cookies={"XSRF-TOKEN": "abc%3D", "laravel_session": "s1"},
    )
