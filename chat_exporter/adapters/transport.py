"""
Transport-Schnittstelle + HTTP-Transport via requests.

Ein Transport ist "die Seite", auf der ein Userscript laufen würde:
    current_url()   aktuelle Seiten-URL
    title()         document.title
    page_source()   HTML der Seite
    navigate(url)   andere Seite öffnen
    request(...)    fetch() mit den Cookies der Seite → Response
    close()

Implementierungen: HttpTransport (hier), CdpTransport (cdp.py),
SeleniumTransport (browser.py).
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlsplit

import requests
from bs4 import BeautifulSoup

from chat_exporter.errors import NetworkFailure

log = logging.getLogger(__name__)


@dataclass
class Response:
    status: int
    reason: str = ""
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self):
        return json.loads(self.text)


def title_from_html(html: str) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    return soup.title.get_text().strip() if soup.title else ""


class HttpTransport:
    """
    Direkte HTTP-Session mit Session-Cookies aus dem CookieStore.
    Kein gerendertes DOM: page_source() ist das ausgelieferte HTML.
    """

    def __init__(self, page_url: str, cookies: dict = None, timeout_s: int = 30,
                 user_agent: str = "", session: Optional[requests.Session] = None):
        self.page_url = page_url
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers["User-Agent"] = user_agent
        host = urlsplit(page_url).hostname or ""
        for name, value in (cookies or {}).items():
            self.session.cookies.set(name, value, domain=host)
        self._source: Optional[str] = None

    def current_url(self) -> str:
        return self.page_url

    def navigate(self, url: str):
        self.page_url = url
        self._source = None

    def page_source(self) -> str:
        if self._source is None:
            resp = self.request("GET", self.page_url)
            if not resp.ok:
                raise NetworkFailure(f"Page request failed: {resp.status} {resp.reason}",
                                     resp.status, resp.reason)
            self._source = resp.text
        return self._source

    def title(self) -> str:
        return title_from_html(self.page_source())

    def request(self, method: str, url: str, headers: dict = None,
                params: dict = None, data: str = None) -> Response:
        full = urljoin(self.page_url, url)
        log.debug("HTTP %s %s", method, full)
        try:
            r = self.session.request(method, full, headers=headers, params=params,
                                     data=data, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise NetworkFailure(f"{method} {full} failed: {exc}") from exc
        return Response(status=r.status_code, reason=r.reason or "", text=r.text)

    def close(self):
        self.session.close()
