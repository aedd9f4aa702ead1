"""Selenium-Transport: eigenes Chromium-Profil (bereits eingeloggt) + System-Chromedriver."""
import logging
import time
from pathlib import Path

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.support.ui import WebDriverWait

from chat_exporter.adapters.transport import Response
from chat_exporter.errors import NetworkFailure

log = logging.getLogger(__name__)

# execute_async_script: letzter Parameter ist der Callback
_FETCH_JS = """
const [target, params, method, headers, body, done] = arguments;
const url = new URL(target, location.href);
for (const [k, v] of Object.entries(params)) url.searchParams.set(k, v);
fetch(url.toString(), {method, headers, body, credentials: 'include'})
    .then(async r => done({status: r.status, statusText: r.statusText, text: await r.text()}))
    .catch(e => done({status: 0, statusText: String(e), text: ''}));
"""


def _clear_singleton_lock(profile_dir: str):
    """Entfernt Chromium-Lock falls ein früherer Prozess ihn hinterlassen hat."""
    lock = Path(profile_dir) / "SingletonLock"
    if lock.is_symlink() or lock.exists():
        lock.unlink()
        log.debug("SingletonLock entfernt")


def make_driver(br: dict) -> webdriver.Chrome:
    _clear_singleton_lock(br["profile_dir"])
    opts = Options()
    opts.add_argument(f"--user-data-dir={br['profile_dir']}")
    opts.add_argument("--password-store=basic")   # Cookies ohne Keyring
    if br.get("headless", True):
        opts.add_argument("--headless=new")
    opts.add_argument("--no-sandbox")
    opts.add_argument("--disable-dev-shm-usage")
    opts.add_argument(f"--window-size={br['window_size'][0]},{br['window_size'][1]}")
    if br.get("binary"):
        opts.binary_location = br["binary"]
    driver = webdriver.Chrome(service=Service(br["driver"]), options=opts)
    driver.set_script_timeout(br.get("script_timeout_s", 60))
    return driver


def cookies_from_driver(driver) -> dict:
    """Cookies der aktuell geöffneten Seite als {name: value}."""
    return {c["name"]: c["value"] for c in driver.get_cookies() if c.get("name")}


class SeleniumTransport:
    def __init__(self, driver, page_url: str = None):
        self.driver = driver
        if page_url:
            self.navigate(page_url)

    @classmethod
    def launch(cls, br: dict, page_url: str) -> "SeleniumTransport":
        try:
            driver = make_driver(br)
        except WebDriverException as exc:
            raise NetworkFailure(f"Cannot start Chromium: {exc.msg or exc}") from exc
        return cls(driver, page_url)

    def current_url(self) -> str:
        return self.driver.current_url

    def title(self) -> str:
        return self.driver.title or ""

    def page_source(self) -> str:
        return self.driver.page_source or ""

    def navigate(self, url: str, timeout: int = 30):
        try:
            self.driver.get(url)
            WebDriverWait(self.driver, timeout).until(
                lambda d: d.execute_script("return document.readyState") == "complete"
            )
        except TimeoutException:
            log.warning("Seite %s nach %ds nicht vollständig geladen", url, timeout)
        except WebDriverException as exc:
            raise NetworkFailure(f"Navigation to {url} failed: {exc.msg or exc}") from exc
        time.sleep(1)   # SPA rendert nach readyState nach

    def request(self, method: str, url: str, headers: dict = None,
                params: dict = None, data: str = None) -> Response:
        log.debug("Selenium fetch %s %s", method, url)
        try:
            value = self.driver.execute_async_script(
                _FETCH_JS, url, params or {}, method, headers or {}, data
            )
        except WebDriverException as exc:
            raise NetworkFailure(f"{method} {url} failed: {exc.msg or exc}") from exc
        if not isinstance(value, dict) or not value.get("status"):
            reason = value.get("statusText", "") if isinstance(value, dict) else ""
            raise NetworkFailure(f"{method} {url} failed: {reason or 'no response'}")
        return Response(status=int(value["status"]), reason=value.get("statusText", ""),
                        text=value.get("text", ""))

    def close(self):
        self.driver.quit()
