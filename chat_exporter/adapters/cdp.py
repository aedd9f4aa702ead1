"""
CDP-Transport: hängt sich per DevTools-Protokoll an einen eingeloggten
Chromium-Tab und führt fetch() im Seitenkontext aus, genau wie ein Userscript.

Chromium muss mit --remote-debugging-port=<port> laufen.
"""
import json
import logging
import time
from typing import Optional

import requests
import websocket

from chat_exporter.adapters.transport import Response
from chat_exporter.errors import ConversationNotFound, NetworkFailure

log = logging.getLogger(__name__)

_FETCH_JS = """
(async () => {
    const url = new URL(%(url)s, location.href);
    for (const [k, v] of Object.entries(%(params)s)) url.searchParams.set(k, v);
    const r = await fetch(url.toString(), {
        method: %(method)s,
        headers: %(headers)s,
        body: %(body)s,
        credentials: 'include'
    });
    return {status: r.status, statusText: r.statusText, text: await r.text()};
})()
"""


class CDPClient:
    def __init__(self, ws_url: str, timeout_s: int = 60, connection=None):
        if connection is None:
            try:
                connection = websocket.create_connection(ws_url, timeout=timeout_s)
            except (websocket.WebSocketException, OSError) as exc:
                raise NetworkFailure(f"Cannot connect to DevTools socket {ws_url}: {exc}") from exc
        self.ws = connection
        self.id = 0

    def _recv(self, method: str) -> dict:
        try:
            return json.loads(self.ws.recv())
        except (websocket.WebSocketException, OSError) as exc:
            raise NetworkFailure(f"CDP {method}: no answer from browser ({type(exc).__name__}: {exc})") from exc
        except ValueError as exc:
            raise NetworkFailure(f"CDP {method}: malformed message from browser") from exc

    def send(self, method: str, params: dict = None) -> dict:
        self.id += 1
        cmd = {"id": self.id, "method": method, "params": params or {}}
        try:
            self.ws.send(json.dumps(cmd))
        except (websocket.WebSocketException, OSError) as exc:
            raise NetworkFailure(f"CDP {method} could not be sent: {exc}") from exc
        # Events und fremde Antworten überspringen
        while True:
            resp = self._recv(method)
            if resp.get("id") == self.id:
                if "error" in resp:
                    raise NetworkFailure(f"CDP {method} failed: {resp['error'].get('message', resp['error'])}")
                return resp

    def eval_js(self, js: str):
        resp = self.send("Runtime.evaluate", {
            "expression": js,
            "returnByValue": True,
            "awaitPromise": True,
        })
        result = resp.get("result", {})
        if "exceptionDetails" in result:
            details = result["exceptionDetails"]
            text = (details.get("exception") or {}).get("description") or details.get("text", "")
            raise NetworkFailure(f"Page script failed: {text}")
        return result.get("result", {}).get("value")

    def close(self):
        self.ws.close()


def list_tabs(host: str, port: int, timeout_s: int = 10) -> list[dict]:
    try:
        resp = requests.get(f"http://{host}:{port}/json/list", timeout=timeout_s)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise NetworkFailure(f"Cannot reach Chromium DevTools at {host}:{port}: {exc}") from exc
    return [t for t in resp.json() if t.get("type", "page") == "page"]


def find_tab(tabs: list[dict], match: str) -> Optional[dict]:
    for tab in tabs:
        if match in tab.get("url", "") and tab.get("webSocketDebuggerUrl"):
            return tab
    return None


class CdpTransport:
    def __init__(self, client: CDPClient):
        self.client = client

    @classmethod
    def connect(cls, cdp_cfg: dict, match: str) -> "CdpTransport":
        """Erster Tab, dessen URL `match` enthält."""
        tabs = list_tabs(cdp_cfg["host"], cdp_cfg["port"])
        tab = find_tab(tabs, match)
        if tab is None:
            raise ConversationNotFound(f"No open browser tab matching {match!r}")
        log.info("CDP verbunden: %s", tab.get("url"))
        client = CDPClient(tab["webSocketDebuggerUrl"], timeout_s=cdp_cfg.get("timeout_s", 60))
        client.send("Runtime.enable")
        return cls(client)

    def current_url(self) -> str:
        return self.client.eval_js("location.href") or ""

    def title(self) -> str:
        return self.client.eval_js("document.title") or ""

    def page_source(self) -> str:
        return self.client.eval_js("document.documentElement.outerHTML") or ""

    def wait_for_page_load(self, timeout: int = 30) -> bool:
        start = time.time()
        while time.time() - start < timeout:
            if self.client.eval_js("document.readyState") == "complete":
                log.debug("Seite geladen nach %.1fs", time.time() - start)
                return True
            time.sleep(1)
        log.warning("Seite nach %ds nicht vollständig geladen", timeout)
        return False

    def navigate(self, url: str):
        self.client.send("Page.navigate", {"url": url})
        time.sleep(1)
        self.wait_for_page_load()

    def request(self, method: str, url: str, headers: dict = None,
                params: dict = None, data: str = None) -> Response:
        js = _FETCH_JS % {
            "url": json.dumps(url),
            "params": json.dumps(params or {}),
            "method": json.dumps(method),
            "headers": json.dumps(headers or {}),
            "body": json.dumps(data),
        }
        log.debug("CDP fetch %s %s", method, url)
        value = self.client.eval_js(js)
        if not isinstance(value, dict):
            raise NetworkFailure(f"{method} {url} returned no response")
        return Response(status=int(value.get("status", 0)),
                        reason=value.get("statusText", ""),
                        text=value.get("text", ""))

    def close(self):
        self.client.close()
