"""
Export-Session: Transport öffnen, Konversation holen, rendern, Datei schreiben.

Verwendung:
    from chat_exporter.config import load_config
    from chat_exporter.exporter import ExportSession, make_client, open_transport

    cfg = load_config()
    transport = open_transport("chatgpt", "cdp", cfg)
    session = ExportSession(make_client("chatgpt", transport), cfg)
    result = session.export()          # → ExportResult(path, conversation, content)
"""
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from chat_exporter.adapters.browser import SeleniumTransport
from chat_exporter.adapters.cdp import CdpTransport
from chat_exporter.adapters.chatgpt import ChatGPTClient, conversation_filename
from chat_exporter.adapters.copilot import CopilotClient
from chat_exporter.adapters.gemini import GeminiClient
from chat_exporter.adapters.transport import HttpTransport
from chat_exporter.assemble import AssemblerOptions, assemble_markdown
from chat_exporter.config import service_config
from chat_exporter.errors import ExportError, ExportInProgress, UnexpectedPayload
from chat_exporter.linearize import parse_conversation
from chat_exporter.models import Conversation
from chat_exporter.utils.credentials import CookieStore
from chat_exporter.utils.files import render_json, write_export

log = logging.getLogger(__name__)

CLIENTS = {
    "chatgpt": ChatGPTClient,
    "gemini": GeminiClient,
    "copilot": CopilotClient,
}
TRANSPORTS = ("cdp", "selenium", "http")
FORMATS = ("md", "json")


@dataclass
class ExportResult:
    path: Path
    conversation: Conversation
    content: str


def open_transport(service: str, via: str, cfg: dict, url: Optional[str] = None):
    """Transport für einen Service. `url` überschreibt die Basis-URL aus der Config."""
    page_url = url or service_config(cfg, service)["url"]
    if via == "cdp":
        return CdpTransport.connect(cfg["cdp"], match=urlsplit(page_url).netloc or page_url)
    if via == "selenium":
        return SeleniumTransport.launch(cfg["browser"], page_url)
    if via == "http":
        cookies = CookieStore.from_config(cfg).load(service)
        if not cookies:
            log.warning("Keine gespeicherten Cookies für %s, Anfragen laufen anonym", service)
        http = cfg.get("http", {})
        return HttpTransport(page_url, cookies, timeout_s=http.get("timeout_s", 30),
                             user_agent=http.get("user_agent", ""))
    raise ValueError(f"Unknown transport: {via!r}. Known: {list(TRANSPORTS)}")


def make_client(service: str, transport):
    if service not in CLIENTS:
        raise KeyError(f"Unknown service: '{service}'. Known: {list(CLIENTS)}")
    return CLIENTS[service](transport)


def assembler_options(cfg: dict, service: str) -> AssemblerOptions:
    """Markdown-Optionen + Labels des Service."""
    svc = cfg.get("services", {}).get(service, {})
    return AssemblerOptions.from_config(
        cfg.get("markdown", {}),
        user_label=svc.get("user_label"),
        assistant_label=svc.get("assistant_label"),
    )


def _check_format(fmt: str):
    if fmt not in FORMATS:
        raise ValueError(f"Unknown format: {fmt!r}. Known: {list(FORMATS)}")


class ExportSession:
    """
    Eine Session pro Seite/Tab. Während ein Export läuft, wird ein zweiter
    abgelehnt (ExportInProgress) statt parallel gestartet.
    """

    def __init__(self, client, cfg: dict, page_url: Optional[str] = None):
        self.client = client
        self.cfg = cfg
        self.page_url = page_url
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def on_navigation(self, url: str):
        """Seite hat gewechselt (SPA-Navigation): nächste Export-Anfrage nutzt die neue URL."""
        log.debug("Navigation: %s → %s", self.page_url, url)
        self.page_url = url

    def export(self, fmt: Optional[str] = None, out_dir: Optional[Path] = None,
               with_timestamp: Optional[bool] = None, now: Optional[datetime] = None) -> ExportResult:
        output = self.cfg.get("output", {})
        fmt = fmt or output.get("format", "md")
        _check_format(fmt)
        out_dir = Path(out_dir or output["dir"])
        if with_timestamp is None:
            with_timestamp = bool(output.get("timestamp", False))

        if not self._lock.acquire(blocking=False):
            raise ExportInProgress("An export is already running for this session.")
        try:
            conv = self.client.fetch(self.page_url)
            if fmt == "json":
                content = render_json(conv.raw)
            else:
                content = self.client.render(conv, assembler_options(self.cfg, self.client.name))
            filename = self.client.filename(conv, fmt, with_timestamp, now)
            path = write_export(out_dir, filename, content)
        finally:
            self._lock.release()
        return ExportResult(path=path, conversation=conv, content=content)


# ─────────────────────────────────────────────────────────────
# Offline: ChatGPT-JSON (API-Antwort oder offizieller Datenexport)
# ─────────────────────────────────────────────────────────────

def load_conversations(path: Path) -> list[dict]:
    """Ein Konversations-Objekt oder die Liste aus conversations.json."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except ValueError as exc:
        raise UnexpectedPayload(f"{path} is not valid JSON: {exc}") from exc
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [c for c in data if isinstance(c, dict)]
    raise UnexpectedPayload(f"{path} contains neither a conversation nor a list of conversations")


def export_file(path: Path, cfg: dict, fmt: Optional[str] = None, out_dir: Optional[Path] = None,
                with_timestamp: Optional[bool] = None, now: Optional[datetime] = None) -> list[ExportResult]:
    """
    Rendert eine lokal gespeicherte ChatGPT-Konversation. Bei einer Liste wird
    jede Konversation einzeln geschrieben; kaputte Einträge werden übersprungen.
    """
    output = cfg.get("output", {})
    fmt = fmt or output.get("format", "md")
    _check_format(fmt)
    out_dir = Path(out_dir or output["dir"])
    if with_timestamp is None:
        with_timestamp = bool(output.get("timestamp", False))

    raws = load_conversations(path)
    single = len(raws) == 1
    opts = assembler_options(cfg, "chatgpt")
    used: set = set()
    results = []

    for raw in raws:
        try:
            conv = parse_conversation(raw)
        except ExportError as exc:
            if single:
                raise
            log.warning("Überspringe %r: %s", raw.get("title"), exc)
            continue

        content = render_json(raw) if fmt == "json" else assemble_markdown(conv, opts)
        filename = conversation_filename(conv, fmt, with_timestamp, now)
        if filename in used and conv.conversation_id:
            filename = f"{Path(filename).stem}_{conv.conversation_id[:8]}.{fmt}"
        used.add(filename)
        results.append(ExportResult(write_export(out_dir, filename, content), conv, content))

    log.info("%d von %d Konversationen aus %s exportiert", len(results), len(raws), path)
    return results
