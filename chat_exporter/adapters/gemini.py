"""Gemini: Konversation über das interne batchexecute-RPC (hNvQHb) laden, Titel über MaZiqc."""
import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

from chat_exporter import gemini
from chat_exporter.errors import (
    AuthenticationUnavailable,
    ConversationNotFound,
    ExportError,
    NetworkFailure,
    UnexpectedPayload,
)
from chat_exporter.models import Conversation
from chat_exporter.utils.files import build_filename, sanitize_filename

log = logging.getLogger(__name__)

BATCHEXECUTE_PATH = "/_/BardChatUi/data/batchexecute"
RPC_HEADERS = {
    "content-type": "application/x-www-form-urlencoded;charset=UTF-8",
    "x-same-domain": "1",
    "accept": "*/*",
}

_CHAT_ID = re.compile(r"/app/([a-z0-9]+)", re.I)
_SNLM0E = re.compile(r'"SNlM0e":"([^"]+)"')


def chat_id_from_url(url: str) -> Optional[str]:
    m = _CHAT_ID.search(url or "")
    return m.group(1) if m else None


def page_tokens(html: str) -> tuple[Optional[str], str]:
    """(at-Token, Sprache) aus dem Seiten-HTML."""
    soup = BeautifulSoup(html or "", "html.parser")
    at = None
    field = soup.select_one('input[name="at"]')
    if field is not None and field.get("value"):
        at = field["value"]
    if not at:
        m = _SNLM0E.search(html or "")
        at = m.group(1) if m else None
    lang = (soup.html.get("lang") if soup.html else None) or "en"
    return at, lang


class GeminiClient:
    name = "gemini"

    def __init__(self, transport):
        self.transport = transport

    def _batchexecute(self, params: dict, body: str):
        return self.transport.request("POST", BATCHEXECUTE_PATH, headers=RPC_HEADERS,
                                      params=params, data=body)

    def fetch_payloads(self, chat_id: str, at: str, lang: str) -> list:
        resp = self._batchexecute(*gemini.conversation_request(chat_id, lang, at))
        if not resp.ok:
            snippet = f"\n{resp.text[:300]}" if resp.text else ""
            raise NetworkFailure(f"batchexecute failed: {resp.status} {resp.reason}{snippet}",
                                 resp.status, resp.reason)
        payloads = gemini.parse_batchexecute(resp.text, gemini.CONVERSATION_RPC)
        if not payloads:
            raise UnexpectedPayload("No conversation payloads found in batchexecute response.")
        return payloads

    def fetch_title(self, chat_id: str, at: str, lang: str) -> Optional[str]:
        """Titel ist Kosmetik: jeder Fehler hier fällt auf den Seitentitel zurück."""
        try:
            resp = self._batchexecute(*gemini.title_request(chat_id, lang, at))
        except ExportError as exc:
            log.debug("Titel-RPC fehlgeschlagen: %s", exc)
            return None
        if not resp.ok:
            return None
        return gemini.title_from_payloads(gemini.parse_batchexecute(resp.text, gemini.TITLE_RPC), chat_id)

    def fetch(self, url: str = None) -> Conversation:
        chat_id = chat_id_from_url(url or self.transport.current_url())
        if not chat_id:
            raise ConversationNotFound("Open a chat at /app/:chatId before exporting.")

        at, lang = page_tokens(self.transport.page_source())
        if not at:
            raise AuthenticationUnavailable('Could not find anti-CSRF token "at" on the page.')

        log.info("Lade Gemini-Konversation %s", chat_id)
        payloads = self.fetch_payloads(chat_id, at, lang)
        blocks = gemini.extract_all_blocks(payloads)
        if not blocks:
            raise UnexpectedPayload("Could not extract any User/Assistant message pairs.")

        title = self.fetch_title(chat_id, at, lang) or gemini.clean_page_title(self.transport.title())
        return Conversation(title=title, conversation_id=chat_id, raw=payloads, blocks=tuple(blocks))

    def render(self, conv: Conversation, opts=None) -> str:
        return gemini.blocks_to_markdown(list(conv.blocks), conv.title)

    def filename(self, conv: Conversation, extension: str, with_timestamp: bool = True, now=None) -> str:
        # Gemini-Exporte tragen immer einen Zeitstempel
        stem = sanitize_filename(conv.title or gemini.DEFAULT_TITLE, "_", collapse_spaces=True)
        return build_filename(stem, extension, True, now)
