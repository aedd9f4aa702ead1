"""ChatGPT: Access-Token aus der Session holen, Konversation über die Backend-API laden."""
import logging
import re
from typing import Optional

from chat_exporter.assemble import AssemblerOptions, assemble_markdown
from chat_exporter.errors import (
    AuthenticationUnavailable,
    ConversationNotFound,
    NetworkFailure,
    UnexpectedPayload,
)
from chat_exporter.linearize import parse_conversation
from chat_exporter.models import Conversation
from chat_exporter.utils.files import build_filename, sanitize_filename

log = logging.getLogger(__name__)

SESSION_PATH = "/api/auth/session"
CONVERSATION_PATH = "/backend-api/conversation/{chat_id}"

# UUID nach /c/, egal was davor steht (z.B. /g/<gpt>/c/<id>)
_CHAT_ID = re.compile(r"/c/([a-zA-Z0-9-]+)")


def chat_id_from_url(url: str) -> Optional[str]:
    m = _CHAT_ID.search(url or "")
    return m.group(1) if m else None


class ChatGPTClient:
    name = "chatgpt"

    def __init__(self, transport):
        self.transport = transport

    def access_token(self) -> str:
        resp = self.transport.request("GET", SESSION_PATH)
        if not resp.ok:
            raise AuthenticationUnavailable(
                f"Failed to fetch session ({resp.status}). You may need to log in again.")
        try:
            token = (resp.json() or {}).get("accessToken")
        except (ValueError, AttributeError):
            token = None
        if not token:
            raise AuthenticationUnavailable("Could not find access token in session.")
        return token

    def fetch_raw(self, chat_id: str) -> dict:
        token = self.access_token()
        resp = self.transport.request(
            "GET", CONVERSATION_PATH.format(chat_id=chat_id),
            headers={"Authorization": f"Bearer {token}"},
        )
        if not resp.ok:
            raise NetworkFailure(f"Network response was not ok: {resp.status} {resp.reason}".rstrip(),
                                 resp.status, resp.reason)
        try:
            raw = resp.json()
        except ValueError as exc:
            raise UnexpectedPayload(f"Conversation {chat_id} is not valid JSON") from exc
        if not isinstance(raw, dict):
            raise UnexpectedPayload(f"Conversation {chat_id} has unexpected shape")
        return raw

    def fetch(self, url: str = None) -> Conversation:
        chat_id = chat_id_from_url(url or self.transport.current_url())
        if not chat_id:
            raise ConversationNotFound(
                "Could not find conversation ID. Please ensure you are inside a chat.")
        log.info("Lade ChatGPT-Konversation %s", chat_id)
        conv = parse_conversation(self.fetch_raw(chat_id))
        conv.conversation_id = conv.conversation_id or chat_id
        return conv

    def render(self, conv: Conversation, opts: AssemblerOptions) -> str:
        return assemble_markdown(conv, opts)

    def filename(self, conv: Conversation, extension: str, with_timestamp: bool = False, now=None) -> str:
        return conversation_filename(conv, extension, with_timestamp, now)


def conversation_filename(conv: Conversation, extension: str, with_timestamp: bool = False, now=None) -> str:
    """Titel mit "-" statt verbotener Zeichen. Auch für Offline-Exporte."""
    return build_filename(sanitize_filename(conv.title, "-"), extension, with_timestamp, now)
