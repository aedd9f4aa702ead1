"""Copilot: Nachrichten aus dem gerenderten DOM des offenen Tabs."""
import logging

from chat_exporter.assemble import AssemblerOptions, assemble_markdown
from chat_exporter.dom import conversation_titles, extract_messages, file_stem
from chat_exporter.errors import ConversationNotFound
from chat_exporter.models import Conversation
from chat_exporter.utils.files import build_filename

log = logging.getLogger(__name__)


class CopilotClient:
    name = "copilot"

    def __init__(self, transport):
        self.transport = transport

    def fetch(self, url: str = None) -> Conversation:
        if url and url != self.transport.current_url():
            self.transport.navigate(url)

        html = self.transport.page_source()
        messages = extract_messages(html)
        if not messages:
            raise ConversationNotFound("No conversation messages found!")

        header, _ = conversation_titles(html, self.transport.title())
        log.info("Copilot-Konversation %r: %d Nachrichten", header, len(messages))
        # JSON-Export: die Nachrichten so, wie sie im DOM standen
        raw = [{"role": m.role.value, "text": "\n".join(m.content.lines)} for m in messages]
        return Conversation(title=header, messages=tuple(messages), raw=raw)

    def render(self, conv: Conversation, opts: AssemblerOptions) -> str:
        return assemble_markdown(conv, opts)

    def filename(self, conv: Conversation, extension: str, with_timestamp: bool = False, now=None) -> str:
        return build_filename(file_stem(conv.title), extension, with_timestamp, now)
