"""
Linearisierung: Parent-Pointer-Graph (ChatGPT mapping) oder flache DOM-Liste
→ chronologische Folge sichtbarer Nachrichten.

Verwendung:
    from chat_exporter.linearize import parse_conversation
    conv = parse_conversation(raw_json)     # raw = /backend-api/conversation/<id>
    conv.messages                           # älteste zuerst, ohne system
"""
import logging
from typing import Optional

from chat_exporter.errors import CyclicConversationGraph, MissingConversationRoot
from chat_exporter.models import (
    Code,
    Conversation,
    Dropped,
    EditableContext,
    Message,
    MultimodalParts,
    Part,
    PlainText,
    Role,
    ThoughtItem,
    Thoughts,
    Unsupported,
)

log = logging.getLogger(__name__)

DEFAULT_TITLE = "ChatGPT Conversation"

# Content-Typen, die nur Rauschen sind (werden zu Dropped)
NOISE_TYPES = {"reasoning_recap", "model_editable_context"}

# Interne Träger, die nie als Nachricht in der Folge landen
HIDDEN_TYPES = {"user_editable_context", "model_editable_context"}


# ─────────────────────────────────────────────────────────────
# Rohdaten → Content-Variante
# ─────────────────────────────────────────────────────────────

def _str(value) -> str:
    return "" if value is None else str(value)


def _type_tag(obj: dict) -> str:
    """content_type (Backend-API) oder type (kompakte Form)."""
    return _str(obj.get("content_type") or obj.get("type"))


def _role(msg: dict):
    author = msg.get("author") or {}
    return Role.parse(author.get("role") or msg.get("role"))


def _parse_part(part) -> Part:
    if isinstance(part, str):
        return Part(kind="text", data=part, type_tag="text")
    if not isinstance(part, dict):
        return Part(kind="other", data=part, type_tag=type(part).__name__)
    tag = _type_tag(part)
    if tag == "image_asset_pointer":
        return Part(kind="image", data=part.get("asset_pointer"), type_tag=tag)
    if tag == "code":
        return Part(kind="code", data=_str(part.get("text")), type_tag=tag)
    return Part(kind="other", data=part, type_tag=tag)


def parse_content(content: Optional[dict], metadata: Optional[dict] = None):
    """Mappt ein Export-'content'-Objekt auf eine Content-Variante."""
    if not content:
        return PlainText()
    metadata = metadata or {}
    tag = _type_tag(content)

    if tag == "text":
        return PlainText(tuple(_str(p) for p in (content.get("parts") or [])))
    if tag == "code":
        language = content.get("language") or metadata.get("language") or None
        return Code(text=_str(content.get("text")), language=language)
    if tag == "thoughts":
        items = tuple(
            ThoughtItem(summary=_str(t.get("summary")), body=_str(t.get("content")))
            for t in (content.get("thoughts") or [])
            if isinstance(t, dict)
        )
        return Thoughts(items)
    if tag == "multimodal_text":
        return MultimodalParts(tuple(_parse_part(p) for p in (content.get("parts") or [])))
    if tag in NOISE_TYPES:
        return Dropped(tag)
    if tag == "user_editable_context":
        return EditableContext(
            user_profile=_str(content.get("user_profile")),
            user_instructions=_str(content.get("user_instructions")),
        )
    return Unsupported(tag or "unknown")


def message_from_raw(node_id: str, node: dict) -> Optional[Message]:
    """Baut eine Message aus einem mapping-Knoten. None für strukturelle Knoten."""
    msg = node.get("message") if isinstance(node, dict) else None
    if not msg:
        return None
    content = msg.get("content") or {}
    metadata = msg.get("metadata") or {}
    return Message(
        role=_role(msg),
        content_type=_type_tag(content),
        content=parse_content(content, metadata),
        end_turn=bool(msg.get("end_turn")),
        parent_id=node.get("parent"),
        id=_str(msg.get("id") or node_id),
        recipient=_str(msg.get("recipient") or "all"),
    )


def _is_hidden(node: dict) -> bool:
    metadata = (node.get("message") or {}).get("metadata") or {}
    return bool(metadata.get("is_visually_hidden_from_conversation"))


# ─────────────────────────────────────────────────────────────
# Graph-Fall
# ─────────────────────────────────────────────────────────────

def linearize_graph(mapping: dict, current_node: Optional[str]) -> tuple[list[Message], Optional[EditableContext]]:
    """
    Läuft vom aktuellen Blatt über parent-Referenzen zurück zur Wurzel.
    Gibt (Nachrichten älteste→neueste, Custom Instructions oder None) zurück.

    Fehlende Knoten-IDs beenden die Kette, ein erneuter Besuch ist ein Zyklus.
    """
    if not mapping or not current_node:
        raise MissingConversationRoot("Failed to find the starting node of the conversation")

    messages: list[Message] = []
    editable: Optional[EditableContext] = None
    visited: set = set()
    node_id = current_node

    while node_id:
        if node_id in visited:
            raise CyclicConversationGraph(node_id)
        visited.add(node_id)

        node = mapping.get(node_id)
        if node is None:
            log.debug("Knoten %s fehlt im mapping, Kette endet", node_id)
            break

        message = message_from_raw(node_id, node)
        if message is not None and message.role is not Role.SYSTEM:
            if isinstance(message.content, EditableContext):
                # nur der jüngste Kontext zählt (wir laufen rückwärts)
                if editable is None:
                    editable = message.content
            elif message.content_type not in HIDDEN_TYPES and not _is_hidden(node):
                messages.append(message)

        node_id = node.get("parent")

    messages.reverse()
    return messages, editable


def parse_conversation(raw: dict) -> Conversation:
    """Rohe ChatGPT-Konversation (API-Antwort oder Export-Eintrag) → Conversation."""
    messages, editable = linearize_graph(raw.get("mapping") or {}, raw.get("current_node"))
    conv = Conversation(
        title=_str(raw.get("title")) or DEFAULT_TITLE,
        messages=tuple(messages),
        conversation_id=_str(raw.get("conversation_id") or raw.get("id")),
        custom_instructions=editable,
        raw=raw,
    )
    log.debug("Konversation %r linearisiert: %d Nachrichten", conv.title, len(conv.messages))
    return conv


# ─────────────────────────────────────────────────────────────
# Flacher Fall (DOM)
# ─────────────────────────────────────────────────────────────

_ELEMENT_ROLES = {
    "user-message": Role.USER,
    "user": Role.USER,
    "ai-message": Role.ASSISTANT,
    "assistant": Role.ASSISTANT,
}


def linearize_elements(elements: list[dict]) -> list[Message]:
    """
    Filtert DOM-Elemente ({"tag": ..., "text": ...}) auf User/Assistant,
    Dokumentreihenfolge bleibt erhalten. Jedes Element ist ein eigener Turn.
    """
    messages = []
    for i, element in enumerate(elements):
        role = _ELEMENT_ROLES.get(_str(element.get("tag")).lower())
        if role is None:
            continue
        messages.append(Message(
            role=role,
            content_type="text",
            content=PlainText((_str(element.get("text")),)),
            end_turn=True,
            id=f"dom-{i}",
        ))
    return messages
