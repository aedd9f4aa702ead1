"""
Gemini: batchexecute-Antwort parsen, User/Assistant-Blöcke finden, sortieren
und als Markdown ausgeben.

Die hNvQHb-Antwort ist ein tief verschachteltes Array ohne Schlüssel. Blöcke
werden heuristisch erkannt:
  User-Knoten       [["text", ...], 1|2, ...]
  Assistant-Knoten  ["rc_...", ["text", ...], ...]
  Zeitstempel       [sekunden > 1.6e9, nanos]
"""
import json
import logging
from typing import Optional
from urllib.parse import urlencode

from chat_exporter.models import GeminiBlock

log = logging.getLogger(__name__)

CONVERSATION_RPC = "hNvQHb"
TITLE_RPC = "MaZiqc"
XSSI_GUARD = ")]}'"
DEFAULT_TITLE = "Gemini Chat"
MIN_EPOCH = 1_600_000_000


# ─────────────────────────────────────────────────────────────
# Request-Aufbau
# ─────────────────────────────────────────────────────────────

def conversation_key(chat_id: str) -> str:
    return chat_id if chat_id.startswith("c_") else f"c_{chat_id}"


def build_rpc_request(rpc_id: str, inner_args, chat_id: str, lang: str, at: str) -> tuple[dict, str]:
    """Gibt (Query-Parameter, Form-Body) für einen batchexecute-Call zurück."""
    f_req = [[[rpc_id, inner_args, None, "generic"]]]
    params = {
        "rpcids": rpc_id,
        "source-path": f"/app/{chat_id}",
        "hl": lang or "en",
        "rt": "c",
    }
    body = urlencode({"f.req": json.dumps(f_req, separators=(",", ":")), "at": at}) + "&"
    return params, body


def conversation_request(chat_id: str, lang: str, at: str) -> tuple[dict, str]:
    inner = json.dumps([conversation_key(chat_id), 1000, None, 1, [0], [4], None, 1],
                       separators=(",", ":"))
    return build_rpc_request(CONVERSATION_RPC, inner, chat_id, lang, at)


def title_request(chat_id: str, lang: str, at: str) -> tuple[dict, str]:
    return build_rpc_request(TITLE_RPC, None, chat_id, lang, at)


# ─────────────────────────────────────────────────────────────
# batchexecute-Parser
# ─────────────────────────────────────────────────────────────

def parse_batchexecute(text: str, rpc_id: str = CONVERSATION_RPC) -> list:
    """
    Format: optionale XSSI-Zeile, dann abwechselnd Längen-Zeile und JSON-Zeile.
    Gesammelt werden die inneren Payloads aller ["wrb.fr", rpc_id, "<json>"]-Einträge.
    """
    if text.startswith(XSSI_GUARD):
        nl = text.find("\n")
        text = text[nl + 1:] if nl >= 0 else ""

    lines = [line for line in text.split("\n") if line.strip()]
    payloads = []
    i = 0
    while i < len(lines):
        try:
            int(lines[i].strip())
        except ValueError:
            break
        json_line = lines[i + 1] if i + 1 < len(lines) else ""
        i += 2
        try:
            segment = json.loads(json_line)
        except ValueError:
            continue
        if not isinstance(segment, list):
            continue
        for entry in segment:
            if (isinstance(entry, list) and len(entry) >= 3
                    and entry[0] == "wrb.fr" and entry[1] == rpc_id
                    and isinstance(entry[2], str)):
                try:
                    payloads.append(json.loads(entry[2]))
                except ValueError:
                    log.debug("wrb.fr-Eintrag für %s nicht dekodierbar", rpc_id)
    return payloads


# ─────────────────────────────────────────────────────────────
# Knoten-Erkennung
# ─────────────────────────────────────────────────────────────

def _all_str(items) -> bool:
    return isinstance(items, list) and len(items) >= 1 and all(isinstance(x, str) for x in items)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_user_message_node(node) -> bool:
    return (isinstance(node, list) and len(node) >= 2
            and _all_str(node[0])
            and _is_int(node[1]) and node[1] in (1, 2))


def is_assistant_node(node) -> bool:
    return (isinstance(node, list) and len(node) >= 2
            and isinstance(node[0], str) and node[0].startswith("rc_")
            and isinstance(node[1], list) and len(node[1]) >= 1
            and isinstance(node[1][0], str))


def is_assistant_container(node) -> bool:
    return (isinstance(node, list) and len(node) >= 1
            and isinstance(node[0], list) and len(node[0]) >= 1
            and is_assistant_node(node[0][0]))


def is_timestamp_pair(node) -> bool:
    return (isinstance(node, list) and len(node) == 2
            and _is_number(node[0]) and _is_number(node[1])
            and node[0] > MIN_EPOCH)


def extract_reasoning(assistant_node: list) -> Optional[str]:
    """Thoughts stehen (falls vorhanden) weiter hinten im Assistant-Knoten."""
    for child in reversed(assistant_node):
        if not isinstance(child, list):
            continue
        if (len(child) >= 2 and isinstance(child[1], list) and len(child[1]) >= 1
                and _all_str(child[1][0])):
            text = "\n\n".join(child[1][0]).strip()
            if text:
                return text
        if len(child) >= 1 and _all_str(child[0]):
            text = "\n\n".join(child[0]).strip()
            if text:
                return text
    return None


def detect_block(node) -> Optional[GeminiBlock]:
    if not isinstance(node, list):
        return None
    user_node = None
    container = None
    ts = None
    for child in node:
        if user_node is None and is_user_message_node(child):
            user_node = child
        if container is None and is_assistant_container(child):
            container = child
        if is_timestamp_pair(child) and (ts is None or tuple(child) > ts):
            ts = tuple(child)

    if user_node is None or container is None:
        return None
    assistant_node = container[0][0]
    return GeminiBlock(
        user_text="\n".join(user_node[0]),
        assistant_text=assistant_node[1][0] or "",
        thoughts_text=extract_reasoning(assistant_node),
        ts_pair=ts,
    )


def extract_blocks(root) -> list[GeminiBlock]:
    """Pre-Order-Scan über den ganzen Payload, Duplikate raus."""
    blocks = []
    seen = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if not isinstance(node, list):
            continue
        block = detect_block(node)
        if block is not None:
            ts = block.ts_pair or (0, 0)
            key = (block.user_text, block.assistant_text, block.thoughts_text or "", ts[0], ts[1])
            if key not in seen:
                seen.add(key)
                blocks.append(block)
        stack.extend(reversed(node))
    return blocks


def extract_all_blocks(payloads: list) -> list[GeminiBlock]:
    """Alle Payloads, älteste zuerst. Blöcke ohne Zeitstempel vorne, sonst stabil."""
    blocks = []
    for payload in payloads:
        blocks.extend(extract_blocks(payload))
    return sorted(blocks, key=lambda b: (b.ts_pair is not None, b.ts_pair or (0, 0)))


# ─────────────────────────────────────────────────────────────
# Titel
# ─────────────────────────────────────────────────────────────

def find_conversation_list(node) -> Optional[list]:
    """MaZiqc liefert [["c_xxx", "Titel", ...], ...] irgendwo im Baum."""
    if not isinstance(node, list):
        return None
    first = node[0] if node else None
    if (isinstance(first, list) and len(first) >= 2
            and isinstance(first[0], str) and first[0].startswith("c_")
            and isinstance(first[1], str)):
        return node
    for child in node:
        found = find_conversation_list(child)
        if found is not None:
            return found
    return None


def title_from_payloads(payloads: list, chat_id: str) -> Optional[str]:
    key = conversation_key(chat_id)
    for payload in payloads:
        for conv in find_conversation_list(payload) or []:
            if isinstance(conv, list) and len(conv) >= 2 and conv[0] == key and isinstance(conv[1], str):
                return conv[1]
    return None


def clean_page_title(title: Optional[str]) -> str:
    title = (title or "").strip()
    if " - Gemini" in title:
        title = title.split(" - Gemini")[0].strip()
    if not title or title in ("Gemini", "Google Gemini"):
        return DEFAULT_TITLE
    return title


# ─────────────────────────────────────────────────────────────
# Markdown
# ─────────────────────────────────────────────────────────────

def normalize_line_breaks(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def blocks_to_markdown(blocks: list[GeminiBlock], title: str = DEFAULT_TITLE) -> str:
    parts = []
    for i, block in enumerate(blocks):
        block_parts = []
        user = (block.user_text or "").strip()
        thoughts = (block.thoughts_text or "").strip()
        answer = (block.assistant_text or "").strip()
        if user:
            block_parts.append(f"#### User:\n{user}")
        if thoughts:
            block_parts.append(f"#### Thoughts:\n{thoughts}")
        if answer:
            block_parts.append(f"#### Assistant:\n{answer}")
        if block_parts:
            parts.append("\n\n---\n\n".join(block_parts))
            if i < len(blocks) - 1:
                parts.append("---")
    return normalize_line_breaks(f"# {title}\n\n" + "\n\n".join(parts) + "\n")
