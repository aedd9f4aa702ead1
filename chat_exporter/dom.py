"""
Copilot: gerendertes DOM → Markdown.

Copilot hat keine brauchbare Backend-API, also wird das HTML des offenen Tabs
gelesen (CDP oder Selenium) und mit BeautifulSoup in Markdown umgesetzt.
"""
import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from chat_exporter.linearize import linearize_elements
from chat_exporter.models import Message

log = logging.getLogger(__name__)

MESSAGE_SELECTOR = '[data-content="user-message"], [data-content="ai-message"]'
SELECTED_CHAT_SELECTOR = '[role="option"][aria-selected="true"]'
DEFAULT_TITLE = "Copilot Conversation"

_COPILOT_SAID = re.compile(r"^Copilot said\s*", re.I)
_TITLE_PREFIX = re.compile(r"^\s*Microsoft[_\s-]*Copilot.*$", re.I)
_TITLE_SUFFIX = re.compile(r"\s*[-–|]\s*Copilot.*$", re.I)
_FORBIDDEN = re.compile(r'[\\/:*?"<>|]')
_SKIP_TAGS = {"script", "style", "noscript", "svg", "button"}


def _children(node: Tag) -> str:
    return "".join(node_to_markdown(child) for child in node.children)


def _code_language(node: Tag) -> str:
    code = node.find("code")
    for cls in (code.get("class") or []) if code else []:
        if cls.startswith("language-"):
            return cls[len("language-"):]
    return ""


def node_to_markdown(node) -> str:
    if isinstance(node, Comment):
        return ""
    if isinstance(node, NavigableString):
        return str(node)
    if not isinstance(node, Tag):
        return ""

    tag = node.name.lower()
    if tag in _SKIP_TAGS:
        return ""
    if tag == "br":
        return "\n"
    if tag == "p":
        return _children(node).strip() + "\n\n"
    if tag in ("ul", "ol"):
        items = [c for c in node.children if isinstance(c, Tag)]
        lines = []
        for n, item in enumerate(items, 1):
            bullet = f"{n}." if tag == "ol" else "-"
            lines.append(f"{bullet} {node_to_markdown(item).strip()}\n")
        return "\n" + "".join(lines) + "\n"
    if tag == "li":
        return _children(node)
    if tag in ("strong", "b"):
        return "**" + _children(node).strip() + "**"
    if tag in ("em", "i"):
        return "_" + _children(node).strip() + "_"
    if tag == "a":
        return f"[{_children(node).strip()}]({node.get('href') or ''})"
    if tag == "img":
        return f"![{node.get('alt') or ''}]({node.get('src') or ''})"
    if tag == "pre":
        return f"\n```{_code_language(node)}\n{node.get_text().rstrip()}\n```\n\n"
    if tag == "code":
        return f"`{node.get_text()}`"
    return _children(node)


def extract_elements(html: str) -> list[dict]:
    """Alle User/AI-Nachrichtenelemente in Dokumentreihenfolge als {"tag", "text"}."""
    soup = BeautifulSoup(html or "", "html.parser")
    elements = []
    for el in soup.select(MESSAGE_SELECTOR):
        kind = el.get("data-content")
        text = node_to_markdown(el).strip()
        if kind == "ai-message":
            text = _COPILOT_SAID.sub("", text)
        elements.append({"tag": kind, "text": text})
    log.debug("%d Nachrichtenelemente im DOM gefunden", len(elements))
    return elements


def extract_messages(html: str) -> list[Message]:
    return linearize_elements(extract_elements(html))


def conversation_titles(html: str, document_title: Optional[str] = None) -> tuple[str, str]:
    """Gibt (Überschrift, Dateiname-Stamm) zurück."""
    raw = ""
    soup = BeautifulSoup(html or "", "html.parser")
    selected = soup.select_one(SELECTED_CHAT_SELECTOR)
    if selected is not None:
        p = selected.find("p")
        raw = p.get_text().strip() if p is not None else ""
        if not raw:
            raw = ",".join((selected.get("aria-label") or "").split(",")[1:]).strip()

    if not raw:
        raw = _TITLE_PREFIX.sub("", document_title or "")
        raw = _TITLE_SUFFIX.sub("", raw).strip()

    header = _FORBIDDEN.sub("", raw or DEFAULT_TITLE).strip() or DEFAULT_TITLE
    return header, file_stem(header)


def file_stem(header: str) -> str:
    """Leerraum → "_", max. 100 Zeichen, klein."""
    return re.sub(r"\s+", "_", header.strip())[:100].lower()
