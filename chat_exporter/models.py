"""Datenmodell: Nachrichten, Content-Varianten, Konversation.

Content-Varianten sind ein geschlossener Satz von Dataclasses. Der Renderer
dispatcht per isinstance und hat für alles andere einen sichtbaren Platzhalter.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"

    @classmethod
    def parse(cls, value) -> "Role":
        """Unbekannte Rollen werden wie system behandelt (nie gerendert)."""
        try:
            return cls(str(value or "").lower())
        except ValueError:
            return cls.SYSTEM


# ─────────────────────────────────────────────────────────────
# Content-Varianten
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlainText:
    lines: tuple = ()


@dataclass(frozen=True)
class Code:
    text: str = ""
    language: Optional[str] = None


@dataclass(frozen=True)
class ThoughtItem:
    summary: str = ""
    body: str = ""


@dataclass(frozen=True)
class Thoughts:
    items: tuple = ()


@dataclass(frozen=True)
class Part:
    kind: str                       # "text" | "image" | "code" | "other"
    data: Any = None
    type_tag: str = ""


@dataclass(frozen=True)
class MultimodalParts:
    parts: tuple = ()


@dataclass(frozen=True)
class Dropped:
    """Recap / interne Marker, die nie in der Ausgabe landen."""
    type_tag: str


@dataclass(frozen=True)
class EditableContext:
    """Custom Instructions (user_editable_context)."""
    user_profile: str = ""
    user_instructions: str = ""


@dataclass(frozen=True)
class Unsupported:
    type_tag: str


Content = Union[PlainText, Code, Thoughts, MultimodalParts, Dropped, EditableContext, Unsupported]


# ─────────────────────────────────────────────────────────────
# Nachrichten und Konversation
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Message:
    role: Role
    content_type: str
    content: Content
    end_turn: bool = False
    parent_id: Optional[str] = None
    id: str = ""
    recipient: str = "all"


@dataclass
class Conversation:
    title: str
    messages: tuple = ()
    conversation_id: str = ""
    custom_instructions: Optional[EditableContext] = None
    raw: Any = field(default=None, repr=False)    # Original-Payload für JSON-Export
    blocks: tuple = ()                            # nur Gemini


@dataclass(frozen=True)
class GeminiBlock:
    """Ein User/Assistant-Paar aus der Gemini batchexecute-Antwort."""
    user_text: str = ""
    assistant_text: str = ""
    thoughts_text: Optional[str] = None
    ts_pair: Optional[tuple] = None
