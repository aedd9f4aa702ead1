"""
Markdown-Assembler: geordnete Nachrichten → ein Dokument.

Turn-Regeln:
  merged (Default): Assistant/Tool-Nachrichten werden bis end_turn oder bis
                    zur nächsten User-Nachricht unter EINEM Header gesammelt.
  split:            Nicht-Text-Teile (Thoughts, Tool-Calls) bekommen einen
                    eigenen "Thoughts"-Block, die Antwort einen eigenen Header.
"""
from dataclasses import dataclass

from chat_exporter.models import Conversation, Message, Role
from chat_exporter.render import render_content, render_editable_context

SEPARATOR = "---\n\n"
TURN_ROLES = (Role.ASSISTANT, Role.TOOL)


@dataclass
class AssemblerOptions:
    heading_level: int = 4
    user_label: str = "User"
    assistant_label: str = "Assistant"
    thoughts_label: str = "Thoughts"
    collapsible_thoughts: bool = True
    include_custom_instructions: bool = True
    turn_style: str = "merged"          # "merged" | "split"

    @classmethod
    def from_config(cls, cfg: dict, **overrides) -> "AssemblerOptions":
        known = {k: v for k, v in (cfg or {}).items() if k in cls.__dataclass_fields__}
        known.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**known)

    def header(self, label: str) -> str:
        level = min(max(int(self.heading_level), 1), 6)
        return f"{'#' * level} {label}:\n\n"


def _visible(message: Message) -> bool:
    return message.recipient == "all"


def _block(header: str, chunks: list[str]) -> str:
    if not chunks:
        return ""
    return header + "".join(f"{chunk}\n\n" for chunk in chunks) + SEPARATOR


def _gather_merged(messages: tuple, i: int, opts: AssemblerOptions) -> tuple[list[str], int]:
    """Sammelt einen Assistant-Turn ab Position i. Gibt (Fragmente, neuer Cursor) zurück."""
    chunks = []
    while i < len(messages):
        message = messages[i]
        if message.role is Role.USER:
            break
        i += 1
        if not _visible(message) or message.role not in TURN_ROLES:
            continue
        chunk = render_content(message, collapsible=opts.collapsible_thoughts)
        if chunk:
            chunks.append(chunk)
        if message.end_turn:
            break
    return chunks, i


def _gather_reasoning(messages: tuple, i: int, opts: AssemblerOptions) -> tuple[list[str], int]:
    """split-Stil: sammelt Nicht-Text-Nachrichten bis zur eigentlichen Antwort."""
    chunks = []
    while i < len(messages):
        message = messages[i]
        if message.role not in TURN_ROLES or message.content_type == "text":
            break
        i += 1
        if not _visible(message):
            continue
        chunk = render_content(message, collapsible=opts.collapsible_thoughts)
        if chunk:
            chunks.append(chunk)
    return chunks, i


def _custom_instructions(conv: Conversation, opts: AssemblerOptions) -> str:
    if not (opts.include_custom_instructions and conv.custom_instructions):
        return ""
    body = render_editable_context(conv.custom_instructions)
    if not body:
        return ""
    return opts.header("User Editable Context") + f"{body}\n\n" + SEPARATOR


def assemble_markdown(conv: Conversation, opts: AssemblerOptions = None) -> str:
    opts = opts or AssemblerOptions()
    messages = tuple(conv.messages)
    out = [f"# {conv.title}\n\n", _custom_instructions(conv, opts)]

    i = 0
    while i < len(messages):
        message = messages[i]
        if not _visible(message):
            i += 1
            continue

        if message.role is Role.USER:
            chunk = render_content(message, collapsible=opts.collapsible_thoughts)
            out.append(_block(opts.header(opts.user_label), [chunk] if chunk else []))
            i += 1
        elif message.role in TURN_ROLES:
            if opts.turn_style == "split" and message.content_type != "text":
                chunks, i = _gather_reasoning(messages, i, opts)
                out.append(_block(opts.header(opts.thoughts_label), chunks))
            elif opts.turn_style == "split":
                chunk = render_content(message, collapsible=opts.collapsible_thoughts)
                out.append(_block(opts.header(opts.assistant_label), [chunk] if chunk else []))
                i += 1
            else:
                chunks, i = _gather_merged(messages, i, opts)
                out.append(_block(opts.header(opts.assistant_label), chunks))
        else:
            i += 1

    # Titelzeile behält ihre Leerzeile, auch wenn nichts folgt
    body = "".join(out[1:]).rstrip()
    return out[0] + body + "\n" if body else out[0]
