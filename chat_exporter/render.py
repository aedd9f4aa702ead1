"""Content-Renderer: Message → Markdown-Fragment. Rein, wirft nie."""
from chat_exporter.models import (
    Code,
    Dropped,
    EditableContext,
    Message,
    MultimodalParts,
    PlainText,
    Thoughts,
    Unsupported,
)

FENCE = "```"
TOOL_CALL_LABEL = "**Tool Call:**\n"


def _fence(text: str, language: str = "") -> str:
    return f"{FENCE}{language}\n{text}\n{FENCE}"


def looks_like_json(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("{") and stripped.endswith("}")


def render_code(code: Code) -> str:
    text = code.text or ""
    if looks_like_json(text):
        return TOOL_CALL_LABEL + _fence(text, code.language or "json")
    return _fence(text, code.language or "")


def _escape_summary(summary: str) -> str:
    return summary.replace("<", "&lt;").replace(">", "&gt;")


def render_thoughts(thoughts: Thoughts, collapsible: bool = True) -> str:
    if not thoughts.items:
        return ""
    chunks = []
    for item in thoughts.items:
        summary = _escape_summary(item.summary) if collapsible else item.summary
        body = item.body.replace("\n", "\n> ")
        chunks.append(f"**{summary}**\n\n> {body}")

    if not collapsible:
        return "\n\n".join(chunks)
    inner = "".join(f"{chunk}\n\n" for chunk in chunks)
    return f"<details>\n<summary>View Thoughts</summary>\n\n{inner}</details>"


def render_parts(parts: MultimodalParts) -> str:
    out = []
    for part in parts.parts:
        if part.kind == "text":
            out.append(str(part.data))
        elif part.kind == "image":
            out.append("![Image]")
        elif part.kind == "code":
            out.append(_fence(str(part.data or "")))
        else:
            out.append(f"[Unsupported content: {part.type_tag}]")
    return "\n".join(out)


def render_editable_context(ctx: EditableContext) -> str:
    out = []
    if ctx.user_profile:
        out.append(f"**About User:**\n{_fence(ctx.user_profile)}")
    if ctx.user_instructions:
        out.append(f"**About GPT:**\n{_fence(ctx.user_instructions)}")
    return "\n\n".join(out)


def render_content(message: Message, collapsible: bool = True) -> str:
    """
    Dispatch nach Content-Variante. Unbekannte Typen ergeben einen sichtbaren
    Platzhalter statt einer Exception.
    """
    content = message.content
    if isinstance(content, PlainText):
        return "\n".join(content.lines)
    if isinstance(content, Code):
        return render_code(content)
    if isinstance(content, Thoughts):
        return render_thoughts(content, collapsible=collapsible)
    if isinstance(content, MultimodalParts):
        return render_parts(content)
    if isinstance(content, Dropped):
        return ""
    if isinstance(content, EditableContext):
        return render_editable_context(content)
    if isinstance(content, Unsupported):
        return f"[Unsupported content type: {content.type_tag}]"
    return f"[Unsupported content type: {message.content_type or type(content).__name__}]"
