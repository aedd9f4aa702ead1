"""Tests for the Markdown assembler: turn grouping, headers and options."""

from chat_exporter.assemble import AssemblerOptions, assemble_markdown
from chat_exporter.linearize import parse_conversation
from chat_exporter.models import (
    Code,
    Conversation,
    EditableContext,
    Message,
    PlainText,
    Role,
    ThoughtItem,
    Thoughts,
)

from conftest import chain, text


def m(role, content, content_type="text", end_turn=False, recipient="all"):
    return Message(role=role, content_type=content_type, content=content,
                   end_turn=end_turn, recipient=recipient)


def test_minimal_round_trip(simple_raw):
    """Title heading first, user block with separator, system prompt absent."""
    out = assemble_markdown(parse_conversation(simple_raw))
    assert out.startswith("# T\n\n")
    assert "#### User:\n\nhi\n\n---\n\n" in out
    assert "#### Assistant:\n\nhello\n\n---" in out
    assert "You are ChatGPT" not in out
    assert out.endswith("---\n")


def test_tool_call_chunk_inside_assistant_block():
    mapping, leaf = chain(
        ("u", "user", text("run it")),
        ("c", "assistant", {"content_type": "code", "text": '{"foo":1}'}),
        ("a", "assistant", text("done"), {"end_turn": True}),
    )
    out = assemble_markdown(parse_conversation({"title": "T", "mapping": mapping, "current_node": leaf}))
    assert "```json" in out
    assert "**Tool Call:**" in out


def test_non_text_messages_merge_into_one_block():
    """N non-text assistant messages plus one text reply give exactly one assistant header."""
    conv = Conversation("T", messages=(
        m(Role.USER, PlainText(("q",))),
        m(Role.ASSISTANT, Thoughts((ThoughtItem("S", "B"),)), "thoughts"),
        m(Role.ASSISTANT, Code('{"a":1}'), "code"),
        m(Role.TOOL, PlainText(("tool output",))),
        m(Role.ASSISTANT, PlainText(("answer",)), end_turn=True),
    ))
    out = assemble_markdown(conv)
    assert out.count("#### Assistant:") == 1
    assert out.index("View Thoughts") < out.index("Tool Call") < out.index("answer")


def test_empty_thoughts_emit_no_block():
    conv = Conversation("T", messages=(
        m(Role.USER, PlainText(("q",))),
        m(Role.ASSISTANT, Thoughts(()), "thoughts", end_turn=True),
    ))
    out = assemble_markdown(conv)
    assert "#### Assistant:" not in out
    assert "<details>" not in out


def test_end_turn_closes_block():
    conv = Conversation("T", messages=(
        m(Role.ASSISTANT, PlainText(("one",)), end_turn=True),
        m(Role.ASSISTANT, PlainText(("two",)), end_turn=True),
    ))
    assert assemble_markdown(conv).count("#### Assistant:") == 2


def test_hidden_recipient_skipped_without_splitting_turn():
    conv = Conversation("T", messages=(
        m(Role.USER, PlainText(("q",))),
        m(Role.ASSISTANT, Code("search('x')"), "code", recipient="browser"),
        m(Role.ASSISTANT, PlainText(("a",)), end_turn=True),
    ))
    out = assemble_markdown(conv)
    assert "search('x')" not in out
    assert out.count("#### Assistant:") == 1


def test_empty_user_message_emits_nothing():
    conv = Conversation("T", messages=(m(Role.USER, PlainText()),))
    assert assemble_markdown(conv) == "# T\n\n"


def test_order_is_preserved():
    conv = Conversation("T", messages=(
        m(Role.USER, PlainText(("first",))),
        m(Role.ASSISTANT, PlainText(("second",)), end_turn=True),
        m(Role.USER, PlainText(("third",))),
    ))
    out = assemble_markdown(conv)
    assert out.index("first") < out.index("second") < out.index("third")


def test_custom_instructions_preamble():
    conv = Conversation("T", custom_instructions=EditableContext("dev", ""))
    out = assemble_markdown(conv)
    assert "#### User Editable Context:\n\n**About User:**" in out
    assert "User Editable Context" not in assemble_markdown(
        conv, AssemblerOptions(include_custom_instructions=False))


def test_split_style_separates_reasoning():
    conv = Conversation("T", messages=(
        m(Role.USER, PlainText(("q",))),
        m(Role.ASSISTANT, Thoughts((ThoughtItem("S", "B"),)), "thoughts"),
        m(Role.ASSISTANT, PlainText(("answer",)), end_turn=True),
    ))
    out = assemble_markdown(conv, AssemblerOptions(turn_style="split"))
    assert out.index("#### Thoughts:") < out.index("#### Assistant:\n\nanswer")


def test_options_from_config_and_labels():
    opts = AssemblerOptions.from_config(
        {"heading_level": 2, "unknown_key": 1}, assistant_label="Copilot", user_label=None)
    assert opts.heading_level == 2
    assert opts.assistant_label == "Copilot"
    assert opts.user_label == "User"
    assert opts.header("Copilot") == "## Copilot:\n\n"


def test_output_ends_with_single_newline():
    conv = Conversation("T", messages=(m(Role.USER, PlainText(("q\n\n\n",))),))
    out = assemble_markdown(conv)
    assert out.endswith("---\n")
    assert not out.endswith("\n\n")


def test_compact_node_form_round_trip():
    """Nodes with message.role and content.type (no author / content_type) still render."""
    raw = {
        "title": "T",
        "mapping": {
            "a": {
                "message": {"role": "user", "content": {"type": "text", "parts": ["hi"]}},
                "parent": None,
            },
        },
        "current_node": "a",
    }
    out = assemble_markdown(parse_conversation(raw))
    assert out.startswith("# T\n\n")
    assert "#### User:\n\nhi\n\n---" in out


def test_title_keeps_blank_line_without_turns():
    conv = Conversation("T", messages=(m(Role.SYSTEM, PlainText(("setup",))),))
    assert assemble_markdown(conv) == "# T\n\n"
