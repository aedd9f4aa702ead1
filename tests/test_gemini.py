"""Tests for Gemini batchexecute parsing, block detection and Markdown output."""

import json
from urllib.parse import parse_qs

from chat_exporter import gemini
from chat_exporter.models import GeminiBlock


def block_node(user, answer, ts=None, thoughts=None, user_flag=1):
    assistant = ["rc_1", [answer]]
    if thoughts is not None:
        assistant.append([None, [[thoughts]]])
    node = [[[user], user_flag], [[assistant]]]
    if ts is not None:
        node.append(list(ts))
    return node


def batch_response(payload, rpc_id=gemini.CONVERSATION_RPC):
    segment = json.dumps([["wrb.fr", rpc_id, json.dumps(payload), None, None, None, "generic"]])
    noise = json.dumps([["di", 42], ["af.httprm", 41, "123", 1]])
    return f")]}}'\n\n{len(segment)}\n{segment}\n{len(noise)}\n{noise}\n"


def test_conversation_request_shape():
    params, body = gemini.conversation_request("abc123", "de", "TOKEN")
    assert params == {"rpcids": "hNvQHb", "source-path": "/app/abc123", "hl": "de", "rt": "c"}
    assert body.endswith("&")
    form = parse_qs(body)
    assert form["at"] == ["TOKEN"]
    f_req = json.loads(form["f.req"][0])
    assert f_req[0][0][0] == "hNvQHb"
    assert json.loads(f_req[0][0][1])[0] == "c_abc123"


def test_parse_batchexecute_collects_rpc_payloads():
    payload = [block_node("hi", "hello")]
    assert gemini.parse_batchexecute(batch_response(payload)) == [payload]


def test_parse_batchexecute_ignores_other_rpcs_and_garbage():
    assert gemini.parse_batchexecute(batch_response([1], rpc_id="OTHER")) == []
    assert gemini.parse_batchexecute(")]}'\n\n12\nnot json\n") == []
    assert gemini.parse_batchexecute("") == []


def test_node_predicates():
    assert gemini.is_user_message_node([["q"], 2])
    assert not gemini.is_user_message_node([["q"], 3])
    assert not gemini.is_user_message_node([["q"], True])
    assert gemini.is_assistant_node(["rc_9", ["a"]])
    assert not gemini.is_assistant_node(["r_9", ["a"]])
    assert gemini.is_timestamp_pair([1_700_000_000, 0])
    assert not gemini.is_timestamp_pair([1_000, 0])


def test_detect_block_with_reasoning():
    block = gemini.detect_block(block_node("q", "a", ts=(1_700_000_000, 1), thoughts="thinking"))
    assert block == GeminiBlock("q", "a", "thinking", (1_700_000_000, 1))


def test_extract_blocks_dedups():
    node = block_node("q", "a", ts=(1_700_000_000, 0))
    assert len(gemini.extract_blocks([node, [node]])) == 1


def test_blocks_sorted_oldest_first_untimed_first():
    payload = [
        block_node("late", "2", ts=(1_700_000_500, 0)),
        block_node("early", "1", ts=(1_700_000_100, 0)),
        block_node("untimed", "0"),
    ]
    blocks = gemini.extract_all_blocks([payload])
    assert [b.user_text for b in blocks] == ["untimed", "early", "late"]


def test_title_from_payloads():
    payload = [[["c_abc", "My Title", None], ["c_other", "Other"]]]
    assert gemini.title_from_payloads([payload], "abc") == "My Title"
    assert gemini.title_from_payloads([payload], "zzz") is None


def test_clean_page_title():
    assert gemini.clean_page_title("Trip plan - Gemini") == "Trip plan"
    assert gemini.clean_page_title("Gemini") == gemini.DEFAULT_TITLE
    assert gemini.clean_page_title(None) == gemini.DEFAULT_TITLE


def test_blocks_to_markdown():
    blocks = [GeminiBlock("q1", "a1\r\nmore", "t1"), GeminiBlock("q2", "a2")]
    assert gemini.blocks_to_markdown(blocks, "T") == (
        "# T\n\n"
        "#### User:\nq1\n\n---\n\n#### Thoughts:\nt1\n\n---\n\n#### Assistant:\na1\nmore"
        "\n\n---\n\n"
        "#### User:\nq2\n\n---\n\n#### Assistant:\na2\n"
    )
