"""Tests for the ChatGPT client over a fake transport."""

from datetime import datetime

import pytest

from chat_exporter.adapters.chatgpt import ChatGPTClient, chat_id_from_url
from chat_exporter.adapters.transport import Response
from chat_exporter.assemble import AssemblerOptions
from chat_exporter.errors import (
    AuthenticationUnavailable,
    ConversationNotFound,
    NetworkFailure,
    UnexpectedPayload,
)

from conftest import FakeTransport, json_response

CHAT_ID = "6789abcd-0000-1111-2222-333344445555"
CONV_PATH = f"/backend-api/conversation/{CHAT_ID}"


def transport_for(raw, session=None, url=f"https://chatgpt.com/c/{CHAT_ID}"):
    return FakeTransport(url=url, routes={
        ("GET", "/api/auth/session"): session or json_response({"accessToken": "tok"}),
        ("GET", CONV_PATH): raw if isinstance(raw, Response) else json_response(raw),
    })


def test_chat_id_from_url():
    assert chat_id_from_url(f"https://chatgpt.com/c/{CHAT_ID}") == CHAT_ID
    assert chat_id_from_url(f"https://chatgpt.com/g/g-xyz/c/{CHAT_ID}?model=x") == CHAT_ID
    assert chat_id_from_url("https://chatgpt.com/") is None


def test_fetch_uses_bearer_token(simple_raw):
    transport = transport_for(simple_raw)
    conv = ChatGPTClient(transport).fetch()
    assert conv.title == "T"
    assert [m.id for m in conv.messages] == ["u1", "a1"]
    assert transport.calls[1]["headers"] == {"Authorization": "Bearer tok"}


def test_fetch_with_explicit_url(simple_raw):
    transport = transport_for(simple_raw, url="https://chatgpt.com/")
    conv = ChatGPTClient(transport).fetch(f"https://chatgpt.com/c/{CHAT_ID}")
    assert conv.conversation_id == "abc-123"


def test_no_conversation_id():
    with pytest.raises(ConversationNotFound):
        ChatGPTClient(FakeTransport(url="https://chatgpt.com/")).fetch()


def test_session_without_token():
    transport = transport_for({}, session=json_response({"user": {}}))
    with pytest.raises(AuthenticationUnavailable):
        ChatGPTClient(transport).fetch()


def test_session_request_fails():
    transport = transport_for({}, session=Response(401, "Unauthorized", ""))
    with pytest.raises(AuthenticationUnavailable):
        ChatGPTClient(transport).fetch()


def test_conversation_request_fails():
    transport = transport_for(Response(404, "Not Found", ""))
    with pytest.raises(NetworkFailure) as info:
        ChatGPTClient(transport).fetch()
    assert info.value.status == 404
    assert str(info.value) == "Network response was not ok: 404 Not Found"


def test_conversation_not_json():
    transport = transport_for(Response(200, "OK", "<html>"))
    with pytest.raises(UnexpectedPayload):
        ChatGPTClient(transport).fetch()


def test_render_and_filename(simple_raw):
    client = ChatGPTClient(transport_for(simple_raw))
    conv = client.fetch()
    assert client.render(conv, AssemblerOptions()).startswith("# T\n\n")
    conv.title = 'a/b: "c"'
    assert client.filename(conv, "md") == "a-b- -c-.md"
    assert client.filename(conv, "json", True, datetime(2024, 1, 2, 3, 4, 5)) == "a-b- -c-_2024-01-02T03-04-05.json"
