"""Shared fixtures: in-memory transport and ChatGPT mapping builders."""

import copy
import json

import pytest

from chat_exporter.adapters.transport import Response
from chat_exporter.config import DEFAULTS, deep_merge


class FakeTransport:
    """Transport double. Routes map (METHOD, path) to a Response or a callable."""

    def __init__(self, url="https://chatgpt.com/", routes=None, html="", title=""):
        self.url = url
        self.routes = dict(routes or {})
        self.html = html
        self._title = title
        self.calls = []
        self.navigated = []
        self.closed = False

    def current_url(self):
        return self.url

    def title(self):
        return self._title

    def page_source(self):
        return self.html

    def navigate(self, url):
        self.navigated.append(url)
        self.url = url

    def request(self, method, url, headers=None, params=None, data=None):
        self.calls.append({"method": method, "url": url, "headers": headers or {},
                           "params": params or {}, "data": data})
        route = self.routes.get((method, url))
        if route is None:
            return Response(404, "Not Found", "")
        if callable(route):
            return route(method, url, headers, params, data)
        return route

    def close(self):
        self.closed = True


def json_response(payload, status=200):
    return Response(status, "OK" if status < 300 else "Error", json.dumps(payload))


def node(node_id, role, content, parent=None, end_turn=False, recipient="all", metadata=None):
    """One mapping entry with a message."""
    return {
        "id": node_id,
        "parent": parent,
        "message": {
            "id": node_id,
            "author": {"role": role},
            "content": content,
            "end_turn": end_turn,
            "recipient": recipient,
            "metadata": metadata or {},
        },
    }


def text(*parts):
    return {"content_type": "text", "parts": list(parts)}


def chain(*specs):
    """Builds a linear mapping from (id, role, content[, kwargs]) tuples, root first."""
    mapping = {"root": {"id": "root", "parent": None, "message": None}}
    parent = "root"
    for spec in specs:
        node_id, role, content = spec[:3]
        kwargs = spec[3] if len(spec) > 3 else {}
        mapping[node_id] = node(node_id, role, content, parent=parent, **kwargs)
        parent = node_id
    return mapping, parent


@pytest.fixture
def simple_raw():
    """Title T, system prompt, one user 'hi', one assistant reply."""
    mapping, leaf = chain(
        ("s", "system", text("You are ChatGPT")),
        ("u1", "user", text("hi")),
        ("a1", "assistant", text("hello"), {"end_turn": True}),
    )
    return {"title": "T", "conversation_id": "abc-123", "mapping": mapping, "current_node": leaf}


@pytest.fixture
def cfg(tmp_path):
    """Defaults with output and credential paths under tmp_path."""
    c = copy.deepcopy(DEFAULTS)
    return deep_merge(c, {
        "output": {"dir": str(tmp_path / "out")},
        "credentials": {
            "key_file": str(tmp_path / "keys" / "keyfile"),
            "cookie_file": str(tmp_path / "cookies.enc"),
        },
    })
