from __future__ import annotations

from typing import Any

import pytest

from bridge_servers.cowork.browser_session import PageSession
from bridge_servers.cowork.http_client import HttpClientError


class DummyConn:
    def __init__(self, results: dict[str, Any] | None = None, fail: dict[str, str] | None = None) -> None:
        self.results = results or {}
        self.fail = fail or {}
        self.calls: list[tuple[str, dict[str, Any] | None]] = []
        self.connected = True
        self.closed = False

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.calls.append((method, params))
        if method in self.fail:
            raise HttpClientError(self.fail[method])
        return self.results.get(method, {})

    def close(self) -> None:
        self.closed = True
        self.connected = False


def test_eval_js_returns_value_and_enables_runtime_once() -> None:
    conn = DummyConn({"Runtime.evaluate": {"result": {"type": "string", "value": "https://claude.ai/"}}})
    page = PageSession(conn, "t1")

    assert page.eval_js("window.location.href") == "https://claude.ai/"
    assert page.eval_js("document.URL") == "https://claude.ai/"
    assert [m for m, _ in conn.calls].count("Runtime.enable") == 1
    params = conn.calls[1][1] or {}
    assert params["returnByValue"] is True
    assert params["awaitPromise"] is True


@pytest.mark.parametrize(
    "remote",
    [{"type": "undefined"}, {"type": "object", "subtype": "null"}],
)
def test_eval_js_maps_undefined_and_null_to_none(remote: dict[str, Any]) -> None:
    page = PageSession(DummyConn({"Runtime.evaluate": {"result": remote}}), "t1")
    assert page.eval_js("void 0") is None


def test_eval_js_raises_on_page_exception() -> None:
    details = {"text": "Uncaught", "exception": {"description": "ReferenceError: nope is not defined"}}
    page = PageSession(DummyConn({"Runtime.evaluate": {"exceptionDetails": details}}), "t1")

    with pytest.raises(HttpClientError, match="ReferenceError"):
        page.eval_js("nope")


def test_click_dispatches_move_then_press_release_pairs() -> None:
    conn = DummyConn()
    PageSession(conn, "t1").click(10, 20, click_count=3)

    types = [params["type"] for _, params in conn.calls if params]
    assert types[0] == "mouseMoved"
    assert types[1:] == ["mousePressed", "mouseReleased"] * 3
    counts = [params["clickCount"] for _, params in conn.calls[1:] if params]
    assert counts == [1, 1, 2, 2, 3, 3]


def test_press_enter_carries_text() -> None:
    conn = DummyConn()
    PageSession(conn, "t1").press_key("Enter")

    down, up = (params for _, params in conn.calls)
    assert down["type"] == "keyDown"
    assert down["text"] == "\r"
    assert down["windowsVirtualKeyCode"] == 13
    assert up["type"] == "keyUp"


def test_press_arrow_is_raw_keydown() -> None:
    conn = DummyConn()
    PageSession(conn, "t1").press_key("ArrowDown")

    down = conn.calls[0][1] or {}
    assert down["type"] == "rawKeyDown"
    assert "text" not in down


def test_type_text_falls_back_to_char_events() -> None:
    conn = DummyConn(fail={"Input.insertText": "'Input.insertText' wasn't found"})
    PageSession(conn, "t1").type_text("hi")

    chars = [params["text"] for method, params in conn.calls if method == "Input.dispatchKeyEvent" and params]
    assert chars == ["h", "i"]


def test_type_text_propagates_closed_session() -> None:
    conn = DummyConn(fail={"Input.insertText": "Session closed: connection closed by peer"})
    with pytest.raises(HttpClientError, match="Session closed"):
        PageSession(conn, "t1").type_text("hi")
    assert all(method == "Input.insertText" for method, _ in conn.calls)


def test_get_html_and_detach() -> None:
    conn = DummyConn({"Runtime.evaluate": {"result": {"type": "string", "value": "<!DOCTYPE html><html></html>"}}})
    page = PageSession(conn, "t1")

    assert page.get_html().startswith("<!DOCTYPE html>")
    assert page.alive
    page.detach()
    assert conn.closed
    assert not page.alive
