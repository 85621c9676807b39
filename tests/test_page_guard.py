from __future__ import annotations

from typing import Any

import pytest

from bridge_servers.cowork.http_client import HttpClientError
from bridge_servers.cowork.session_cdp import BrowserDisconnectedError
from bridge_servers.cowork.session_manager import (
    ErrorKind,
    PageGuard,
    PageNotFoundError,
    classify_error,
)
from bridge_servers.cowork.tools import ToolError


class DummyPage:
    def __init__(self, target: dict[str, Any]) -> None:
        self.target_id = target["id"]
        self.url = target.get("url", "")
        self.alive = True
        self.detached = False

    def detach(self) -> None:
        self.detached = True
        self.alive = False


class DummyConnection:
    def __init__(self, pages: list[dict[str, Any]]) -> None:
        self.pages = pages
        self.list_calls = 0

    def list_pages(self) -> list[dict[str, Any]]:
        self.list_calls += 1
        return list(self.pages)

    def is_connected(self) -> bool:
        return True


def _guard(pages: list[dict[str, Any]], pattern: str = "claude.ai") -> tuple[PageGuard, DummyConnection, list[DummyPage]]:
    conn = DummyConnection(pages)
    created: list[DummyPage] = []

    def factory(target: dict[str, Any]) -> DummyPage:
        page = DummyPage(target)
        created.append(page)
        return page

    return PageGuard(conn, url_pattern=pattern, page_factory=factory), conn, created  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("exc", "kind"),
    [
        (HttpClientError("Target closed"), ErrorKind.RETRYABLE),
        (HttpClientError("Page detached: target_closed"), ErrorKind.RETRYABLE),
        (HttpClientError("Session closed: connection closed by peer"), ErrorKind.RETRYABLE),
        (BrowserDisconnectedError("Session closed"), ErrorKind.FATAL),
        (ConnectionRefusedError("ECONNREFUSED"), ErrorKind.ORDINARY),
        (ToolError(tool="click", action="click", reason="No element found for selector: #x"), ErrorKind.ORDINARY),
    ],
)
def test_classify_error(exc: BaseException, kind: ErrorKind) -> None:
    assert classify_error(exc) is kind


def test_classify_error_uses_custom_marker_table() -> None:
    assert classify_error(RuntimeError("frame went away"), ("went away",)) is ErrorKind.RETRYABLE
    assert classify_error(RuntimeError("Target closed"), ("went away",)) is ErrorKind.ORDINARY


def test_attach_prefers_matching_page_else_first() -> None:
    guard, _conn, _ = _guard(
        [
            {"id": "a", "url": "https://example.com/"},
            {"id": "b", "url": "https://claude.ai/chat/1"},
        ]
    )
    assert guard.attach().target_id == "b"

    guard, _conn, _ = _guard(
        [
            {"id": "a", "url": "https://example.com/"},
            {"id": "c", "url": "about:blank"},
        ]
    )
    assert guard.attach().target_id == "a"


def test_attach_without_pages_fails() -> None:
    guard, _conn, _ = _guard([])
    with pytest.raises(PageNotFoundError, match="No pages found"):
        guard.attach()


def test_refresh_falls_back_to_most_recent_page() -> None:
    guard, _conn, _ = _guard(
        [
            {"id": "old", "url": "https://example.com/"},
            {"id": "new", "url": "about:blank"},
        ]
    )
    assert guard.refresh().target_id == "new"


def test_refresh_without_pages_fails() -> None:
    guard, _conn, _ = _guard([])
    with pytest.raises(PageNotFoundError, match="No pages available"):
        guard.refresh()


def test_refresh_is_idempotent() -> None:
    guard, _conn, created = _guard([{"id": "a", "url": "https://claude.ai/"}])

    first = guard.refresh()
    second = guard.refresh()

    assert first is second
    assert guard.current() is first
    assert len(created) == 1


def test_refresh_replaces_handle_when_target_changes() -> None:
    guard, conn, _ = _guard([{"id": "a", "url": "https://claude.ai/"}])
    first = guard.attach()

    conn.pages = [{"id": "b", "url": "https://claude.ai/"}]
    second = guard.refresh()

    assert second is not first
    assert second.target_id == "b"
    assert first.detached


def test_run_retries_exactly_once_on_stale_page() -> None:
    guard, _conn, created = _guard([{"id": "a", "url": "https://claude.ai/"}])
    guard.attach()
    calls: list[str] = []

    def always_stale(page: DummyPage) -> None:
        calls.append(page.target_id)
        raise HttpClientError("Protocol error (Runtime.evaluate): Target closed.")

    with pytest.raises(HttpClientError, match="Target closed"):
        guard.run(always_stale)
    assert len(calls) == 2
    assert len(created) == 1


def test_run_does_not_retry_ordinary_errors() -> None:
    guard, conn, _ = _guard([{"id": "a", "url": "https://claude.ai/"}])
    guard.attach()
    listed = conn.list_calls
    calls: list[int] = []

    def refused(_page: DummyPage) -> None:
        calls.append(1)
        raise ConnectionRefusedError("connect ECONNREFUSED 127.0.0.1:9222")

    with pytest.raises(ConnectionRefusedError):
        guard.run(refused)
    assert calls == [1]
    assert conn.list_calls == listed


def test_run_does_not_retry_fatal_errors() -> None:
    guard, _conn, _ = _guard([{"id": "a", "url": "https://claude.ai/"}])
    guard.attach()
    calls: list[int] = []

    def gone(_page: DummyPage) -> None:
        calls.append(1)
        raise BrowserDisconnectedError("Session closed")

    with pytest.raises(BrowserDisconnectedError):
        guard.run(gone)
    assert calls == [1]


def test_run_recovers_on_new_page() -> None:
    guard, conn, _ = _guard([{"id": "a", "url": "https://claude.ai/"}])
    guard.attach()
    conn.pages = [{"id": "b", "url": "https://claude.ai/new"}]

    def op(page: DummyPage) -> str:
        if page.target_id == "a":
            raise HttpClientError("Page detached: target_closed")
        return page.url

    assert guard.run(op) == "https://claude.ai/new"
    assert guard.current().target_id == "b"


def test_run_discovers_page_when_none_cached() -> None:
    guard, _conn, _ = _guard([{"id": "a", "url": "https://claude.ai/"}])
    assert guard.run(lambda page: page.target_id) == "a"


def test_page_count_and_release() -> None:
    guard, _conn, created = _guard([{"id": "a", "url": "https://claude.ai/"}, {"id": "b", "url": ""}])
    guard.attach()

    assert guard.page_count() == 2
    guard.release()
    assert guard.current() is None
    assert created[0].detached
