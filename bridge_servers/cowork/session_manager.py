"""Page guard.

Keeps the single cached page handle usable for callers: operations run against
the cached handle first and the handle is re-discovered only after an operation
fails with a stale-page symptom.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any, TypeVar

from .browser_session import PageSession
from .http_client import HttpClientError
from .session_cdp import BrowserConnection, BrowserDisconnectedError, CdpConnection

logger = logging.getLogger("cowork.bridge.guard")

T = TypeVar("T")

# Substrings of errors raised once the page a handle points to has gone away.
STALE_PAGE_MARKERS: tuple[str, ...] = ("detached", "Target closed", "Session closed")


class PageNotFoundError(HttpClientError):
    pass


class ErrorKind(Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"
    ORDINARY = "ordinary"


def classify_error(exc: BaseException, markers: Sequence[str] = STALE_PAGE_MARKERS) -> ErrorKind:
    if isinstance(exc, BrowserDisconnectedError):
        return ErrorKind.FATAL
    message = str(exc)
    if any(marker in message for marker in markers):
        return ErrorKind.RETRYABLE
    return ErrorKind.ORDINARY


PageFactory = Callable[[dict[str, Any]], PageSession]


class PageGuard:
    """Owner of the current page handle."""

    def __init__(
        self,
        connection: BrowserConnection,
        *,
        url_pattern: str = "claude.ai",
        command_timeout: float = 30.0,
        stale_markers: Sequence[str] = STALE_PAGE_MARKERS,
        page_factory: PageFactory | None = None,
    ) -> None:
        self.connection = connection
        self.url_pattern = url_pattern
        self.command_timeout = command_timeout
        self.stale_markers = tuple(stale_markers)
        self._page_factory = page_factory or self._open_page
        self._page: PageSession | None = None
        # Held across attempt + refresh + retry so only one page operation is in flight.
        self._lock = threading.RLock()

    def _open_page(self, target: dict[str, Any]) -> PageSession:
        ws_url = target.get("webSocketDebuggerUrl")
        if not ws_url:
            raise HttpClientError(f"Page {target.get('id')} exposes no WebSocket URL (another debugger attached?)")
        conn = CdpConnection(ws_url, timeout=self.command_timeout)
        return PageSession(conn, str(target.get("id") or ""), str(target.get("url") or ""))

    def _matches(self, target: dict[str, Any]) -> bool:
        return bool(self.url_pattern) and self.url_pattern in str(target.get("url") or "")

    def _adopt(self, target: dict[str, Any]) -> PageSession:
        current = self._page
        target_id = str(target.get("id") or "")
        if current is not None and current.target_id == target_id and current.alive:
            current.url = str(target.get("url") or current.url)
            return current
        page = self._page_factory(target)
        if current is not None:
            current.detach()
        self._page = page
        return page

    def current(self) -> PageSession | None:
        """Cached handle, unvalidated."""
        return self._page

    def attach(self) -> PageSession:
        """Startup selection: first matching page, else the first page."""
        with self._lock:
            pages = self.connection.list_pages()
            logger.info("Found %d page(s)", len(pages))
            if not pages:
                raise PageNotFoundError("No pages found in browser")
            chosen = next((p for p in pages if self._matches(p)), pages[0])
            page = self._adopt(chosen)
            logger.info("Main page: [%s]", page.url[:60])
            return page

    def refresh(self) -> PageSession:
        """Re-discover the page: first matching page, else the most recently opened one."""
        with self._lock:
            try:
                pages = self.connection.list_pages()
                chosen = next((p for p in pages if self._matches(p)), None)
                if chosen is None and pages:
                    chosen = pages[-1]
                if chosen is None:
                    raise PageNotFoundError("No pages available")
                page = self._adopt(chosen)
            except Exception as exc:
                logger.error("%s", exc, extra={"context": "refreshPage"})
                raise
            logger.info("Refreshed page reference to: %s", page.url[:60])
            return page

    def classify(self, exc: BaseException) -> ErrorKind:
        return classify_error(exc, self.stale_markers)

    def run(self, operation: Callable[[PageSession], T]) -> T:
        """Run operation on the current page; on a stale-page failure refresh and retry once."""
        with self._lock:
            page = self._page if self._page is not None else self.refresh()
            try:
                return operation(page)
            except Exception as exc:
                if self.classify(exc) is not ErrorKind.RETRYABLE:
                    raise
                logger.info("page_stale target=%s reason=%s; refreshing", page.target_id, exc)

            page = self.refresh()
            return operation(page)

    def page_count(self) -> int:
        try:
            return len(self.connection.list_pages())
        except HttpClientError:
            return 0

    def release(self) -> None:
        with self._lock:
            if self._page is not None:
                self._page.detach()
                self._page = None


__all__ = [
    "ErrorKind",
    "PageGuard",
    "PageNotFoundError",
    "STALE_PAGE_MARKERS",
    "classify_error",
]
