"""DevTools connections.

- CdpConnection: command/response WebSocket bound to one page target.
- BrowserConnection: the long-lived browser-level link. It owns page
  enumeration and watches its own socket so an unexpected loss can be
  escalated by the caller.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import websocket

from .http_client import HttpClientError, http_get_json

logger = logging.getLogger("cowork.bridge.cdp")


class BrowserDisconnectedError(HttpClientError):
    """The browser-level connection is gone; not recoverable in-process."""


def _is_timeout(exc: BaseException) -> bool:
    msg = str(exc).lower()
    return isinstance(exc, (TimeoutError, websocket.WebSocketTimeoutException)) or "timed out" in msg


def _is_closed(exc: BaseException) -> bool:
    return isinstance(
        exc,
        (websocket.WebSocketConnectionClosedException, ConnectionResetError, BrokenPipeError),
    )


class CdpConnection:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws_url: str, timeout: float = 5.0):
        try:
            self.ws = websocket.create_connection(ws_url, timeout=timeout)
        except (OSError, websocket.WebSocketException) as exc:
            raise HttpClientError(f"Session closed: cannot open {ws_url}: {exc}") from exc
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1

    @property
    def connected(self) -> bool:
        return bool(getattr(self.ws, "connected", False))

    def abort(self) -> None:
        """Best-effort hard break of the underlying socket.

        websocket-client close() performs a closing handshake that can block
        on a wedged renderer; shutting the raw socket down never does.
        """
        try:
            sock = getattr(self.ws, "sock", None)
        except Exception:
            sock = None

        if sock is not None:
            with suppress(Exception):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(Exception):
                sock.close()

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        msg_id = self._next_id
        self._next_id += 1

        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params

        try:
            with suppress(Exception):
                self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
            self.ws.send(json.dumps(msg))
        except Exception as exc:  # noqa: BLE001
            if _is_closed(exc):
                raise HttpClientError(f"Session closed: {exc}") from exc
            raise HttpClientError(str(exc)) from exc

        return self._recv_until(msg_id)

    def _recv_until(self, expected_id: int) -> dict[str, Any]:
        """Wait for response with specific ID."""
        deadline = time.time() + self.timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                raise HttpClientError("CDP response timed out")

            # recv() blocks forever without a socket timeout; poll in short slices.
            try:
                self.ws.settimeout(min(0.5, remaining))
                raw = self.ws.recv()
            except Exception as exc:  # noqa: BLE001
                if _is_timeout(exc):
                    continue
                if _is_closed(exc):
                    raise HttpClientError(f"Session closed: {exc}") from exc
                raise HttpClientError(str(exc)) from exc

            if not raw:
                # websocket-client returns an empty frame once the peer has closed.
                raise HttpClientError("Session closed: connection closed by peer")

            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if not isinstance(data, dict):
                continue

            method = data.get("method")
            if isinstance(method, str) and "id" not in data:
                if method == "Inspector.detached":
                    reason = (data.get("params") or {}).get("reason") or "unknown"
                    raise HttpClientError(f"Page detached: {reason}")
                if method == "Inspector.targetCrashed":
                    raise HttpClientError("Target closed (crashed)")
                continue

            if data.get("id") == expected_id:
                if "error" in data:
                    err = data["error"]
                    message = err.get("message") if isinstance(err, dict) else None
                    raise HttpClientError(str(message or err))
                return data.get("result", {})

    def close(self) -> None:
        """Close the WebSocket connection."""
        with suppress(Exception):
            self.abort()


class BrowserConnection:
    """Browser-level DevTools link, created once at startup and torn down once."""

    def __init__(
        self,
        endpoint: str,
        ws_url: str,
        *,
        timeout: float = 5.0,
        on_lost: Callable[[BaseException], None] | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.ws_url = ws_url
        self.timeout = timeout
        self._on_lost = on_lost
        self._closing = threading.Event()
        self._connected = False
        self._thread: threading.Thread | None = None
        self.ws: Any = None

    @classmethod
    def connect(
        cls,
        endpoint: str,
        *,
        timeout: float = 5.0,
        on_lost: Callable[[BaseException], None] | None = None,
    ) -> BrowserConnection:
        version = http_get_json(f"{endpoint.rstrip('/')}/json/version", timeout=timeout)
        ws_url = version.get("webSocketDebuggerUrl") if isinstance(version, dict) else None
        if not ws_url:
            raise HttpClientError("CDP browser WebSocket URL not found")
        conn = cls(endpoint, ws_url, timeout=timeout, on_lost=on_lost)
        conn.open()
        return conn

    def open(self) -> None:
        try:
            self.ws = websocket.create_connection(self.ws_url, timeout=self.timeout)
        except (OSError, websocket.WebSocketException) as exc:
            raise HttpClientError(f"Cannot connect to {self.ws_url}: {exc}") from exc
        self._connected = True
        self._thread = threading.Thread(target=self._monitor, name="cdp-browser-monitor", daemon=True)
        self._thread.start()

    def is_connected(self) -> bool:
        return self._connected

    def _monitor(self) -> None:
        """Block on the browser socket until it closes."""
        lost: BaseException | None = None
        while not self._closing.is_set():
            try:
                self.ws.settimeout(0.5)
                raw = self.ws.recv()
            except Exception as exc:  # noqa: BLE001
                if _is_timeout(exc):
                    continue
                lost = exc
                break
            if not raw and not getattr(self.ws, "connected", True):
                lost = BrowserDisconnectedError("connection closed by peer")
                break

        self._connected = False
        if self._closing.is_set():
            return
        logger.error("browser_disconnected reason=%s", lost, extra={"context": "browser"})
        callback = self._on_lost
        if callback is not None:
            callback(lost if lost is not None else BrowserDisconnectedError("Unexpected disconnection"))

    def list_targets(self) -> list[dict[str, Any]]:
        if not self._connected:
            raise BrowserDisconnectedError("Browser connection is closed")
        targets = http_get_json(f"{self.endpoint}/json/list", timeout=self.timeout)
        return targets if isinstance(targets, list) else []

    def list_pages(self) -> list[dict[str, Any]]:
        """Page targets, oldest first (the DevTools listing is newest first)."""
        pages = [t for t in self.list_targets() if isinstance(t, dict) and t.get("type") == "page"]
        pages.reverse()
        return pages

    def disconnect(self) -> None:
        """Orderly teardown; the browser itself keeps running."""
        if self._closing.is_set():
            return
        self._closing.set()
        self._connected = False
        if self.ws is not None:
            with suppress(Exception):
                self.ws.close(timeout=1)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)


__all__ = ["BrowserConnection", "BrowserDisconnectedError", "CdpConnection"]
