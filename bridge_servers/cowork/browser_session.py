from __future__ import annotations

from contextlib import suppress
from typing import Any

from .http_client import HttpClientError
from .session_cdp import CdpConnection

KEY_CODES = {
    "Enter": 13,
    "Tab": 9,
    "Escape": 27,
    "Backspace": 8,
    "Delete": 46,
    "Space": 32,
    "ArrowUp": 38,
    "ArrowDown": 40,
    "ArrowLeft": 37,
    "ArrowRight": 39,
    "Home": 36,
    "End": 35,
    "PageUp": 33,
    "PageDown": 34,
}

# Keys that produce text must also carry it, otherwise inputs ignore them.
KEY_TEXT = {"Enter": "\r", "Tab": "\t", "Space": " "}


class PageSession:
    """
    Handle on a single page target.

    Owned by the PageGuard; callers receive it per operation and must not keep it,
    since the target can go away (reload, navigation, closed tab) at any time.
    """

    def __init__(self, connection: CdpConnection, target_id: str, url: str = ""):
        self.conn = connection
        self.target_id = target_id
        self.url = url
        self._runtime_enabled = False

    def __repr__(self) -> str:
        return f"PageSession(target_id={self.target_id!r}, url={self.url[:60]!r})"

    @property
    def alive(self) -> bool:
        return bool(getattr(self.conn, "connected", True))

    def close(self) -> None:
        self.conn.close()

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send raw CDP command."""
        return self.conn.send(method, params)

    def enable_runtime(self) -> None:
        if self._runtime_enabled:
            return
        self.conn.send("Runtime.enable", {})
        self._runtime_enabled = True

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    def eval_js(self, expression: str) -> Any:
        """Evaluate JavaScript and return its JSON value.

        Page exceptions are raised as HttpClientError; undefined and null map to None.
        """
        self.enable_runtime()
        result = self.conn.send(
            "Runtime.evaluate",
            {
                "expression": expression,
                "returnByValue": True,
                "awaitPromise": True,
            },
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
            text = exc.get("description") or details.get("text") or "JavaScript exception"
            raise HttpClientError(f"Evaluation failed: {text}")

        if "result" not in result:
            return None
        value = result["result"]
        if isinstance(value, dict) and value.get("type") == "undefined":
            return None
        if isinstance(value, dict) and value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value", value) if isinstance(value, dict) else value

    # ─────────────────────────────────────────────────────────────────────────
    # Mouse / keyboard
    # ─────────────────────────────────────────────────────────────────────────

    def click(self, x: float, y: float, button: str = "left", click_count: int = 1) -> None:
        """Click at viewport coordinates."""
        self.conn.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y})
        for count in range(1, max(1, int(click_count)) + 1):
            for event_type in ("mousePressed", "mouseReleased"):
                self.conn.send(
                    "Input.dispatchMouseEvent",
                    {
                        "type": event_type,
                        "x": x,
                        "y": y,
                        "button": button,
                        "clickCount": count,
                    },
                )

    def press_key(self, key: str, modifiers: int = 0) -> None:
        """Press a keyboard key (DOM key name, e.g. "Enter" or "a")."""
        key_code = KEY_CODES.get(key, ord(key[0].upper()) if len(key) == 1 else 0)
        code = f"Key{key.upper()}" if len(key) == 1 and key.isalpha() else key
        text = KEY_TEXT.get(key, key if len(key) == 1 else "")

        down: dict[str, Any] = {
            "type": "keyDown" if text else "rawKeyDown",
            "key": key,
            "code": code,
            "windowsVirtualKeyCode": key_code,
            "modifiers": modifiers,
        }
        if text:
            down["text"] = text
        self.conn.send("Input.dispatchKeyEvent", down)
        self.conn.send(
            "Input.dispatchKeyEvent",
            {
                "type": "keyUp",
                "key": key,
                "code": code,
                "windowsVirtualKeyCode": key_code,
                "modifiers": modifiers,
            },
        )

    def type_text(self, text: str) -> None:
        """Insert text into the focused element."""
        if not text:
            return
        try:
            self.conn.send("Input.insertText", {"text": str(text)})
            return
        except HttpClientError as exc:
            # A dead session must surface to the guard, not degrade to char events.
            if "closed" in str(exc) or "detached" in str(exc):
                raise

        for char in text:
            self.conn.send("Input.dispatchKeyEvent", {"type": "char", "text": char})

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots & DOM
    # ─────────────────────────────────────────────────────────────────────────

    def screenshot(self, format: str = "png") -> str:
        """Capture the viewport, return base64 data."""
        result = self.conn.send("Page.captureScreenshot", {"format": format, "fromSurface": True})
        return result.get("data", "")

    def get_html(self) -> str:
        """Full serialized document, doctype included."""
        js = (
            "(document.doctype ? new XMLSerializer().serializeToString(document.doctype) : '')"
            " + document.documentElement.outerHTML"
        )
        return self.eval_js(js) or ""

    def detach(self) -> None:
        with suppress(Exception):
            self.close()


__all__ = ["PageSession"]
