"""
DOM action tools: click, type, key presses, focus and screenshots.

Every action returns `{"success": True, "action": <name>, ...}` and raises
ToolError when its target element cannot be found.
"""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Any

from ..browser_session import PageSession
from .base import ToolError, js_string, xpath_literal

# Scrolls the element into view and reports its center, or null when absent.
_CENTER_OF = """
(() => {{
    const el = {locate};
    if (!el) return null;
    el.scrollIntoView({{block: 'center', inline: 'center'}});
    const r = el.getBoundingClientRect();
    return {{x: r.x + r.width / 2, y: r.y + r.height / 2}};
}})()
"""


def _selector_expr(selector: str) -> str:
    return f"document.querySelector({js_string(selector)})"


def _text_expr(text: str) -> str:
    xpath = f"//*[contains(text(), {xpath_literal(text)})]"
    return (
        f"document.evaluate({js_string(xpath)}, document, null, "
        "XPathResult.FIRST_ORDERED_NODE_TYPE, null).singleNodeValue"
    )


def _center(page: PageSession, locate: str) -> tuple[float, float] | None:
    point = page.eval_js(_CENTER_OF.format(locate=locate))
    if not isinstance(point, dict):
        return None
    return float(point["x"]), float(point["y"])


def click_element(page: PageSession, selector: str) -> dict[str, Any]:
    point = _center(page, _selector_expr(selector))
    if point is None:
        raise ToolError(tool="click", action="click", reason=f"No element found for selector: {selector}")
    page.click(*point)
    return {"success": True, "action": "click", "selector": selector}


def click_by_text(page: PageSession, text: str) -> dict[str, Any]:
    point = _center(page, _text_expr(text))
    if point is None:
        raise ToolError(tool="clickText", action="clickByText", reason=f"No element found with text: {text}")
    page.click(*point)
    return {"success": True, "action": "clickByText", "text": text}


def click_at_coords(page: PageSession, x: float, y: float) -> dict[str, Any]:
    page.click(x, y)
    return {"success": True, "action": "clickAtCoords", "x": x, "y": y}


def type_text(page: PageSession, selector: str, text: str) -> dict[str, Any]:
    """Select the element's existing content (triple click), then type over it."""
    point = _center(page, _selector_expr(selector))
    if point is None:
        raise ToolError(tool="type", action="type", reason=f"No element found for selector: {selector}")
    page.click(*point, click_count=3)
    page.type_text(text)
    return {"success": True, "action": "type", "selector": selector, "text": text}


def type_into_focused(page: PageSession, text: str) -> dict[str, Any]:
    page.type_text(text)
    return {"success": True, "action": "typeIntoFocused", "text": text}


def press_key(page: PageSession, key: str) -> dict[str, Any]:
    page.press_key(key)
    return {"success": True, "action": "pressKey", "key": key}


def focus_element(page: PageSession, selector: str) -> dict[str, Any]:
    found = page.eval_js(
        f"(() => {{ const el = {_selector_expr(selector)}; if (!el) return false; el.focus(); return true; }})()"
    )
    if not found:
        raise ToolError(tool="focus", action="focus", reason=f"No element found for selector: {selector}")
    return {"success": True, "action": "focus", "selector": selector}


def take_screenshot(page: PageSession, directory: str | Path, filename: str | None = None) -> dict[str, Any]:
    # Only the base name is honoured; screenshots always land in the bridge directory.
    name = Path(filename or "screenshot.png").name or "screenshot.png"
    path = Path(directory) / name
    data = page.screenshot("png")
    if not data:
        raise ToolError(tool="screenshot", action="screenshot", reason="Screenshot data is empty")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(base64.b64decode(data))
    return {"success": True, "action": "screenshot", "path": str(path)}
