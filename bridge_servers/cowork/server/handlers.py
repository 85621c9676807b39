"""
Route handlers.

Page routes go through PageGuard.run so a stale page is re-discovered and the
call retried once; file routes work on the bridge directory directly.
"""

from __future__ import annotations

import os
import time
from typing import Any

from .. import tools
from ..conversation_log import TO_COWORK
from .types import (
    BridgeContext,
    HandlerFunc,
    InvalidRequestError,
    optional_positive_int,
    require_number,
    require_str,
)

# ─────────────────────────────────────────────────────────────────────────────
# Query
# ─────────────────────────────────────────────────────────────────────────────


def handle_elements(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    return ctx.require_guard().run(tools.get_interactive_elements)


def handle_textareas(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    return ctx.require_guard().run(tools.get_textareas)


def handle_buttons(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    return ctx.require_guard().run(tools.get_buttons)


def handle_text(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    return ctx.require_guard().run(tools.get_visible_text)


def handle_html(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    return ctx.require_guard().run(tools.get_html)


# ─────────────────────────────────────────────────────────────────────────────
# Actions
# ─────────────────────────────────────────────────────────────────────────────


def handle_click(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    selector = require_str(args, "selector")
    return ctx.require_guard().run(lambda page: tools.click_element(page, selector))


def handle_click_text(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    text = require_str(args, "text")
    return ctx.require_guard().run(lambda page: tools.click_by_text(page, text))


def handle_click_coords(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    x = require_number(args, "x")
    y = require_number(args, "y")
    return ctx.require_guard().run(lambda page: tools.click_at_coords(page, x, y))


def handle_type(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    selector = require_str(args, "selector")
    text = require_str(args, "text")
    result = ctx.require_guard().run(lambda page: tools.type_text(page, selector, text))
    ctx.conversation.record(TO_COWORK, text)
    return result


def handle_type_raw(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    text = require_str(args, "text")
    result = ctx.require_guard().run(lambda page: tools.type_into_focused(page, text))
    ctx.conversation.record(TO_COWORK, text)
    return result


def handle_press(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    key = require_str(args, "key")
    return ctx.require_guard().run(lambda page: tools.press_key(page, key))


def handle_focus(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    selector = require_str(args, "selector")
    return ctx.require_guard().run(lambda page: tools.focus_element(page, selector))


def handle_screenshot(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    filename = args.get("filename")
    if filename is not None and not isinstance(filename, str):
        raise InvalidRequestError("Invalid filename field")
    directory = ctx.config.bridge_dir
    return ctx.require_guard().run(lambda page: tools.take_screenshot(page, directory, filename))


# ─────────────────────────────────────────────────────────────────────────────
# Bidirectional messaging
# ─────────────────────────────────────────────────────────────────────────────


def handle_outbox(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    return ctx.outbox.read()


def handle_clear_outbox(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    ctx.outbox.clear()
    return {"success": True, "action": "clearOutbox"}


def handle_to_claude_code(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    message = require_str(args, "message")
    data = args.get("data")
    if data is not None and not isinstance(data, dict):
        raise InvalidRequestError("Invalid data field (expected an object)")
    return ctx.outbox.send(message, data)


def handle_log(ctx: BridgeContext, args: dict[str, Any]) -> Any:
    return ctx.conversation.tail(optional_positive_int(args, "last"))


# ─────────────────────────────────────────────────────────────────────────────
# Health
# ─────────────────────────────────────────────────────────────────────────────


def handle_status(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    cfg = ctx.config
    guard = ctx.guard
    page = guard.current() if guard is not None else None
    return {
        "status": "ok",
        "timestamp": int(time.time() * 1000),
        "uptime": round(time.monotonic() - ctx.started_at, 3),
        "config": {
            "httpPort": cfg.http_port,
            "cdpPort": cfg.cdp_port,
            "tmuxEnabled": cfg.enable_tmux_notify,
        },
        "connection": {
            "browserConnected": bool(guard is not None and guard.connection.is_connected()),
            "pageCount": guard.page_count() if guard is not None else 0,
            "currentPageUrl": page.url if page is not None else None,
            "tmuxSession": ctx.notifier.find_session(),
        },
        "files": {
            "outboxExists": os.path.exists(cfg.outbox_path),
            "coworkFileExists": os.path.exists(cfg.inbox_path),
            "logSize": ctx.conversation.size(),
        },
    }


def handle_ping(ctx: BridgeContext, args: dict[str, Any]) -> Any:  # noqa: ARG001
    return {
        "status": "ok",
        "timestamp": int(time.time() * 1000),
        "tmuxSession": ctx.notifier.find_session(),
    }


ROUTES: dict[str, tuple[HandlerFunc, str]] = {
    "elements": (handle_elements, "query"),
    "textareas": (handle_textareas, "query"),
    "buttons": (handle_buttons, "query"),
    "text": (handle_text, "query"),
    "html": (handle_html, "query"),
    "outbox": (handle_outbox, "query"),
    "log": (handle_log, "query"),
    "click": (handle_click, "actions"),
    "clickText": (handle_click_text, "actions"),
    "clickCoords": (handle_click_coords, "actions"),
    "type": (handle_type, "actions"),
    "typeRaw": (handle_type_raw, "actions"),
    "press": (handle_press, "actions"),
    "screenshot": (handle_screenshot, "actions"),
    "focus": (handle_focus, "actions"),
    "toClaudeCode": (handle_to_claude_code, "bidirectional"),
    "clearOutbox": (handle_clear_outbox, "bidirectional"),
    "status": (handle_status, "health"),
    "ping": (handle_ping, "health"),
}
