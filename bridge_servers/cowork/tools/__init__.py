"""
Page tools organized by concern.

- base: ToolError and quoting helpers
- dom: read-only DOM snapshots
- input: clicks, typing, key presses, focus, screenshots
"""

from .base import ToolError, xpath_literal
from .dom import get_buttons, get_html, get_interactive_elements, get_textareas, get_visible_text
from .input import (
    click_at_coords,
    click_by_text,
    click_element,
    focus_element,
    press_key,
    take_screenshot,
    type_into_focused,
    type_text,
)

__all__ = [
    "ToolError",
    "click_at_coords",
    "click_by_text",
    "click_element",
    "focus_element",
    "get_buttons",
    "get_html",
    "get_interactive_elements",
    "get_textareas",
    "get_visible_text",
    "press_key",
    "take_screenshot",
    "type_into_focused",
    "type_text",
    "xpath_literal",
]
