"""
Base utilities for the DOM query/action layer.

Provides:
- ToolError: structured failure of a DOM action
- xpath_literal: quote arbitrary text for XPath expressions
"""

from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass
class ToolError(Exception):
    """Structured error for a failed page action."""

    tool: str
    action: str
    reason: str

    def __str__(self) -> str:
        return self.reason


def xpath_literal(text: str) -> str:
    """XPath string literal for text that may contain both quote kinds."""
    if '"' not in text:
        return f'"{text}"'
    if "'" not in text:
        return f"'{text}'"
    parts = text.split('"')
    return "concat(" + ", '\"', ".join(f'"{p}"' for p in parts) + ")"


def js_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)
