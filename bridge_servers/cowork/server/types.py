"""
Shared types for route handlers.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..config import BridgeConfig
    from ..conversation_log import ConversationLog
    from ..notifier import TmuxNotifier
    from ..outbox import Outbox
    from ..session_manager import PageGuard


class InvalidRequestError(ValueError):
    """Client error: answered with HTTP 400."""


@dataclass
class BridgeContext:
    """Everything a route handler may touch, built once per process."""

    config: BridgeConfig
    guard: PageGuard | None
    outbox: Outbox
    conversation: ConversationLog
    notifier: TmuxNotifier
    started_at: float = field(default_factory=time.monotonic)

    def require_guard(self) -> PageGuard:
        if self.guard is None:
            raise RuntimeError("Browser connection is not established")
        return self.guard


HandlerFunc = Callable[[BridgeContext, dict[str, Any]], Any]


def require_str(args: dict[str, Any], name: str) -> str:
    value = args.get(name)
    if not isinstance(value, str) or value == "":
        raise InvalidRequestError(f"Missing {name} field")
    return value


def require_number(args: dict[str, Any], name: str) -> float:
    value = args.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequestError(f"Missing {name} field")
    return value


def optional_positive_int(args: dict[str, Any], name: str) -> int | None:
    """Absent means None; otherwise an integer >= 1 (query strings arrive as text)."""
    value = args.get(name)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRequestError(f"Invalid {name} field")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid {name} field") from None
    if number < 1 or (isinstance(value, float) and value != number):
        raise InvalidRequestError(f"Invalid {name} field")
    return number
