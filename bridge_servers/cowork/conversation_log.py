"""conversation.log: the human-readable journal of relayed messages and errors."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger("cowork.bridge.conversation")

TO_COWORK = "to-cowork"
FROM_COWORK = "from-cowork"

ARROWS = {
    TO_COWORK: "→ TO COWORK",
    FROM_COWORK: "← FROM COWORK",
}

DEFAULT_TAIL = 20


def format_timestamp(when: datetime | None = None) -> str:
    """UTC, seconds precision: 2026-01-01 00:00:00."""
    when = when or datetime.now(timezone.utc)
    return when.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def format_log_line(direction: str, message: str, when: datetime | None = None) -> str:
    arrow = ARROWS.get(direction, ARROWS[FROM_COWORK])
    return f"[{format_timestamp(when)}] {arrow}: {message}\n"


class ConversationLog:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _append(self, line: str) -> None:
        with self._lock, self.path.open("a", encoding="utf-8") as fh:
            fh.write(line)

    def record(self, direction: str, message: str) -> str | None:
        """Append one relay line; failures are logged and swallowed."""
        line = format_log_line(direction, message)
        try:
            self._append(line)
        except (OSError, ValueError) as exc:
            # ValueError: text that cannot be encoded (lone surrogates from JSON input).
            logger.warning("Failed to log message: %s", exc)
            return None
        logger.info("%s", line.strip())
        return line

    def record_error(self, context: str, message: str) -> None:
        line = f"[{format_timestamp()}] ERROR in {context}: {message}\n"
        try:
            self._append(line)
        except (OSError, ValueError):
            # The process log still carries the error.
            pass

    def tail(self, last: int | None = None) -> dict[str, Any]:
        """The newest `last` lines (default 20); `last` must be positive."""
        limit = DEFAULT_TAIL if last is None else int(last)
        if limit < 1:
            raise ValueError(f"last must be a positive integer, got {last!r}")

        if not self.path.exists():
            return {"lines": [], "total": 0}
        lines = self.path.read_text(encoding="utf-8", errors="replace").strip().splitlines()
        return {"lines": lines[-limit:], "total": len(lines)}

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def error_handler(self, level: int = logging.ERROR) -> logging.Handler:
        return ConversationErrorHandler(self, level=level)


class ConversationErrorHandler(logging.Handler):
    """Mirrors ERROR records into conversation.log as `ERROR in <context>` lines."""

    def __init__(self, log: ConversationLog, level: int = logging.ERROR) -> None:
        super().__init__(level=level)
        self.log = log

    def emit(self, record: logging.LogRecord) -> None:
        try:
            context = getattr(record, "context", None) or record.name
            self.log.record_error(str(context), record.getMessage())
        except Exception:
            self.handleError(record)
