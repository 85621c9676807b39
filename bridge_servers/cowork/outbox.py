"""outbox.json: capped, oldest-first log of messages for the external consumer."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger("cowork.bridge.outbox")


class Notifier(Protocol):
    def notify(self, message: str) -> bool: ...


def iso_timestamp(when: datetime | None = None) -> str:
    when = when or datetime.now(timezone.utc)
    return when.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_entry(message: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "timestamp": iso_timestamp(),
        "message": message,
        "data": data if data is not None else {},
        "read": False,
    }


def trim_entries(entries: list[Any], max_entries: int) -> list[Any]:
    """Keep the newest `max_entries` (drop oldest first)."""
    if max_entries <= 0:
        return []
    if len(entries) > max_entries:
        return entries[-max_entries:]
    return entries


class Outbox:
    def __init__(self, path: str | Path, max_entries: int = 50, notifier: Notifier | None = None) -> None:
        self.path = Path(path)
        self.max_entries = int(max_entries)
        self.notifier = notifier
        # One read-modify-write at a time; requests are served on parallel threads.
        self._lock = threading.Lock()

    def read(self) -> list[Any]:
        """Stored entries; a corrupt file raises ValueError."""
        if not self.path.exists():
            return []
        existing = json.loads(self.path.read_text(encoding="utf-8"))
        return existing if isinstance(existing, list) else [existing]

    def _load_for_append(self) -> list[Any]:
        # An unreadable outbox must not block sending: start over with an empty one.
        try:
            return self.read()
        except (OSError, ValueError) as exc:
            logger.error("%s", exc, extra={"context": "sendToClaudeCode read"})
            return []

    def _write(self, entries: list[Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(entries, indent=2, ensure_ascii=False)
        fd, tmp = tempfile.mkstemp(prefix=".outbox-", suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def send(self, message: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        entry = build_entry(message, data)
        with self._lock:
            entries = self._load_for_append()
            entries.append(entry)
            entries = trim_entries(entries, self.max_entries)
            try:
                self._write(entries)
            except OSError as exc:
                logger.error("%s", exc, extra={"context": "sendToClaudeCode"})
                raise

        if self.notifier is not None:
            try:
                self.notifier.notify(message)
            except Exception as exc:  # noqa: BLE001
                logger.warning("notify_failed reason=%s", exc)
        return entry

    def clear(self) -> None:
        with self._lock:
            self._write([])
