"""Inbound relay: watch cowork-to-code.json and journal each new message once.

The producer rewrites the file in several steps, so raw change notifications are
debounced, identical content is ignored, and half-written JSON is skipped until
the next change.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger("cowork.bridge.inbox")

DISPLAY_LIMIT = 80


def content_hash(content: bytes | str) -> str:
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def extract_latest(value: Any) -> Any | None:
    """The current message: last element of a list, else the value itself."""
    if isinstance(value, list):
        return value[-1] if value else None
    return value


def extract_display_text(content: str | bytes, limit: int = DISPLAY_LIMIT) -> str | None:
    """Display string for inbound content, or None when there is nothing to show.

    Uses the message's `message` field when present, otherwise a compact JSON
    rendering cut to `limit` chars. Malformed JSON yields None.
    """
    try:
        parsed = json.loads(content)
    except ValueError:
        return None
    latest = extract_latest(parsed)
    if latest is None:
        return None
    if isinstance(latest, dict) and latest.get("message"):
        return str(latest["message"])
    return json.dumps(latest, ensure_ascii=False, separators=(",", ":"))[:limit]


class Debouncer:
    """Single pending timer; only the last reset() within the window fires."""

    def __init__(self, delay: float, callback: Callable[[], Any]) -> None:
        self.delay = float(delay)
        self.callback = callback
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def reset(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._lock:
            if self._timer is not threading.current_thread():
                # Superseded by a later reset().
                return
            self._timer = None
        self.callback()


CHANGE_EVENTS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED, EVENT_TYPE_CLOSED})


class InboxEventHandler(FileSystemEventHandler):
    """Turns watchdog events naming the inbound file into raw change notifications.

    The observer watches the whole bridge directory, so everything else is dropped,
    as are deletions and our own reads (opened / closed-without-write).
    """

    def __init__(self, path: str | Path, callback: Callable[[], Any]) -> None:
        super().__init__()
        self.name = Path(path).name
        self.callback = callback

    def _names_inbox(self, raw: Any) -> bool:
        return bool(raw) and Path(os.fsdecode(raw)).name == self.name

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in CHANGE_EVENTS:
            return
        # Atomic replace (write temp, rename over) arrives as a move onto the inbox.
        if self._names_inbox(event.src_path) or self._names_inbox(getattr(event, "dest_path", "")):
            self.callback()


class InboxWatcher:
    def __init__(
        self,
        path: str | Path,
        on_message: Callable[[str], Any],
        *,
        debounce: float = 0.5,
    ) -> None:
        self.path = Path(path)
        self.on_message = on_message
        self._lock = threading.Lock()
        self._baseline: bytes | None = None
        self.debouncer = Debouncer(debounce, self.check)
        self.handler = InboxEventHandler(self.path, self.notify)
        self._observer: Any = None

    def prime(self) -> None:
        """Treat content that predates the watcher as already seen."""
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.error("%s", exc, extra={"context": "startFileWatcher init"})
            return
        with self._lock:
            self._baseline = content

    def notify(self) -> None:
        """Raw change notification; (re)arms the debounce timer."""
        self.debouncer.reset()

    def check(self) -> str | None:
        """Process the file once; return the relayed display text, if any."""
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.error("%s", exc, extra={"context": "fileWatcher read"})
            return None

        with self._lock:
            if content == self._baseline:
                return None
            self._baseline = content

        text = extract_display_text(content)
        if text is None:
            logger.debug("inbox_skipped sha256=%s", content_hash(content)[:12])
            return None
        self.on_message(text)
        return text

    def start(self) -> None:
        self.prime()
        # Watch the directory: the producer may create the file later or replace it by rename.
        self.path.parent.mkdir(parents=True, exist_ok=True)
        observer = Observer()
        observer.schedule(self.handler, str(self.path.parent), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Watching %s for Cowork messages", self.path)

    def stop(self) -> None:
        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
            observer.join(timeout=2)
        self.debouncer.cancel()
