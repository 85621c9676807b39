"""Companion-process notification over tmux (best-effort, never raises)."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from typing import Any

from .config import BridgeConfig

logger = logging.getLogger("cowork.bridge.notify")

MAX_NOTIFY_CHARS = 200
TMUX_TIMEOUT = 2.0


def sanitize_for_tmux(message: str | None) -> str:
    """Single line, double quotes escaped, at most 200 chars."""
    return (message or "").replace('"', '\\"').replace("\n", " ")[:MAX_NOTIFY_CHARS]


class TmuxNotifier:
    def __init__(self, config: BridgeConfig, runner: Callable[..., Any] = subprocess.run) -> None:
        self.config = config
        self._run = runner

    def _tmux(self, *args: str) -> str:
        proc = self._run(
            ["tmux", *args],
            capture_output=True,
            text=True,
            timeout=TMUX_TIMEOUT,
            check=True,
        )
        return proc.stdout or ""

    def find_session(self) -> str | None:
        """Target for notifications, or None when disabled or tmux is unavailable."""
        if not self.config.enable_tmux_notify:
            return None
        if self.config.tmux_target:
            return self.config.tmux_target

        try:
            raw = self._tmux("list-sessions", "-F", "#{session_name}")
        except (OSError, subprocess.SubprocessError):
            return None
        sessions = [line.strip() for line in raw.splitlines() if line.strip()]
        for name in sessions:
            if "claude" in name.lower() or name == self.config.tmux_session:
                return name
        return sessions[0] if sessions else None

    def notify(self, message: str) -> bool:
        session = self.find_session()
        if not session:
            return False

        outbox = str(self.config.outbox_path)
        banner = f'echo "📬 COWORK MESSAGE: {sanitize_for_tmux(message)} (see {outbox})"'
        try:
            self._tmux("send-keys", "-t", session, banner, "Enter")
            self._tmux("send-keys", "-t", session, f"jq . {outbox}", "Enter")
        except (OSError, subprocess.SubprocessError) as exc:
            logger.info("tmux notify failed: %s", exc)
            return False

        logger.info("Notified tmux session: %s", session)
        return True
