from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_APP_CANDIDATES: list[str] = [
    # Debug builds of the desktop app are patched to expose --remote-debugging-port.
    "~/Claude-Debug.app/Contents/MacOS/Claude",
    "/Applications/Claude-Debug.app/Contents/MacOS/Claude",
    "/Applications/Claude.app/Contents/MacOS/Claude",
    "~/.local/bin/claude-desktop",
    "/usr/bin/claude-desktop",
    "C:\\Program Files\\Claude\\Claude.exe",
]

OUTBOX_FILENAME = "outbox.json"
INBOX_FILENAME = "cowork-to-code.json"
LOG_FILENAME = "conversation.log"


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_flag(name: str, default: bool = True) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() != "false"


@dataclass
class BridgeConfig:
    app_path: str
    bridge_dir: str
    http_host: str = "127.0.0.1"
    http_port: int = 7777
    cdp_port: int = 9222
    tmux_session: str = "claude"
    tmux_target: str | None = None
    cdp_startup_timeout: int = 30
    cdp_command_timeout: float = 30.0
    file_watch_debounce_ms: int = 500
    outbox_max_messages: int = 50
    enable_tmux_notify: bool = True
    page_url_pattern: str = "claude.ai"
    expose_stack: bool = False

    @classmethod
    def detect_app(cls) -> str:
        env_path = os.environ.get("CLAUDE_PATH")
        if env_path:
            return expand_path(env_path)
        for candidate in DEFAULT_APP_CANDIDATES:
            path = Path(candidate).expanduser()
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        # Last resort: rely on PATH lookup
        return "claude"

    @classmethod
    def from_env(cls) -> BridgeConfig:
        target = (os.environ.get("TMUX_TARGET") or "").strip()
        return cls(
            app_path=cls.detect_app(),
            bridge_dir=expand_path(os.environ.get("BRIDGE_DIR", "~/cowork-bridge")),
            http_host=os.environ.get("HTTP_HOST", "127.0.0.1"),
            http_port=int(os.environ.get("HTTP_PORT", "7777")),
            cdp_port=int(os.environ.get("CDP_PORT", "9222")),
            tmux_session=os.environ.get("TMUX_SESSION", "claude"),
            tmux_target=target or None,
            cdp_startup_timeout=int(os.environ.get("CDP_TIMEOUT", "30")),
            cdp_command_timeout=float(os.environ.get("CDP_COMMAND_TIMEOUT", "30")),
            file_watch_debounce_ms=int(os.environ.get("FILE_WATCH_DEBOUNCE", "500")),
            outbox_max_messages=int(os.environ.get("OUTBOX_MAX", "50")),
            enable_tmux_notify=_env_flag("ENABLE_TMUX_NOTIFY"),
            page_url_pattern=os.environ.get("PAGE_URL_PATTERN", "claude.ai"),
            expose_stack=os.environ.get("BRIDGE_ENV", "").strip().lower() == "development",
        )

    @property
    def outbox_path(self) -> Path:
        return Path(self.bridge_dir) / OUTBOX_FILENAME

    @property
    def inbox_path(self) -> Path:
        return Path(self.bridge_dir) / INBOX_FILENAME

    @property
    def log_path(self) -> Path:
        return Path(self.bridge_dir) / LOG_FILENAME

    @property
    def cdp_endpoint(self) -> str:
        return f"http://127.0.0.1:{self.cdp_port}"
