"""
Cowork bridge: HTTP control surface for the desktop app's page, plus the
file-based relay between Cowork and a terminal session.

Startup order: start or reach the app, connect to the browser, pick the page,
bind the HTTP API, watch the inbound file. Any failure there exits 1.
"""

from __future__ import annotations

import errno
import logging
import signal
import sys
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .config import BridgeConfig
from .conversation_log import FROM_COWORK, ConversationLog
from .http_client import HttpClientError
from .inbox import InboxWatcher
from .launcher import AppLauncher, StartupError
from .notifier import TmuxNotifier
from .outbox import Outbox
from .server.http_api import BridgeHTTPServer, create_http_server
from .server.types import BridgeContext
from .session_cdp import BrowserConnection
from .session_manager import PageGuard

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(message)s",
)
logger = logging.getLogger("cowork.bridge")

__all__ = ["CoworkBridge", "main"]

Connector = Callable[..., BrowserConnection]


class CoworkBridge:
    """Owns every long-lived component; built once per process."""

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        launcher: AppLauncher | None = None,
        connect: Connector | None = None,
    ) -> None:
        self.config = config or BridgeConfig.from_env()
        self.conversation = ConversationLog(self.config.log_path)
        self.notifier = TmuxNotifier(self.config)
        self.outbox = Outbox(self.config.outbox_path, self.config.outbox_max_messages, notifier=self.notifier)
        self.launcher = launcher or AppLauncher(self.config)
        self._connect = connect or BrowserConnection.connect
        self.context = BridgeContext(
            config=self.config,
            guard=None,
            outbox=self.outbox,
            conversation=self.conversation,
            notifier=self.notifier,
        )
        self.connection: BrowserConnection | None = None
        self.guard: PageGuard | None = None
        self.http: BridgeHTTPServer | None = None
        self.watcher: InboxWatcher | None = None
        self.exit_code = 0

        self._lock = threading.Lock()
        self._serving = False
        self._shutting_down = False
        self._stopped = threading.Event()
        self._journal: logging.Handler | None = None

    # ─────────────────────────────────────────────────────────────────────────
    # Error journal
    # ─────────────────────────────────────────────────────────────────────────

    def install_error_journal(self) -> None:
        """Mirror ERROR records (and uncaught thread errors) into conversation.log."""
        if self._journal is None:
            self._journal = self.conversation.error_handler()
            logger.addHandler(self._journal)
        threading.excepthook = self._thread_excepthook

    def remove_error_journal(self) -> None:
        if self._journal is not None:
            logger.removeHandler(self._journal)
            self._journal = None

    def _thread_excepthook(self, args: threading.ExceptHookArgs) -> None:
        name = args.thread.name if args.thread is not None else "thread"
        logger.error(
            "%s: %s",
            getattr(args.exc_type, "__name__", "Exception"),
            args.exc_value,
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
            extra={"context": name},
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def _banner(self) -> None:
        cfg = self.config
        logger.info("Cowork Bridge starting")
        logger.info("  app=%s", cfg.app_path)
        logger.info("  http=%s:%d cdp_port=%d", cfg.http_host, cfg.http_port, cfg.cdp_port)
        logger.info("  bridge_dir=%s", cfg.bridge_dir)
        logger.info("  tmux_notify=%s session=%s", "on" if cfg.enable_tmux_notify else "off", cfg.tmux_session)

    def start(self) -> None:
        """Bring every component up; raises on any fatal startup condition."""
        cfg = self.config
        Path(cfg.bridge_dir).mkdir(parents=True, exist_ok=True)
        self._banner()

        self.launcher.ensure_running()

        logger.info("Connecting to CDP at %s", cfg.cdp_endpoint)
        self.connection = self._connect(
            cfg.cdp_endpoint,
            timeout=cfg.cdp_command_timeout,
            on_lost=self._on_connection_lost,
        )
        self.guard = PageGuard(
            self.connection,
            url_pattern=cfg.page_url_pattern,
            command_timeout=cfg.cdp_command_timeout,
        )
        self.guard.attach()
        self.context.guard = self.guard

        try:
            self.http = create_http_server(self.context)
        except OSError as exc:
            if exc.errno == errno.EADDRINUSE:
                raise StartupError(f"Port {cfg.http_port} is already in use") from exc
            raise

        self.watcher = InboxWatcher(
            cfg.inbox_path,
            self._on_inbound,
            debounce=cfg.file_watch_debounce_ms / 1000.0,
        )
        self.watcher.start()

        logger.info("Cowork Bridge ready on http://%s:%d", cfg.http_host, cfg.http_port)
        logger.info("  outbox=%s", cfg.outbox_path)
        logger.info("  inbox=%s", cfg.inbox_path)
        logger.info("  log=%s", cfg.log_path)

    def _on_inbound(self, text: str) -> None:
        self.conversation.record(FROM_COWORK, text)

    def _on_connection_lost(self, exc: BaseException) -> None:
        logger.error("Browser disconnected unexpectedly: %s", exc, extra={"context": "browser"})
        self.shutdown("browser disconnected", exit_code=1)

    def serve_forever(self) -> int:
        """Serve until shutdown() completes; return the process exit status."""
        if self.http is None:
            raise RuntimeError("start() must succeed before serve_forever()")
        with self._lock:
            run = not self._shutting_down
            self._serving = run
        if run:
            self.http.serve_forever(poll_interval=0.2)
        self._stopped.wait()
        return self.exit_code

    def shutdown(self, reason: str = "shutdown", exit_code: int = 0) -> bool:
        """Stop everything once; later calls are ignored. The app keeps running."""
        with self._lock:
            if self._shutting_down:
                return False
            self._shutting_down = True
            serving = self._serving
            if exit_code:
                self.exit_code = exit_code

        logger.info("Shutting down (%s)", reason)
        try:
            if self.watcher is not None:
                self.watcher.stop()
            if self.http is not None:
                if serving:
                    self.http.shutdown()
                self.http.server_close()
            if self.guard is not None:
                self.guard.release()
            if self.connection is not None:
                self.connection.disconnect()
        finally:
            self._stopped.set()
        logger.info("Bridge stopped (exit=%d)", self.exit_code)
        return True

    def install_signal_handlers(self) -> None:
        def _handle(signum: int, _frame: Any) -> None:
            name = signal.Signals(signum).name
            # http.server.shutdown() blocks until the serving loop exits; never call it on that thread.
            threading.Thread(target=self.shutdown, args=(name,), name="bridge-shutdown", daemon=True).start()

        signal.signal(signal.SIGINT, _handle)
        signal.signal(signal.SIGTERM, _handle)


def main() -> int:
    """Main entry point for the bridge."""
    bridge = CoworkBridge()
    bridge.install_error_journal()
    bridge.install_signal_handlers()
    try:
        bridge.start()
    except (StartupError, HttpClientError, OSError) as exc:
        logger.error("Failed to start: %s", exc, extra={"context": "main"})
        bridge.shutdown("startup failed", exit_code=1)
        return 1
    return bridge.serve_forever()


if __name__ == "__main__":
    sys.exit(main())
