from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass
from urllib.error import URLError
from urllib.request import Request, urlopen

from .config import BridgeConfig

logger = logging.getLogger("cowork.bridge.launcher")


class StartupError(RuntimeError):
    pass


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str
    pid: int | None = None


class AppLauncher:
    """Makes sure the desktop app is listening on its remote-debugging port."""

    def __init__(self, config: BridgeConfig | None = None, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self.config = config or BridgeConfig.from_env()
        self.process: subprocess.Popen | None = None
        self._sleep = sleep

    def cdp_ready(self, timeout: float = 2.0) -> bool:
        """Return True if the CDP HTTP endpoint responds."""
        endpoint = f"{self.config.cdp_endpoint}/json/version"
        try:
            req = Request(endpoint, headers={"User-Agent": "cowork-bridge"})
            with urlopen(req, timeout=timeout) as resp:
                return resp.status == 200
        except (OSError, TimeoutError, URLError):
            return False

    def build_launch_command(self) -> list[str]:
        return [self.config.app_path]

    def spawn(self) -> subprocess.Popen:
        """Start the app detached from this process; it outlives the bridge."""
        cmd = self.build_launch_command()
        self.process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        return self.process

    def ensure_running(self, timeout: int | None = None, *, poll_interval: float = 1.0) -> LaunchResult:
        """Probe the endpoint, spawning the app and waiting for it when needed.

        Raises StartupError when the app cannot be started or the endpoint stays
        unreachable for `timeout` polls.
        """
        if self.cdp_ready():
            logger.info("CDP already available")
            return LaunchResult([], False, "CDP already available")

        logger.info("CDP not available. Starting %s ...", self.config.app_path)
        cmd = self.build_launch_command()
        try:
            proc = self.spawn()
        except OSError as exc:
            raise StartupError(f"Failed to start {self.config.app_path}: {exc}") from exc
        logger.info("Spawned app (PID: %s)", proc.pid)

        attempts = self.config.cdp_startup_timeout if timeout is None else int(timeout)
        for attempt in range(1, attempts + 1):
            self._sleep(poll_interval)
            if self.cdp_ready():
                logger.info("CDP ready after %d poll(s)", attempt)
                return LaunchResult(cmd, True, "App launched", pid=proc.pid)
            logger.debug("waiting_for_cdp attempt=%d/%d", attempt, attempts)

        raise StartupError(f"CDP did not start within {attempts} seconds")
