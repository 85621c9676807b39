"""HTTP control API for the bridge.

Keep this package import light: importing `bridge_servers.cowork.server.*` should not
eagerly pull the page tools (tests import the registry on its own).
"""

from __future__ import annotations

from typing import Any

__all__ = ["RouteRegistry", "create_default_registry", "create_http_server"]


def __getattr__(name: str) -> Any:  # pragma: no cover
    if name in {"RouteRegistry", "create_default_registry"}:
        from .registry import RouteRegistry, create_default_registry

        return {"RouteRegistry": RouteRegistry, "create_default_registry": create_default_registry}[name]
    if name == "create_http_server":
        from .http_api import create_http_server

        return create_http_server
    raise AttributeError(name)
