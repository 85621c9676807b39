"""
Route registry with dispatch table for the HTTP API.
"""

from __future__ import annotations

import logging
from typing import Any

from .types import BridgeContext, HandlerFunc

logger = logging.getLogger("cowork.bridge.registry")

# Catalog order for the 404 listing.
ROUTE_GROUPS = ("query", "actions", "bidirectional", "health")


class RouteRegistry:
    """Maps route names (path without the leading slash) to handlers."""

    def __init__(self) -> None:
        # name -> (handler, group)
        self._handlers: dict[str, tuple[HandlerFunc, str]] = {}

    def register(self, name: str, handler: HandlerFunc, group: str) -> None:
        if group not in ROUTE_GROUPS:
            raise ValueError(f"Unknown route group: {group}")
        self._handlers[name] = (handler, group)

    def register_many(self, handlers: dict[str, tuple[HandlerFunc, str]]) -> None:
        for name, (handler, group) in handlers.items():
            self.register(name, handler, group)

    def has(self, name: str) -> bool:
        return name in self._handlers

    def dispatch(self, name: str, context: BridgeContext, args: dict[str, Any]) -> Any:
        """Run the handler for `name`; raises KeyError for unknown routes."""
        entry = self._handlers.get(name)
        if entry is None:
            raise KeyError(f"Unknown command: {name}")
        handler, _group = entry
        return handler(context, args)

    def catalog(self) -> dict[str, list[str]]:
        out: dict[str, list[str]] = {group: [] for group in ROUTE_GROUPS}
        for name, (_handler, group) in self._handlers.items():
            out[group].append(name)
        return out

    def __len__(self) -> int:
        return len(self._handlers)


def create_default_registry() -> RouteRegistry:
    from . import handlers

    registry = RouteRegistry()
    registry.register_many(handlers.ROUTES)
    logger.debug("routes=%d", len(registry))
    return registry
