"""
HTTP control API: one route per path, JSON in and out, CORS open.

Route name is the request path without the leading slash and without the query
string. Arguments are the query parameters overlaid by the JSON body.
"""

from __future__ import annotations

import json
import logging
import traceback
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from .registry import RouteRegistry, create_default_registry
from .types import BridgeContext, InvalidRequestError

logger = logging.getLogger("cowork.bridge.http")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def route_name(path: str) -> str:
    return urlsplit(path).path.lstrip("/")


def parse_query(path: str) -> dict[str, Any]:
    query = parse_qs(urlsplit(path).query, keep_blank_values=True)
    return {key: values[-1] for key, values in query.items() if values}


def parse_body(raw: bytes) -> dict[str, Any]:
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError as exc:
        raise InvalidRequestError("Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise InvalidRequestError("Invalid JSON body")
    return body


class BridgeRequestHandler(BaseHTTPRequestHandler):
    server: BridgeHTTPServer
    server_version = "CoworkBridge/1.0"

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("http %s", format % args)

    def _send_json(self, status: int, payload: Any) -> None:
        data = json.dumps(payload, indent=2, default=str).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        for key, value in CORS_HEADERS.items():
            self.send_header(key, value)
        self.end_headers()
        self.wfile.write(data)

    def _read_body(self) -> bytes:
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        return self.rfile.read(length) if length > 0 else b""

    def do_OPTIONS(self) -> None:  # noqa: N802
        self.send_response(200)
        self.send_header("Content-Length", "0")
        for key, value in CORS_HEADERS.items():
            self.send_header(key, value)
        self.end_headers()

    def do_GET(self) -> None:  # noqa: N802
        self._handle()

    def do_POST(self) -> None:  # noqa: N802
        self._handle()

    def do_PUT(self) -> None:  # noqa: N802
        self._handle()

    def do_DELETE(self) -> None:  # noqa: N802
        self._handle()

    def _handle(self) -> None:
        name = route_name(self.path)
        registry = self.server.registry
        context = self.server.context
        raw = self._read_body()

        if not registry.has(name):
            self._send_json(404, {"error": "Unknown command", "available": registry.catalog()})
            return

        try:
            args = parse_query(self.path)
            args.update(parse_body(raw))
            logger.info("route=%s args=%s", name, sorted(args))
            result = registry.dispatch(name, context, args)
        except InvalidRequestError as exc:
            self._send_json(400, {"error": str(exc)})
            return
        except Exception as exc:  # noqa: BLE001
            logger.error("%s", exc, extra={"context": f"HTTP /{name}"})
            payload: dict[str, Any] = {"error": str(exc)}
            if context.config.expose_stack:
                payload["stack"] = traceback.format_exc()
            self._send_json(500, payload)
            return

        self._send_json(200, result)


class BridgeHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], context: BridgeContext, registry: RouteRegistry) -> None:
        self.context = context
        self.registry = registry
        super().__init__(address, BridgeRequestHandler)


def create_http_server(
    context: BridgeContext,
    registry: RouteRegistry | None = None,
    host: str | None = None,
    port: int | None = None,
) -> BridgeHTTPServer:
    """Bind the API server; raises OSError (EADDRINUSE) when the port is taken."""
    host = context.config.http_host if host is None else host
    port = context.config.http_port if port is None else port
    return BridgeHTTPServer((host, port), context, registry or create_default_registry())


__all__ = [
    "BridgeHTTPServer",
    "BridgeRequestHandler",
    "create_http_server",
    "parse_body",
    "parse_query",
    "route_name",
]
