from __future__ import annotations

import json
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen


class HttpClientError(Exception):
    pass


def _build_request(url: str) -> Request:
    return Request(url, headers={"User-Agent": "cowork-bridge/1.0"})


def http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch a DevTools HTTP endpoint and decode its JSON payload."""
    try:
        with urlopen(_build_request(url), timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except (TimeoutError, URLError, OSError) as exc:
        raise HttpClientError(str(exc)) from exc
    except ValueError as exc:
        raise HttpClientError(f"Invalid JSON from {url}: {exc}") from exc
