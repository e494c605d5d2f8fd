"""HTTP requests to an engine and local port selection."""

from __future__ import annotations

import logging
import socket
import time
import urllib.error
import urllib.request
from collections.abc import Mapping

logger = logging.getLogger(__name__)


class EngineHTTPError(RuntimeError):
    """Raised when the engine answers with an unexpected status code."""

    def __init__(self, message: str, status: int | None = None, body: bytes = b"") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class SchemaNotFoundError(EngineHTTPError):
    """Raised when the engine answers 404; the schema has to be uploaded again."""

    def __init__(self, body: bytes = b"") -> None:
        super().__init__("not found; re-upload schema", 404, body)


def request(method: str, url: str, payload: bytes, headers: Mapping[str, str] | None = None) -> bytes:
    """Send a request to the engine and return the response body."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("prisma engine payload: `%s`", payload.decode("utf-8", errors="replace"))

    req = urllib.request.Request(url, data=payload, method=method, headers=dict(headers or {}))

    started = time.monotonic()
    try:
        with urllib.request.urlopen(req) as response:  # noqa: S310
            status = response.status
            body = response.read()
            response_headers = response.headers
    except urllib.error.HTTPError as exc:
        status = exc.code
        body = exc.read() if exc.fp is not None else b""
        response_headers = exc.headers
    except (urllib.error.URLError, OSError) as exc:
        reason = getattr(exc, "reason", exc)
        raise ConnectionError(f"raw post: {reason}") from exc
    duration = time.monotonic() - started
    logger.debug("[timing] query engine raw request took %.6fs", duration)

    if status == 404:
        logger.debug("status not found with response body %s", body)
        raise SchemaNotFoundError(body)

    if status not in (200, 201):
        text = body.decode("utf-8", errors="replace")
        raise EngineHTTPError(f"http status code {status} with response {text}", status, body)

    if logger.isEnabledFor(logging.DEBUG) and response_headers is not None:
        elapsed_raw = response_headers.get("X-Elapsed")
        if elapsed_raw:
            try:
                elapsed = int(elapsed_raw) / 1_000_000
            except ValueError:
                elapsed = 0.0
            logger.debug("[timing] elapsed: %.6fs", elapsed)
            diff = duration - elapsed
            logger.debug("[timing] just http: %.6fs", diff)
            if duration > 0:
                logger.debug("[timing] http percentage: %.2f%%", diff / duration * 100)

    return body


def get_free_port() -> int:
    """Return a TCP port on localhost that is free at the time of the call."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("localhost", 0))
        return sock.getsockname()[1]