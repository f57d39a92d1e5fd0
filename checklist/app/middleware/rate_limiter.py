"""
middleware/rate_limiter.py: per-IP request throttling.

In-memory fixed window: each client IP gets RATELIMIT_MAX_REQUESTS requests
per RATELIMIT_WINDOW_SECONDS. Counters live in the process, so limits are
per worker. Disabled when RATELIMIT_ENABLED is false (testing).
"""

from __future__ import annotations

import logging
import threading
import time

from flask import Flask, current_app, request

from checklist.app.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        # {ip: (window_start, count)}
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._last_sweep: float | None = None

    def hit(self, key: str, now: float | None = None) -> bool:
        """Counts one request for `key`. Returns False once the window is full."""
        now = time.monotonic() if now is None else now
        with self._lock:
            start, count = self._windows.get(key, (now, 0))
            if now - start >= self.window_seconds:
                start, count = now, 0
            count += 1
            self._windows[key] = (start, count)
            if self._last_sweep is None or now - self._last_sweep >= self.window_seconds:
                self._evict_stale(now)
                self._last_sweep = now
            return count <= self.max_requests

    def _evict_stale(self, now: float) -> None:
        stale = [
            ip for ip, (start, _) in self._windows.items()
            if now - start >= self.window_seconds
        ]
        for ip in stale:
            del self._windows[ip]


def init_rate_limiter(app: Flask) -> None:
    """Registers the limiter as a before_request hook when enabled."""
    if not app.config.get("RATELIMIT_ENABLED", True):
        return

    app.extensions["rate_limiter"] = FixedWindowRateLimiter(
        max_requests=app.config["RATELIMIT_MAX_REQUESTS"],
        window_seconds=app.config["RATELIMIT_WINDOW_SECONDS"],
    )

    @app.before_request
    def enforce_rate_limit():
        limiter: FixedWindowRateLimiter = current_app.extensions["rate_limiter"]
        client_ip = request.remote_addr or "unknown"
        if not limiter.hit(client_ip):
            logger.warning("Rate limit reached for IP: %s", client_ip)
            raise AppError(
                ErrorCode.RATE_LIMITED,
                "Too many requests from this IP, please try again later.",
                429,
            )
