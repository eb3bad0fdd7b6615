# app/rate_limiter.py

"""
In-memory fixed-window rate limiting for the auth endpoints.

Counters live in a process-local dict keyed by ``scope:client_ip`` and are
pruned lazily once their window has passed.
"""

import logging
import time
from threading import Lock

from fastapi import HTTPException, Request, status

from app.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, limit: int, window_seconds: int, scope: str = "default"):
        self.limit = limit
        self.window_seconds = window_seconds
        self.scope = scope
        # {key: {"count": int, "reset_time": float}}
        self._windows: dict[str, dict] = {}
        self._lock = Lock()

    def hit(self, key: str, now=None) -> bool:
        """Count one request for ``key``; False once the window is full."""
        now = time.monotonic() if now is None else now
        with self._lock:
            self._prune(now)
            entry = self._windows.get(key)
            if entry is None or entry["reset_time"] <= now:
                entry = {"count": 0, "reset_time": now + self.window_seconds}
                self._windows[key] = entry
            if entry["count"] >= self.limit:
                return False
            entry["count"] += 1
            return True

    def retry_after(self, key: str, now=None) -> int:
        now = time.monotonic() if now is None else now
        with self._lock:
            entry = self._windows.get(key)
            if entry is None:
                return 0
            return max(0, int(entry["reset_time"] - now) + 1)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _prune(self, now: float) -> None:
        expired = [k for k, v in self._windows.items() if v["reset_time"] <= now]
        for k in expired:
            del self._windows[k]

    async def __call__(self, request: Request) -> None:
        client_ip = request.client.host if request.client else "unknown"
        key = f"{self.scope}:{client_ip}"
        if not self.hit(key):
            logger.warning("Rate limit exceeded for %s on %s", client_ip, request.url.path)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, try again later",
                headers={"Retry-After": str(self.retry_after(key))},
            )


auth_rate_limiter = RateLimiter(
    limit=settings.auth.rate_limit,
    window_seconds=settings.auth.rate_window_seconds,
    scope="auth",
)
