import threading
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
}


class FixedWindowLimiter:
    """
    In-memory request counter per client key.
    Each key gets `max_requests` per `window` seconds; the window restarts on first hit after expiry.
    """

    MAX_KEYS = 10000

    def __init__(self, max_requests: int, window: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._hits: Dict[str, Tuple[float, int]] = {}

    def hit(self, key: str) -> Optional[float]:
        """Record a request; returns seconds until reset when the key is over its limit, else None."""
        now = self._clock()
        with self._lock:
            if len(self._hits) > self.MAX_KEYS:
                self._hits = {k: v for k, v in self._hits.items() if now - v[0] < self.window}
            start, count = self._hits.get(key, (now, 0))
            if now - start >= self.window:
                start, count = now, 0
            count += 1
            self._hits[key] = (start, count)
            if count > self.max_requests:
                return max(0.0, self.window - (now - start))
        return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, limiter: FixedWindowLimiter, prefix: str = "/api/") -> None:
        super().__init__(app)
        self.limiter = limiter
        self.prefix = prefix

    async def dispatch(self, request: Request, call_next):
        if self.limiter.max_requests > 0 and request.url.path.startswith(self.prefix):
            key = request.client.host if request.client else "unknown"
            retry_after = self.limiter.hit(key)
            if retry_after is not None:
                return JSONResponse(
                    {"error": "Too many requests, please try again later."},
                    status_code=429,
                    headers={"Retry-After": str(int(retry_after) + 1)},
                )
        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
