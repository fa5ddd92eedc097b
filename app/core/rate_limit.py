"""In-memory fixed-window rate limiting for the API."""

import time
from collections.abc import Callable
from typing import Dict, Tuple

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.errors import AppError, ErrorCode, log_error
from app.core.logger import logger


class FixedWindowCounter:
    def __init__(self, max_requests: int, window_seconds: int, clock: Callable[[], float] = time.time):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._counts: Dict[str, Tuple[int, int]] = {}

    def hit(self, key: str) -> Tuple[bool, int, int]:
        """Counts one request; returns (allowed, remaining, seconds until reset)."""
        now = self._clock()
        window = int(now // self.window_seconds)
        current_window, count = self._counts.get(key, (window, 0))
        if current_window != window:
            count = 0
        count += 1
        self._counts[key] = (window, count)

        # Drop keys from old windows so the table stays small
        if len(self._counts) > 10000:
            self._counts = {k: v for k, v in self._counts.items() if v[0] == window}

        reset_in = int((window + 1) * self.window_seconds - now) + 1
        return count <= self.max_requests, max(0, self.max_requests - count), reset_in


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        # Take first IP in chain (original client)
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Limits /api requests per client IP, with a stricter budget for /api/auth.
    Returns 429 with RATE_LIMIT_ERROR when a window is exhausted.
    """

    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 900,
        auth_max_requests: int = 5,
        auth_window_seconds: int = 3600,
    ):
        super().__init__(app)
        self.general = FixedWindowCounter(max_requests, window_seconds)
        self.auth = FixedWindowCounter(auth_max_requests, auth_window_seconds)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not path.startswith("/api"):
            return await call_next(request)

        ip = client_ip(request)

        if path.startswith("/api/auth"):
            allowed, _, reset_in = self.auth.hit(ip)
            if not allowed:
                logger.warning(f"Auth rate limit exceeded for IP {ip}")
                return self._limited("Too many login attempts, please try again later", reset_in)

        allowed, remaining, reset_in = self.general.hit(ip)
        if not allowed:
            logger.warning(f"Rate limit exceeded for IP {ip}")
            return self._limited("Too many requests, please try again later", reset_in)

        response: Response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _limited(self, message: str, retry_after: int) -> JSONResponse:
        error = AppError(message, ErrorCode.RATE_LIMIT_ERROR, 429).tag("rate-limit")
        log_error(error)
        return JSONResponse(
            status_code=error.status_code,
            content=error.to_dict(),
            headers={"X-RateLimit-Remaining": "0", "Retry-After": str(retry_after)},
        )
