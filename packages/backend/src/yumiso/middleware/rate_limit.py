"""Rate limiting middleware — Redis-based fixed window per IP.

Learn: one counter per IP per minute ("yumiso:rl:{ip}:{minute}").
Long-lived live streams and the cron trigger are not counted: a stream
is one request for its whole life, and the scheduler calls from a fixed
address every minute.

Gracefully skips rate limiting if Redis is unavailable (e.g., in tests).
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

EXEMPT_SUFFIXES = ("/stream",)
EXEMPT_PREFIXES = ("/api/v1/cron/", "/api/v1/health")


def is_exempt(path: str) -> bool:
    return path.endswith(EXEMPT_SUFFIXES) or path.startswith(EXEMPT_PREFIXES)


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, rpm: int = 300):
        super().__init__(app)
        self.rpm = rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        if is_exempt(request.url.path):
            return await call_next(request)

        try:
            from yumiso.redis_client import get_redis

            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        key = f"yumiso:rl:{client_ip}:{int(time.time() // 60)}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception:
            # Redis error — don't block the request
            return await call_next(request)

        if count > self.rpm:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.rpm - count))
        return response
