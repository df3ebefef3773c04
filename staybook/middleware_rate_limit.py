import logging
import time
from collections import defaultdict, deque
from typing import Deque, Dict, Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

import redis


logger = logging.getLogger("staybook.ratelimit")


def _client_key(request: Request) -> str:
    auth = request.headers.get("authorization")
    if auth:
        return f"token:{auth[-24:]}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def _limited(retry_after: int) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests", "code": "rate_limited", "retry_after": retry_after},
        headers={"Retry-After": str(retry_after)},
    )


class SlidingWindowLimiter(BaseHTTPMiddleware):
    """Per-process limiter; fine for dev and single-worker deployments."""

    def __init__(self, app, limit_per_minute: int = 60, auth_boost: int = 2, exclude_paths: Iterable[str] = ()):
        super().__init__(app)
        self.window_seconds = 60
        self.limit_per_minute = limit_per_minute
        self.auth_boost = auth_boost
        self.exclude_paths = set(exclude_paths)
        self.store: Dict[str, Deque[float]] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exclude_paths:
            return await call_next(request)
        limit = self.limit_per_minute
        if request.headers.get("authorization"):
            limit *= self.auth_boost
        now = time.time()
        dq = self.store[_client_key(request)]
        while dq and now - dq[0] > self.window_seconds:
            dq.popleft()
        if len(dq) >= limit:
            return _limited(max(1, int(self.window_seconds - (now - dq[0]))))
        dq.append(now)
        return await call_next(request)


class RedisRateLimiter(BaseHTTPMiddleware):
    """Fixed one-minute windows in Redis, shared by all workers. Fails open."""

    def __init__(self, app, redis_url: str, limit_per_minute: int = 60, auth_boost: int = 2, prefix: str = "ratelimit", exclude_paths: Iterable[str] = ()):
        super().__init__(app)
        self.redis = redis.from_url(redis_url, decode_responses=True)
        self.limit_per_minute = limit_per_minute
        self.auth_boost = auth_boost
        self.prefix = prefix
        self.exclude_paths = set(exclude_paths)

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exclude_paths:
            return await call_next(request)
        limit = self.limit_per_minute
        if request.headers.get("authorization"):
            limit *= self.auth_boost
        now = int(time.time())
        key = f"{self.prefix}:{_client_key(request)}:{now // 60}"
        try:
            count = self.redis.incr(key)
            if count == 1:
                self.redis.expire(key, 70)
        except redis.RedisError as exc:
            logger.warning("rate limiter unavailable, allowing request: %s", exc)
            return await call_next(request)
        if count > limit:
            return _limited(60 - (now % 60))
        return await call_next(request)
