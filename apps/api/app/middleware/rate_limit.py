from __future__ import annotations

import re
import time

import structlog
from fastapi import Request
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.api.responses import error_response
from app.core import config
from app.redis_client import get_redis
from app.services.error_codes import ErrorCode

logger = structlog.get_logger(__name__)

_REGISTRATION_PATH = re.compile(r"/events/[^/]+/register/?$")

_MESSAGES = {
    "registration": "Too many registration attempts. Please try again later.",
    "api": "Too many requests. Please try again later.",
}


def _parse_rate(rate: str) -> tuple[int, int]:
    """
    Parse formats like:
      - "60/minute"
      - "120/hour"
      - "10/second"
    Returns: (limit, window_seconds)
    """
    raw = rate.strip().lower()
    if "/" not in raw:
        raise ValueError(f"Invalid rate format: {rate}")

    limit_str, window_str = raw.split("/", 1)
    limit = int(limit_str)

    window_str = window_str.strip()
    if window_str in {"sec", "second", "seconds"}:
        return limit, 1
    if window_str in {"min", "minute", "minutes"}:
        return limit, 60
    if window_str in {"hour", "hours"}:
        return limit, 3600
    if window_str in {"day", "days"}:
        return limit, 86400

    raise ValueError(f"Invalid rate window: {window_str}")


def route_group(method: str, path: str) -> str:
    if method == "POST" and _REGISTRATION_PATH.search(path):
        return "registration"
    return "api"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window limits per client IP, one counter per rule in the group."""

    async def dispatch(self, request: Request, call_next) -> Response:
        settings = config.settings
        if not settings.rate_limit_enabled:
            return await call_next(request)

        # Don’t rate-limit CORS preflight
        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        if path in set(settings.rate_limit_exempt_paths):
            return await call_next(request)

        group = route_group(request.method, path)
        rules = (
            settings.rate_limit_registration
            if group == "registration"
            else settings.rate_limit_default
        )
        client_ip = request.client.host if request.client else "unknown"

        try:
            limits = [_parse_rate(rule) for rule in rules]
        except ValueError:
            # Misconfigured rate => fail open
            logger.warning("rate_limit_misconfigured", group=group, rules=rules)
            return await call_next(request)

        now = int(time.time())
        tightest: tuple[int, int, int] | None = None

        try:
            r = get_redis()
            for limit, window_seconds in limits:
                bucket = now // window_seconds
                key = f"rl:{group}:{client_ip}:{window_seconds}:{bucket}"
                count = int(r.incr(key))
                if count == 1:
                    r.expire(key, window_seconds)

                reset = (bucket + 1) * window_seconds
                remaining = max(0, limit - count)

                if count > limit:
                    retry_after = max(1, reset - now)
                    logger.info(
                        "rate_limited",
                        code=ErrorCode.RATE_LIMITED.value,
                        group=group,
                        client_ip=client_ip,
                        limit=limit,
                    )
                    return error_response(
                        _MESSAGES[group],
                        429,
                        headers={
                            "X-RateLimit-Limit": str(limit),
                            "X-RateLimit-Remaining": "0",
                            "X-RateLimit-Reset": str(reset),
                            "Retry-After": str(retry_after),
                        },
                        retry_after=retry_after,
                    )

                if tightest is None or remaining < tightest[1]:
                    tightest = (limit, remaining, reset)
        except RedisError:
            # Fail open if Redis is unavailable (don’t take down the API)
            logger.warning("rate_limit_unavailable", group=group)
            return await call_next(request)

        response = await call_next(request)
        if tightest is not None:
            limit, remaining, reset = tightest
            response.headers.setdefault("X-RateLimit-Limit", str(limit))
            response.headers.setdefault("X-RateLimit-Remaining", str(remaining))
            response.headers.setdefault("X-RateLimit-Reset", str(reset))
        return response
