"""Redis-backed sliding window rate limiter."""
import hashlib
import logging
import time
from typing import Optional, Tuple

import redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config import RATE_LIMIT_PER_MINUTE_IP, RATE_LIMIT_PER_MINUTE_USER
from monitoring import rate_limit_exceeded_counter

logger = logging.getLogger(__name__)

EXEMPT_PATHS = {"/health"}


def user_key_from_header(authorization: Optional[str]) -> Optional[str]:
    """Stable, non-reversible key for the bearer token of a request."""
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        return None
    return hashlib.sha256(token.encode()).hexdigest()[:16]


class RedisRateLimiter(BaseHTTPMiddleware):
    """
    Dual-tier sliding window rate limiting shared across instances.

    - Per IP: higher limit
    - Per bearer token: lower limit

    Redis errors fail open.
    """

    def __init__(
        self,
        app,
        redis_client: redis.Redis,
        requests_per_minute_ip: int = RATE_LIMIT_PER_MINUTE_IP,
        requests_per_minute_user: int = RATE_LIMIT_PER_MINUTE_USER,
        window_seconds: int = 60
    ):
        """
        Initialize Redis-backed rate limiter.

        Args:
            app: FastAPI application
            redis_client: Redis connection
            requests_per_minute_ip: Max requests per IP per window
            requests_per_minute_user: Max requests per bearer token per window
            window_seconds: Sliding window size in seconds
        """
        super().__init__(app)
        self.redis = redis_client
        self.requests_per_minute_ip = requests_per_minute_ip
        self.requests_per_minute_user = requests_per_minute_user
        self.window_seconds = window_seconds

    def _check_rate_limit(self, key: str, limit: int, window: int) -> Tuple[bool, int]:
        """
        Check a limit with a Redis sorted set of request timestamps.

        Returns:
            Tuple of (is_allowed, current_count)
        """
        try:
            current_time = time.time()

            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(key, 0, current_time - window)
            pipe.zcard(key)
            pipe.zadd(key, {str(current_time): current_time})
            pipe.expire(key, window + 1)
            results = pipe.execute()

            # Count before the current request was added
            count = results[1]
            return count < limit, count + 1

        except redis.RedisError as e:
            logger.error("Redis rate limit error", extra={"error": str(e)})
            return True, 0

    def _too_many_requests(self, scope: str, limit: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={
                "error": "Too Many Requests",
                "message": f"Rate limit exceeded for {scope}. Maximum {limit} requests per minute."
            },
            headers={"Retry-After": str(self.window_seconds)}
        )

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        if "x-forwarded-for" in request.headers:
            client_ip = request.headers["x-forwarded-for"].split(",")[0].strip()

        ip_allowed, ip_count = self._check_rate_limit(
            f"rate:ip:{client_ip}",
            self.requests_per_minute_ip,
            self.window_seconds
        )
        if not ip_allowed:
            rate_limit_exceeded_counter.add(1, {"limit_type": "ip"})
            logger.warning("Rate limit exceeded for IP", extra={
                "client_ip": client_ip,
                "count": ip_count,
                "limit": self.requests_per_minute_ip
            })
            return self._too_many_requests("IP", self.requests_per_minute_ip)

        user_key = user_key_from_header(request.headers.get("authorization"))
        if user_key:
            user_allowed, user_count = self._check_rate_limit(
                f"rate:user:{user_key}",
                self.requests_per_minute_user,
                self.window_seconds
            )
            if not user_allowed:
                rate_limit_exceeded_counter.add(1, {"limit_type": "user"})
                logger.warning("Rate limit exceeded for user", extra={
                    "user_key": user_key,
                    "count": user_count,
                    "limit": self.requests_per_minute_user
                })
                return self._too_many_requests("user", self.requests_per_minute_user)

        return await call_next(request)
