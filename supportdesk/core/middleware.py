import logging
import time
import uuid
from threading import Lock

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from supportdesk.core.config import get_settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and logs one line per request."""

    async def dispatch(self, request: Request, call_next):
        request.state.request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        response.headers["x-request-id"] = request.state.request_id
        response.headers["x-process-time-ms"] = f"{elapsed_ms:.2f}"
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"request_id": request.state.request_id, "duration_ms": elapsed_ms},
        )
        return response


class MemoryWindowCounter:
    """Per-process request counts, one bucket per (key, minute)."""

    def __init__(self) -> None:
        self._counts: dict[tuple[str, int], int] = {}
        self._lock = Lock()

    def hit(self, key: str, window: int) -> int:
        with self._lock:
            for stale in [bucket for bucket in self._counts if bucket[1] < window]:
                del self._counts[stale]
            total = self._counts.get((key, window), 0) + 1
            self._counts[(key, window)] = total
        return total


class RedisWindowCounter:
    """Shares request counts across instances through INCR with a TTL."""

    def __init__(self, client) -> None:
        self.client = client

    def hit(self, key: str, window: int) -> int:
        redis_key = f"supportdesk:ratelimit:{key}:{window}"
        total = self.client.incr(redis_key)
        if total == 1:
            self.client.expire(redis_key, WINDOW_SECONDS)
        return int(total)


def _redis_counter(redis_url: str) -> RedisWindowCounter | None:
    try:
        from redis import Redis

        return RedisWindowCounter(Redis.from_url(redis_url, decode_responses=True))
    except Exception as exc:  # noqa: BLE001
        logger.warning("Redis unavailable, rate limiting in memory: %s", exc)
        return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed one-minute window per client address and path.

    Counts live in Redis when REDIS_URL is set and reachable, in memory otherwise.
    """

    def __init__(self, app):
        super().__init__(app)
        self.settings = get_settings()
        self.memory = MemoryWindowCounter()
        self.shared = _redis_counter(self.settings.redis_url) if self.settings.redis_url else None

    def _count(self, key: str, window: int) -> int:
        if self.shared is not None:
            try:
                return self.shared.hit(key, window)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Redis rate limit check failed, counting in memory: %s", exc)
        return self.memory.hit(key, window)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not self.settings.rate_limit_enabled or path in self.settings.rate_limit_exempt_paths_list:
            return await call_next(request)

        limit = max(1, self.settings.rate_limit_requests_per_minute)
        now = time.time()
        window = int(now // WINDOW_SECONDS)
        client = request.client.host if request.client else "unknown"

        if self._count(f"{client}:{path}", window) > limit:
            retry_after = WINDOW_SECONDS - int(now % WINDOW_SECONDS)
            logger.info("Rate limit hit", extra={"client": client, "path": path, "limit_per_minute": limit})
            return JSONResponse(
                status_code=429,
                content={"error": "Rate limit exceeded. Please retry shortly.", "limit_per_minute": limit},
                headers={"retry-after": str(retry_after)},
            )
        return await call_next(request)
