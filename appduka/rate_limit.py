"""Redis-backed sliding-window rate limiter with in-memory fallback."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections import OrderedDict, deque
from typing import Any

import redis
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

_REDIS_RETRY_SECONDS = 5
_KEY_PREFIX = "appduka:rate_limit"

# Returns {allowed, count}: trims the window, then records the hit if under the limit.
_SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now_ms = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local member = ARGV[4]
local ttl_seconds = tonumber(ARGV[5])

redis.call("ZREMRANGEBYSCORE", key, "-inf", now_ms - window_ms)
local current = redis.call("ZCARD", key)
if current >= limit then
  redis.call("EXPIRE", key, ttl_seconds)
  return {0, current}
end
redis.call("ZADD", key, now_ms, member)
redis.call("EXPIRE", key, ttl_seconds)
return {1, current + 1}
"""


class RateLimiter:
    """Per-client-IP limiter for the unauthenticated and costly endpoints."""

    def __init__(self, max_requests: int, window_seconds: int, name: str = "default", max_clients: int = 10_000):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self.max_clients = max_clients
        self._hits: OrderedDict[str, deque[float]] = OrderedDict()
        self._lock = threading.Lock()
        self._trusted_proxies = {ip.strip() for ip in os.getenv("TRUSTED_PROXY_IPS", "").split(",") if ip.strip()}
        self._redis_url: str | None = None
        self._redis: redis.Redis | None = None
        self._script: Any | None = None
        self._redis_retry_after = 0.0

    def _client_ip(self, request: Request) -> str:
        if request.client is None:
            return "unknown"
        ip = request.client.host
        if ip in self._trusted_proxies:
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                return forwarded.split(",")[0].strip()
        return ip

    def _drop_redis(self) -> None:
        self._redis = None
        self._script = None
        self._redis_retry_after = time.time() + _REDIS_RETRY_SECONDS

    def _get_redis(self) -> redis.Redis | None:
        url = os.getenv("REDIS_URL")
        if not url:
            self._redis = None
            self._script = None
            return None
        if self._redis_url != url:
            self._redis = None
            self._script = None
            self._redis_url = url
        if self._redis is not None:
            return self._redis
        if time.time() < self._redis_retry_after:
            return None
        try:
            client = redis.Redis.from_url(url)
            client.ping()
        except redis.RedisError:
            logger.warning("Rate limiter %s: Redis unavailable, using in-memory window", self.name)
            self._drop_redis()
            return None
        self._redis = client
        self._script = client.register_script(_SLIDING_WINDOW_SCRIPT)
        return client

    def _check_redis(self, ip: str) -> bool | None:
        if self._get_redis() is None or self._script is None:
            return None
        now_ms = int(time.time() * 1000)
        try:
            result = self._script(
                keys=[f"{_KEY_PREFIX}:{self.name}:{ip}"],
                args=[now_ms, self.window_seconds * 1000, self.max_requests, f"{now_ms}-{time.time_ns()}", self.window_seconds],
            )
        except redis.RedisError:
            self._drop_redis()
            return None
        return int(result[0]) == 1

    def _check_memory(self, ip: str) -> bool:
        now = time.time()
        cutoff = now - self.window_seconds
        with self._lock:
            hits = self._hits.get(ip)
            if hits is None:
                hits = deque()
                self._hits[ip] = hits
            else:
                self._hits.move_to_end(ip)
            while hits and hits[0] <= cutoff:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return False
            hits.append(now)
            while len(self._hits) > self.max_clients:
                self._hits.popitem(last=False)
        return True

    def check(self, request: Request) -> None:
        """Raise 429 once the client exceeds its window."""
        ip = self._client_ip(request)
        allowed = self._check_redis(ip)
        if allowed is None:
            allowed = self._check_memory(ip)
        if not allowed:
            raise HTTPException(
                status_code=429,
                detail={"code": "rate_limited", "message": "Too many requests. Please try again later."},
                headers={"Retry-After": str(self.window_seconds)},
            )

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
        client = self._get_redis()
        if client is None:
            return
        try:
            keys = list(client.scan_iter(match=f"{_KEY_PREFIX}:{self.name}:*"))
            if keys:
                client.delete(*keys)
        except redis.RedisError:
            self._drop_redis()


sign_in_limiter = RateLimiter(max_requests=10, window_seconds=60, name="sign-in")
sign_up_limiter = RateLimiter(max_requests=5, window_seconds=300, name="sign-up")
password_reset_limiter = RateLimiter(max_requests=5, window_seconds=300, name="password-reset")
ai_limiter = RateLimiter(max_requests=20, window_seconds=60, name="ai")

ALL_LIMITERS = (sign_in_limiter, sign_up_limiter, password_reset_limiter, ai_limiter)
