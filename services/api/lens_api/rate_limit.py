# services/api/lens_api/rate_limit.py

import logging
import time
from typing import Optional

from fastapi import Request
from redis import Redis
from redis.exceptions import RedisError

from .config import Settings
from .errors import RateLimited

LOG = logging.getLogger("lens.ratelimit")

_LUA_INCR_EXPIRE = """
local current = redis.call("INCR", KEYS[1])
if current == 1 then
  redis.call("EXPIRE", KEYS[1], tonumber(ARGV[1]))
end
return current
"""

class RateLimiter:
    """
    Fixed-window per-IP limiter for the public metadata routes. The token and
    view endpoints are never limited here; tokens already gate them.
    Disabled when REDIS_URL is unset.
    """

    def __init__(self, settings: Settings, redis: Optional[Redis] = None):
        self.limit = int(settings.RATE_LIMIT_PER_WINDOW)
        self.window_sec = int(settings.RATE_LIMIT_WINDOW_SEC)
        self.fail_open = bool(settings.RATE_LIMIT_FAIL_OPEN)
        self.trust_proxy = bool(settings.TRUST_PROXY_HEADERS)
        if redis is None and settings.REDIS_URL:
            redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        self._redis = redis

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    def allow(self, client_key: str) -> bool:
        if self._redis is None:
            return True
        bucket = int(time.time() // self.window_sec)
        key = f"rl:{client_key}:{bucket}"
        try:
            count = int(self._redis.eval(_LUA_INCR_EXPIRE, 1, key, self.window_sec * 2))
            return count <= self.limit
        except RedisError as e:
            LOG.warning("rate limiter unavailable: %s", e)
            return self.fail_open


def client_ip(request: Request, trust_proxy: bool = False) -> str:
    if trust_proxy:
        fwd = request.headers.get("x-forwarded-for")
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"

def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency: 429 once the caller's IP exhausts its window."""
    limiter: RateLimiter = request.app.state.rate_limiter
    if not limiter.allow(client_ip(request, limiter.trust_proxy)):
        raise RateLimited("rate_limited")
