from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock

import redis

from sprintr.config import settings
from sprintr.errors import ApiError

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
  reset_at: float
  count: int


class RateLimiter:
  """
  Fixed-window rate limiter.

  Counts live in Redis when REDIS_URL is set so every replica shares them;
  otherwise (and whenever Redis errors) an in-process dict is used.
  """

  def __init__(self, redis_url: str | None = None) -> None:
    self._lock = Lock()
    self._buckets: dict[str, _Bucket] = {}
    self._redis = redis.Redis.from_url(redis_url, decode_responses=True) if redis_url else None

  def _hit_redis(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    rk = f"rl:{key}"
    pipe = self._redis.pipeline()
    pipe.incr(rk, 1)
    pipe.ttl(rk)
    count, ttl = pipe.execute()
    if int(count) == 1:
      self._redis.expire(rk, int(window_seconds))
      ttl = int(window_seconds)
    retry = max(1, int(ttl)) if int(ttl) > 0 else int(window_seconds)
    if int(count) > int(limit):
      return False, retry
    return True, 0

  def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    """Returns (allowed, retry_after_seconds)."""
    if self._redis is not None:
      try:
        return self._hit_redis(key, limit=limit, window_seconds=window_seconds)
      except redis.RedisError:
        logger.warning("rate limiter redis unavailable, using in-memory buckets", exc_info=True)

    now = time.time()
    with self._lock:
      b = self._buckets.get(key)
      if b is None or now >= b.reset_at:
        self._buckets[key] = _Bucket(reset_at=now + window_seconds, count=1)
        return True, 0
      if b.count >= limit:
        return False, max(1, int(b.reset_at - now))
      b.count += 1
      return True, 0

  def reset_prefix(self, prefix: str) -> None:
    with self._lock:
      for k in list(self._buckets.keys()):
        if k.startswith(prefix):
          del self._buckets[k]


limiter = RateLimiter(settings.redis_url)


def rate_limit_or_429(*, key: str, limit: int, window_seconds: int = 60) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise ApiError("Too many requests.", status_code=429, headers={"Retry-After": str(retry_after)})
