from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock

import redis
from fastapi import HTTPException, status

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class _Window:
  reset_at: float
  count: int


class RateLimiter:
  """
  Fixed-window limiter keyed by arbitrary strings.

  Uses Redis when `REDIS_URL` is configured so limits hold across replicas;
  otherwise (or when Redis errors) counts in process memory.
  """

  def __init__(self, redis_url: str | None = None) -> None:
    self._lock = Lock()
    self._windows: dict[str, _Window] = {}
    self._redis: redis.Redis | None = None
    if redis_url:
      self._redis = redis.Redis.from_url(redis_url, decode_responses=True)

  def hit(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    """Returns (allowed, retry_after_seconds)."""
    if self._redis is not None:
      try:
        return self._hit_redis(key, limit=limit, window_seconds=window_seconds)
      except redis.RedisError:
        logger.warning("rate limiter falling back to memory for %s", key, exc_info=True)
    return self._hit_memory(key, limit=limit, window_seconds=window_seconds)

  def _hit_redis(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    rk = f"kb:rl:{key}"
    pipe = self._redis.pipeline()
    pipe.incr(rk, 1)
    pipe.ttl(rk)
    count, ttl = pipe.execute()
    if int(count) == 1:
      self._redis.expire(rk, int(window_seconds))
      ttl = int(window_seconds)
    if int(count) > int(limit):
      return False, max(1, int(ttl)) if int(ttl) > 0 else int(window_seconds)
    return True, 0

  def _hit_memory(self, key: str, *, limit: int, window_seconds: int) -> tuple[bool, int]:
    now = time.time()
    with self._lock:
      w = self._windows.get(key)
      if w is None or now >= w.reset_at:
        self._windows[key] = _Window(reset_at=now + window_seconds, count=1)
        return True, 0
      if w.count >= limit:
        return False, max(1, int(w.reset_at - now))
      w.count += 1
      return True, 0

  def enforce(self, key: str, *, limit: int, window_seconds: int = 60) -> None:
    allowed, retry_after = self.hit(key, limit=limit, window_seconds=window_seconds)
    if allowed:
      return
    raise HTTPException(
      status_code=status.HTTP_429_TOO_MANY_REQUESTS,
      detail={"code": "rate_limited", "message": "Too many requests", "retryAfterSeconds": retry_after},
      headers={"Retry-After": str(retry_after)},
    )

  def reset_prefix(self, prefix: str) -> None:
    with self._lock:
      for k in list(self._windows.keys()):
        if k.startswith(prefix):
          del self._windows[k]


limiter = RateLimiter(settings.redis_url)
