from __future__ import annotations

import pytest
from httpx import AsyncClient

from app.config import settings
from app.rate_limit import RateLimiter


@pytest.mark.anyio
async def test_login_rate_limited(client: AsyncClient) -> None:
  orig_ip = settings.rate_limit_login_ip_per_minute
  orig_email = settings.rate_limit_login_email_per_minute
  settings.rate_limit_login_ip_per_minute = 3
  settings.rate_limit_login_email_per_minute = 3
  try:
    for _ in range(3):
      r = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "bad"})
      assert r.status_code == 401, r.text
    r = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "bad"})
    assert r.status_code == 429, r.text
    assert r.headers.get("retry-after")
    assert r.json()["detail"]["code"] == "rate_limited"
  finally:
    settings.rate_limit_login_ip_per_minute = orig_ip
    settings.rate_limit_login_email_per_minute = orig_email


@pytest.mark.anyio
async def test_register_rate_limited_per_ip(client: AsyncClient) -> None:
  orig = settings.rate_limit_register_ip_per_minute
  settings.rate_limit_register_ip_per_minute = 2
  try:
    for i in range(2):
      r = await client.post("/api/auth/register", json={"email": f"u{i}@example.com", "name": "U", "password": "password123"})
      assert r.status_code == 201, r.text
    r = await client.post("/api/auth/register", json={"email": "u9@example.com", "name": "U", "password": "password123"})
    assert r.status_code == 429, r.text
  finally:
    settings.rate_limit_register_ip_per_minute = orig


@pytest.mark.anyio
async def test_memory_window_resets_by_prefix() -> None:
  rl = RateLimiter()
  assert rl.hit("auth:x", limit=1, window_seconds=60) == (True, 0)
  allowed, retry = rl.hit("auth:x", limit=1, window_seconds=60)
  assert allowed is False and retry >= 1
  rl.reset_prefix("auth:")
  assert rl.hit("auth:x", limit=1, window_seconds=60) == (True, 0)
