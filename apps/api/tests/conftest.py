from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./kanban_test.db")
os.environ.setdefault("AI_PROVIDER", "local")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

from app.config import settings
from app.db import engine
from app.main import app
from app.models import Base
from app.rate_limit import limiter

DEFAULT_PASSWORD = "password123"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  limiter.reset_prefix("auth:")
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  await engine.dispose()


@pytest.fixture(autouse=True)
async def _clean_between_tests() -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. kanban_test)."
    )
  await _reset_db()
  yield
  app.dependency_overrides.clear()


@pytest.fixture
async def client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@pytest.fixture
async def other_client() -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def register(client: AsyncClient, email: str, name: str = "Tester", password: str = DEFAULT_PASSWORD) -> dict:
  res = await client.post("/api/auth/register", json={"email": email, "name": name, "password": password})
  assert res.status_code == 201, res.text
  cookie = res.headers.get("set-cookie")
  assert cookie and "kb_session=" in cookie
  return res.json()


async def login(client: AsyncClient, email: str, password: str = DEFAULT_PASSWORD) -> dict:
  res = await client.post("/api/auth/login", json={"email": email, "password": password})
  assert res.status_code == 200, res.text
  return res.json()


async def columns_by_key(client: AsyncClient) -> dict[str, str]:
  res = await client.get("/api/columns")
  assert res.status_code == 200, res.text
  return {c["key"]: c["id"] for c in res.json()}


async def create_project(client: AsyncClient, name: str = "Apollo", **extra) -> dict:
  res = await client.post("/api/projects", json={"name": name, **extra})
  assert res.status_code == 201, res.text
  return res.json()


async def create_milestone(client: AsyncClient, project_id: str, name: str = "M1", column_key: str = "MILESTONES", **extra) -> dict:
  cols = await columns_by_key(client)
  res = await client.post(
    "/api/milestones",
    json={"projectId": project_id, "name": name, "statusColumnId": cols[column_key], **extra},
  )
  assert res.status_code == 201, res.text
  return res.json()


async def create_task(client: AsyncClient, milestone_id: str, name: str = "T1", column_key: str = "BACKLOG", **extra) -> dict:
  cols = await columns_by_key(client)
  res = await client.post(
    "/api/tasks",
    json={"milestoneId": milestone_id, "name": name, "statusColumnId": cols[column_key], **extra},
  )
  assert res.status_code == 201, res.text
  return res.json()
