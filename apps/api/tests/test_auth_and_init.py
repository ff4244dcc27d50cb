from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import update

from app.db import SessionLocal
from app.models import Session as DbSession
from app.routers import auth as auth_router
from app.workspace_defaults import WELCOME_PROJECT_NAME
from conftest import login, register


@pytest.mark.anyio
async def test_health_and_security_headers(client: AsyncClient) -> None:
  r = await client.get("/health")
  assert r.status_code == 200 and r.json() == {"ok": True}
  assert r.headers.get("x-content-type-options") == "nosniff"
  assert r.headers.get("x-frame-options") == "DENY"
  v = await client.get("/version")
  assert "version" in v.json()


@pytest.mark.anyio
async def test_register_login_me_logout(client: AsyncClient) -> None:
  user = await register(client, "Ada@Example.com", name="Ada")
  assert user["email"] == "ada@example.com"

  me = await client.get("/api/auth/me")
  assert me.status_code == 200, me.text
  assert me.json()["name"] == "Ada"

  dup = await client.post("/api/auth/register", json={"email": "ada@example.com", "name": "Ada", "password": "password123"})
  assert dup.status_code == 409, dup.text

  out = await client.post("/api/auth/logout")
  assert out.status_code == 200, out.text
  client.cookies.clear()
  assert (await client.get("/api/auth/me")).status_code == 401

  bad = await client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong-password"})
  assert bad.status_code == 401, bad.text
  await login(client, "ada@example.com")
  assert (await client.get("/api/auth/me")).status_code == 200


@pytest.mark.anyio
async def test_unauthenticated_requests_rejected(client: AsyncClient) -> None:
  for path in ("/api/projects", "/api/columns", "/api/workspace", "/api/init"):
    r = await client.get(path)
    assert r.status_code == 401, (path, r.text)


@pytest.mark.anyio
async def test_register_validation_maps_to_400(client: AsyncClient) -> None:
  r = await client.post("/api/auth/register", json={"email": "not-an-email", "name": "X", "password": "short"})
  assert r.status_code == 400, r.text
  body = r.json()
  assert body["error"] == "Invalid request data"
  assert body["details"]


@pytest.mark.anyio
async def test_registration_initializes_workspace(client: AsyncClient) -> None:
  await register(client, "grace@example.com", name="Grace")

  status = await client.get("/api/init")
  assert status.status_code == 200, status.text
  s = status.json()
  assert s["isInitialized"] is True and s["hasWorkspace"] is True and s["columnsCount"] == 8

  cols = (await client.get("/api/columns")).json()
  assert [c["key"] for c in cols] == [
    "PROJECTS",
    "MILESTONES",
    "BACKLOG",
    "WORKING",
    "READY_TEST",
    "AGENT_TESTING",
    "DEPLOYED_TESTING",
    "COMPLETED",
  ]
  tags = (await client.get("/api/tags")).json()
  assert sorted(t["name"] for t in tags) == ["Backend", "Bug", "Feature", "Frontend", "Urgent"]

  projects = (await client.get("/api/projects")).json()
  assert [p["name"] for p in projects] == [WELCOME_PROJECT_NAME]
  detail = (await client.get(f"/api/projects/{projects[0]['id']}")).json()
  assert len(detail["milestones"]) == 1
  m = detail["milestones"][0]
  assert (m["value"], m["urgency"], m["effort"]) == ("HIGH", "MEDIUM", "SMALL")
  assert m["statusColumn"]["key"] == "MILESTONES"
  assert m["priorityScore"] == 13.0

  ws = (await client.get("/api/workspace")).json()
  assert ws["name"] == "Grace's Workspace"
  assert ws["role"] == "OWNER"


@pytest.mark.anyio
async def test_init_is_idempotent(client: AsyncClient) -> None:
  await register(client, "idem@example.com")
  r = await client.post("/api/init")
  assert r.status_code == 200, r.text
  body = r.json()
  assert body["columnsCreated"] == 0
  assert body["tagsCreated"] == 0
  assert body["welcomeProjectId"] is None
  assert len((await client.get("/api/columns")).json()) == 8
  assert len((await client.get("/api/projects")).json()) == 1


@pytest.mark.anyio
async def test_expired_session_is_rejected(client: AsyncClient) -> None:
  await register(client, "expired@example.com")
  assert (await client.get("/api/auth/me")).status_code == 200
  async with SessionLocal() as db:
    await db.execute(update(DbSession).values(expires_at=datetime.now(timezone.utc) - timedelta(minutes=1)))
    await db.commit()
  r = await client.get("/api/auth/me")
  assert r.status_code == 401, r.text
  assert r.json()["detail"] == "Session expired"


@pytest.mark.anyio
async def test_duplicate_email_insert_race_is_409(client: AsyncClient, other_client: AsyncClient, monkeypatch) -> None:
  await register(client, "twice@example.com")

  async def _never_taken(db, email: str) -> bool:
    return False

  monkeypatch.setattr(auth_router, "_email_taken", _never_taken)
  r = await other_client.post(
    "/api/auth/register", json={"email": "twice@example.com", "name": "Again", "password": "password123"}
  )
  assert r.status_code == 409, r.text
  assert r.json()["detail"] == "Email already registered"


@pytest.mark.anyio
async def test_blank_name_on_register_is_400(client: AsyncClient) -> None:
  r = await client.post("/api/auth/register", json={"email": "blank@example.com", "name": "   ", "password": "password123"})
  assert r.status_code == 400, r.text
