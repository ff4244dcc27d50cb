from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from app.db import SessionLocal
from app.models import Project, User, Workspace, WorkspaceInvitation
from conftest import create_project, register


async def _invite(client: AsyncClient, email: str) -> dict:
  r = await client.post("/api/workspace/invite", json={"email": email})
  assert r.status_code == 201, r.text
  return r.json()


@pytest.mark.anyio
async def test_invite_preview_and_accept(client: AsyncClient, other_client: AsyncClient) -> None:
  await register(client, "owner@example.com", name="Olive")
  created = await _invite(client, "Friend@Example.com")
  assert created["message"] == "Invitation sent successfully"
  token = created["inviteUrl"].rsplit("/", 1)[-1]
  assert len(token) == 64
  assert created["invitation"]["email"] == "friend@example.com"

  again = await client.post("/api/workspace/invite", json={"email": "friend@example.com"})
  assert again.status_code == 400, again.text

  preview = await other_client.get(f"/api/workspace/invite/{token}")
  assert preview.status_code == 200, preview.text
  assert preview.json()["workspace"]["name"] == "Olive's Workspace"
  assert preview.json()["invitedBy"] == "Olive"

  await register(other_client, "stranger@example.com")
  wrong = await other_client.post(f"/api/workspace/invite/{token}")
  assert wrong.status_code == 403, wrong.text

  other_client.cookies.clear()
  await register(other_client, "friend@example.com", name="Fred")
  ok = await other_client.post(f"/api/workspace/invite/{token}")
  assert ok.status_code == 200, ok.text
  assert ok.json()["role"] == "MEMBER"

  reused = await other_client.post(f"/api/workspace/invite/{token}")
  assert reused.status_code == 400, reused.text

  ws = (await client.get("/api/workspace")).json()
  assert ws["counts"]["members"] == 2
  assert ws["counts"]["pendingInvitations"] == 0
  assert {m["user"]["email"] for m in ws["members"]} == {"owner@example.com", "friend@example.com"}

  member_again = await client.post("/api/workspace/invite", json={"email": "friend@example.com"})
  assert member_again.status_code == 400, member_again.text


@pytest.mark.anyio
async def test_invite_unknown_and_expired_tokens(client: AsyncClient) -> None:
  await register(client, "exp@example.com")
  assert (await client.get("/api/workspace/invite/nope")).status_code == 404

  created = await _invite(client, "late@example.com")
  token = created["inviteUrl"].rsplit("/", 1)[-1]
  async with SessionLocal() as db:
    await db.execute(
      update(WorkspaceInvitation)
      .where(WorkspaceInvitation.token == token)
      .values(expires_at=datetime.now(timezone.utc) - timedelta(days=1))
    )
    await db.commit()
  r = await client.get(f"/api/workspace/invite/{token}")
  assert r.status_code == 400, r.text
  assert r.json()["detail"] == "Invitation has expired"


@pytest.mark.anyio
async def test_member_removal_rules(client: AsyncClient, other_client: AsyncClient) -> None:
  await register(client, "boss@example.com")
  token = (await _invite(client, "crew@example.com"))["inviteUrl"].rsplit("/", 1)[-1]
  await register(other_client, "crew@example.com")
  assert (await other_client.post(f"/api/workspace/invite/{token}")).status_code == 200

  ws = (await client.get("/api/workspace")).json()
  owner = next(m for m in ws["members"] if m["role"] == "OWNER")
  crew = next(m for m in ws["members"] if m["role"] == "MEMBER")

  cant = await client.delete(f"/api/workspace/members/{owner['id']}")
  assert cant.status_code == 403, cant.text
  missing = await client.delete("/api/workspace/members/00000000-0000-4000-8000-000000000000")
  assert missing.status_code == 404, missing.text

  ok = await client.delete(f"/api/workspace/members/{crew['id']}")
  assert ok.status_code == 200, ok.text
  ws = (await client.get("/api/workspace")).json()
  assert ws["counts"]["members"] == 1


@pytest.mark.anyio
async def test_delete_account_removes_owned_workspace(client: AsyncClient) -> None:
  user = await register(client, "leaver@example.com")
  await create_project(client, "Soon gone")

  r = await client.delete("/api/account")
  assert r.status_code == 200, r.text
  assert r.json() == {"ok": True}

  async with SessionLocal() as db:
    assert (await db.execute(select(User).where(User.id == user["id"]))).scalar_one_or_none() is None
    assert (await db.execute(select(Workspace))).scalars().all() == []
    assert (await db.execute(select(Project))).scalars().all() == []

  client.cookies.clear()
  assert (await client.get("/api/auth/me")).status_code == 401


@pytest.mark.anyio
async def test_workspace_scoping_hides_other_boards(client: AsyncClient, other_client: AsyncClient) -> None:
  await register(client, "a@example.com")
  await register(other_client, "b@example.com")
  p = await create_project(client, "Private")
  assert (await other_client.get(f"/api/projects/{p['id']}")).status_code == 404
  assert (await other_client.patch(f"/api/projects/{p['id']}", json={"name": "x"})).status_code == 404
  assert (await other_client.delete(f"/api/projects/{p['id']}")).status_code == 404
  names = [x["name"] for x in (await other_client.get("/api/projects")).json()]
  assert "Private" not in names
