from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from conftest import create_milestone, create_project, create_task, register


@pytest.mark.anyio
async def test_milestone_dependency_chain_rejects_cycles(client: AsyncClient) -> None:
  await register(client, "deps@example.com")
  p = await create_project(client)
  a = await create_milestone(client, p["id"], "A")
  b = await create_milestone(client, p["id"], "B")
  c = await create_milestone(client, p["id"], "C")

  r = await client.put(f"/api/milestones/{a['id']}/dependencies", json={"dependsOnMilestoneId": b["id"]})
  assert r.status_code == 200, r.text
  assert r.json()["dependsOn"]["name"] == "B"
  r = await client.put(f"/api/milestones/{b['id']}/dependencies", json={"dependsOnMilestoneId": c["id"]})
  assert r.status_code == 200, r.text

  cyc = await client.put(f"/api/milestones/{c['id']}/dependencies", json={"dependsOnMilestoneId": a["id"]})
  assert cyc.status_code == 400, cyc.text
  assert cyc.json()["detail"] == "This would create a circular dependency"

  self_dep = await client.patch(f"/api/milestones/{a['id']}", json={"dependsOnMilestoneId": a["id"]})
  assert self_dep.status_code == 400, self_dep.text

  deps = await client.get(f"/api/milestones/{b['id']}/dependencies")
  assert deps.status_code == 200, deps.text
  assert deps.json()["dependsOn"]["id"] == c["id"]
  assert [x["id"] for x in deps.json()["blocks"]] == [a["id"]]

  cleared = await client.put(f"/api/milestones/{a['id']}/dependencies", json={"dependsOnMilestoneId": None})
  assert cleared.status_code == 200, cleared.text
  assert cleared.json()["dependsOnMilestoneId"] is None


@pytest.mark.anyio
async def test_milestone_dependency_must_exist_in_workspace(client: AsyncClient, other_client: AsyncClient) -> None:
  await register(client, "owner1@example.com")
  await register(other_client, "owner2@example.com")
  p1 = await create_project(client)
  m1 = await create_milestone(client, p1["id"])
  p2 = await create_project(other_client)
  m2 = await create_milestone(other_client, p2["id"])

  r = await client.put(f"/api/milestones/{m1['id']}/dependencies", json={"dependsOnMilestoneId": m2["id"]})
  assert r.status_code == 404, r.text
  assert r.json()["detail"] == "Dependency milestone not found"

  r = await client.put(f"/api/milestones/{m1['id']}/dependencies", json={"dependsOnMilestoneId": str(uuid.uuid4())})
  assert r.status_code == 404, r.text

  # Not visible across workspaces at all.
  assert (await client.get(f"/api/milestones/{m2['id']}")).status_code == 404


@pytest.mark.anyio
async def test_create_milestone_with_dependency(client: AsyncClient) -> None:
  await register(client, "depcreate@example.com")
  p = await create_project(client)
  a = await create_milestone(client, p["id"], "A")
  b = await create_milestone(client, p["id"], "B", dependsOnMilestoneId=a["id"])
  assert b["dependsOn"] == {"id": a["id"], "name": "A"}


@pytest.mark.anyio
async def test_task_dependency_cycle_and_delete_nulls_dependents(client: AsyncClient) -> None:
  await register(client, "taskdeps@example.com")
  p = await create_project(client)
  m = await create_milestone(client, p["id"])
  t1 = await create_task(client, m["id"], "one")
  t2 = await create_task(client, m["id"], "two", dependsOnTaskId=t1["id"])
  assert t2["dependsOn"]["id"] == t1["id"]

  cyc = await client.patch(f"/api/tasks/{t1['id']}", json={"dependsOnTaskId": t2["id"]})
  assert cyc.status_code == 400, cyc.text
  self_dep = await client.patch(f"/api/tasks/{t1['id']}", json={"dependsOnTaskId": t1["id"]})
  assert self_dep.status_code == 400, self_dep.text
  missing = await client.patch(f"/api/tasks/{t1['id']}", json={"dependsOnTaskId": str(uuid.uuid4())})
  assert missing.status_code == 404, missing.text

  d = await client.delete(f"/api/tasks/{t1['id']}")
  assert d.status_code == 200, d.text
  after = await client.get(f"/api/tasks/{t2['id']}")
  assert after.status_code == 200
  assert after.json()["dependsOnTaskId"] is None


@pytest.mark.anyio
async def test_deleting_milestone_clears_dependents(client: AsyncClient) -> None:
  await register(client, "msdel@example.com")
  p = await create_project(client)
  a = await create_milestone(client, p["id"], "A")
  b = await create_milestone(client, p["id"], "B", dependsOnMilestoneId=a["id"])
  d = await client.delete(f"/api/milestones/{a['id']}")
  assert d.status_code == 200, d.text
  after = await client.get(f"/api/milestones/{b['id']}")
  assert after.json()["dependsOnMilestoneId"] is None
