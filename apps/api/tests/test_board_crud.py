from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from conftest import columns_by_key, create_milestone, create_project, create_task, register


@pytest.mark.anyio
async def test_project_crud_and_ordering(client: AsyncClient) -> None:
  await register(client, "pm@example.com")
  a = await create_project(client, "Alpha", description="first")
  b = await create_project(client, "Beta")
  assert b["sortOrder"] == a["sortOrder"] + 1
  assert a["status"] == "ACTIVE"

  upd = await client.patch(f"/api/projects/{a['id']}", json={"description": None, "status": "ARCHIVED"})
  assert upd.status_code == 200, upd.text
  assert upd.json()["description"] is None
  assert upd.json()["status"] == "ARCHIVED"

  archived = await client.get("/api/projects", params={"status": "archived"})
  assert [p["name"] for p in archived.json()] == ["Alpha"]

  bad = await client.post("/api/projects", json={"name": ""})
  assert bad.status_code == 400, bad.text

  missing = await client.get(f"/api/projects/{uuid.uuid4()}")
  assert missing.status_code == 404


@pytest.mark.anyio
async def test_milestone_create_scores_and_lists(client: AsyncClient) -> None:
  await register(client, "ms@example.com")
  p = await create_project(client)
  m = await create_milestone(client, p["id"], value="HIGH", urgency="HIGH", effort="SMALL")
  assert m["priorityScore"] == 14.5
  assert m["taskCount"] == 0

  r = await client.get("/api/milestones")
  assert r.status_code == 400, r.text
  r = await client.get("/api/milestones", params={"projectId": str(uuid.uuid4())})
  assert r.status_code == 404, r.text

  lst = await client.get("/api/milestones", params={"projectId": p["id"]})
  assert [x["id"] for x in lst.json()] == [m["id"]]

  upd = await client.patch(f"/api/milestones/{m['id']}", json={"effort": "LARGE", "value": "LOW", "urgency": "LOW"})
  assert upd.status_code == 200, upd.text
  assert upd.json()["priorityScore"] == 3.5

  await create_task(client, m["id"], "child")
  detail = await client.get(f"/api/milestones/{m['id']}")
  assert detail.status_code == 200, detail.text
  body = detail.json()
  assert body["project"]["id"] == p["id"]
  assert [t["name"] for t in body["tasks"]] == ["child"]
  assert body["taskCount"] == 1


@pytest.mark.anyio
async def test_task_lifecycle_and_completion(client: AsyncClient) -> None:
  await register(client, "tasks@example.com")
  cols = await columns_by_key(client)
  p = await create_project(client)
  m = await create_milestone(client, p["id"])
  t = await create_task(client, m["id"], "Write docs", value="HIGH", urgency="LOW", effort="MEDIUM")
  assert t["priorityScore"] == 9.5
  assert t["effort"] == "MEDIUM"
  assert t["milestone"]["id"] == m["id"]
  assert t["projectId"] == p["id"]
  assert t["completedAt"] is None

  done = await client.patch(f"/api/tasks/{t['id']}", json={"statusColumnId": cols["COMPLETED"]})
  assert done.status_code == 200, done.text
  assert done.json()["statusColumn"]["key"] == "COMPLETED"
  assert done.json()["completedAt"] is not None

  back = await client.patch(f"/api/tasks/{t['id']}", json={"statusColumnId": cols["WORKING"]})
  assert back.json()["completedAt"] is None

  explicit = await client.patch(f"/api/tasks/{t['id']}", json={"completedAt": "2026-01-02T03:04:05Z"})
  assert explicit.status_code == 200, explicit.text
  assert explicit.json()["completedAt"].startswith("2026-01-02T03:04:05")

  by_ms = await client.get("/api/tasks", params={"milestoneId": m["id"]})
  assert [x["id"] for x in by_ms.json()] == [t["id"]]
  all_tasks = await client.get("/api/tasks")
  assert t["id"] in {x["id"] for x in all_tasks.json()}

  d = await client.delete(f"/api/tasks/{t['id']}")
  assert d.status_code == 200 and d.json() == {"ok": True}
  assert (await client.get(f"/api/tasks/{t['id']}")).status_code == 404


@pytest.mark.anyio
async def test_task_rejects_unknown_column_and_bad_ids(client: AsyncClient) -> None:
  await register(client, "badcol@example.com")
  p = await create_project(client)
  m = await create_milestone(client, p["id"])
  r = await client.post("/api/tasks", json={"milestoneId": m["id"], "name": "x", "statusColumnId": str(uuid.uuid4())})
  assert r.status_code == 404, r.text
  r = await client.post("/api/tasks", json={"milestoneId": "not-a-uuid", "name": "x", "statusColumnId": str(uuid.uuid4())})
  assert r.status_code == 400, r.text


@pytest.mark.anyio
async def test_delete_project_cascades(client: AsyncClient) -> None:
  await register(client, "cascade@example.com")
  tags = (await client.get("/api/tags")).json()
  p = await create_project(client)
  m = await create_milestone(client, p["id"])
  t = await create_task(client, m["id"])
  r = await client.put(f"/api/tasks/{t['id']}/tags", json={"tagIds": [tags[0]["id"]]})
  assert r.status_code == 200, r.text

  d = await client.delete(f"/api/projects/{p['id']}")
  assert d.status_code == 200, d.text
  assert (await client.get(f"/api/milestones/{m['id']}")).status_code == 404
  assert (await client.get(f"/api/tasks/{t['id']}")).status_code == 404
  after = {x["id"]: x for x in (await client.get("/api/tags")).json()}
  assert after[tags[0]["id"]]["taskCount"] == 0


@pytest.mark.anyio
async def test_task_tags_replace_and_validation(client: AsyncClient) -> None:
  await register(client, "tagger@example.com")
  tags = {t["name"]: t["id"] for t in (await client.get("/api/tags")).json()}
  p = await create_project(client)
  m = await create_milestone(client, p["id"])
  t = await create_task(client, m["id"])

  r = await client.put(f"/api/tasks/{t['id']}/tags", json={"tagIds": [tags["Bug"], tags["Backend"]]})
  assert r.status_code == 200, r.text
  assert [x["name"] for x in r.json()["tags"]] == ["Backend", "Bug"]

  r = await client.put(f"/api/tasks/{t['id']}/tags", json={"tagIds": [tags["Urgent"]]})
  assert [x["name"] for x in r.json()["tags"]] == ["Urgent"]

  r = await client.put(f"/api/tasks/{t['id']}/tags", json={"tagIds": [str(uuid.uuid4())]})
  assert r.status_code == 404, r.text
  assert r.json()["detail"] == "One or more tags not found"


@pytest.mark.anyio
async def test_tag_crud_and_conflicts(client: AsyncClient) -> None:
  await register(client, "tags@example.com")
  r = await client.post("/api/tags", json={"name": "Infra", "color": "#112233"})
  assert r.status_code == 201, r.text
  tag = r.json()
  dup = await client.post("/api/tags", json={"name": "infra"})
  assert dup.status_code == 409, dup.text
  bad_color = await client.post("/api/tags", json={"name": "Ops", "color": "red"})
  assert bad_color.status_code == 400, bad_color.text

  ren = await client.patch(f"/api/tags/{tag['id']}", json={"name": "Bug"})
  assert ren.status_code == 409, ren.text
  ren = await client.patch(f"/api/tags/{tag['id']}", json={"name": "Platform", "color": "#abcdef"})
  assert ren.status_code == 200 and ren.json()["name"] == "Platform"

  d = await client.delete(f"/api/tags/{tag['id']}")
  assert d.status_code == 200, d.text
  assert tag["id"] not in {t["id"] for t in (await client.get("/api/tags")).json()}


@pytest.mark.anyio
async def test_columns_rename_and_reorder(client: AsyncClient) -> None:
  await register(client, "cols@example.com")
  cols = (await client.get("/api/columns")).json()
  ids = [c["id"] for c in cols]

  r = await client.patch(f"/api/columns/{ids[2]}", json={"name": "Todo"})
  assert r.status_code == 200, r.text
  assert r.json()["name"] == "Todo" and r.json()["key"] == "BACKLOG"

  partial = await client.post("/api/columns/reorder", json={"columnIds": ids[:3]})
  assert partial.status_code == 400, partial.text

  reordered = list(reversed(ids))
  r = await client.post("/api/columns/reorder", json={"columnIds": reordered})
  assert r.status_code == 200, r.text
  listed = (await client.get("/api/columns")).json()
  assert [c["id"] for c in listed] == reordered
  assert [c["sortOrder"] for c in listed] == list(range(8))


@pytest.mark.anyio
async def test_whitespace_only_names_are_rejected(client: AsyncClient) -> None:
  await register(client, "blanks@example.com")
  cols = await columns_by_key(client)
  r = await client.patch(f"/api/columns/{cols['BACKLOG']}", json={"name": "   "})
  assert r.status_code == 400, r.text
  listed = {c["key"]: c["name"] for c in (await client.get("/api/columns")).json()}
  assert listed["BACKLOG"] == "Backlog"

  assert (await client.post("/api/tags", json={"name": "  "})).status_code == 400
  tag = (await client.get("/api/tags")).json()[0]
  assert (await client.patch(f"/api/tags/{tag['id']}", json={"name": "\t"})).status_code == 400
  assert (await client.post("/api/projects", json={"name": "  "})).status_code == 400

  ok = await client.patch(f"/api/columns/{cols['BACKLOG']}", json={"name": "  Todo  "})
  assert ok.status_code == 200 and ok.json()["name"] == "Todo"
