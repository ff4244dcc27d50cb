from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from app.routers.analytics import completion_trend
from conftest import columns_by_key, create_milestone, create_project, create_task, register


@pytest.mark.anyio
async def test_completion_trend_buckets_by_day() -> None:
  today = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)
  stamps = [today, today - timedelta(days=1), today - timedelta(days=1, hours=2), today - timedelta(days=9)]
  trend = completion_trend(stamps, today=today)
  assert len(trend) == 7
  assert trend[-1].date == "Mon, Oct 19"
  assert trend[-1].completed == 1
  assert trend[-2].completed == 2
  assert sum(p.completed for p in trend) == 3


@pytest.mark.anyio
async def test_analytics_overview_and_breakdown(client: AsyncClient) -> None:
  await register(client, "stats@example.com")
  cols = await columns_by_key(client)
  p = await create_project(client, "Metrics")
  m = await create_milestone(client, p["id"])
  t1 = await create_task(client, m["id"], "a", value="HIGH", effort="SMALL")
  await create_task(client, m["id"], "b", value="LOW", effort="LARGE")
  await create_task(client, m["id"], "c")
  r = await client.patch(f"/api/tasks/{t1['id']}", json={"statusColumnId": cols["COMPLETED"]})
  assert r.status_code == 200, r.text

  res = await client.get("/api/analytics", params={"projectId": p["id"]})
  assert res.status_code == 200, res.text
  data = res.json()
  assert data["overview"] == {
    "totalProjects": 1,
    "totalMilestones": 1,
    "totalTasks": 3,
    "completedTasks": 1,
    "completionRate": 33,
  }
  by_col = {c["columnKey"]: c["count"] for c in data["tasksByColumn"]}
  assert by_col["COMPLETED"] == 1 and by_col["BACKLOG"] == 2
  assert {x["priority"]: x["count"] for x in data["tasksByPriority"]} == {"HIGH": 1, "MEDIUM": 1, "LOW": 1}
  assert {x["effort"]: x["count"] for x in data["tasksByEffort"]} == {"SMALL": 2, "MEDIUM": 0, "LARGE": 1}
  assert len(data["completionTrend"]) == 7
  assert data["completionTrend"][-1]["completed"] == 1
  assert data["projectBreakdown"] == [
    {"projectId": p["id"], "projectName": "Metrics", "milestones": 1, "tasks": 3, "completedTasks": 1}
  ]
  assert 0 < len(data["recentActivity"]) <= 10
  assert any(a["action"] == "Completed" for a in data["recentActivity"])


@pytest.mark.anyio
async def test_analytics_rejects_bad_dates(client: AsyncClient) -> None:
  await register(client, "dates@example.com")
  r = await client.get("/api/analytics", params={"startDate": "yesterday"})
  assert r.status_code == 400, r.text


@pytest.mark.anyio
async def test_audit_lists_workspace_events(client: AsyncClient) -> None:
  await register(client, "audit@example.com")
  p = await create_project(client, "Audited")
  await client.patch(f"/api/projects/{p['id']}", json={"name": "Audited 2"})

  r = await client.get("/api/audit", params={"entityId": p["id"]})
  assert r.status_code == 200, r.text
  types = [e["eventType"] for e in r.json()]
  assert set(types) == {"project.created", "project.updated"}
  assert all(e["entityId"] == p["id"] for e in r.json())


@pytest.mark.anyio
async def test_analytics_ignores_archived_projects(client: AsyncClient) -> None:
  await register(client, "shelf@example.com")
  baseline = (await client.get("/api/analytics")).json()["overview"]

  p = await create_project(client, "Shelved")
  await create_task(client, (await create_milestone(client, p["id"]))["id"])
  grown = (await client.get("/api/analytics")).json()["overview"]
  assert grown["totalProjects"] == baseline["totalProjects"] + 1
  assert grown["totalTasks"] == baseline["totalTasks"] + 1

  r = await client.patch(f"/api/projects/{p['id']}", json={"status": "ARCHIVED"})
  assert r.status_code == 200, r.text
  data = (await client.get("/api/analytics")).json()
  assert data["overview"] == baseline
  assert p["id"] not in {row["projectId"] for row in data["projectBreakdown"]}
