from __future__ import annotations

import json
import uuid

import pytest
from pydantic import ValidationError

from app.ai.agents import AIOutputError, _parse_stage_output, run_insights, run_prioritizer, run_triage
from app.ai.board import (
  BoardItem,
  column_distribution,
  format_board_items,
  identify_blocked_items,
  identify_blocker_items,
)
from app.ai.providers import LocalDeterministicProvider
from app.schemas import InsightsOutput, PrioritizerOutput, TriageOutput


def _item(name: str, **kw) -> BoardItem:
  base = dict(
    id=str(uuid.uuid4()),
    type="TASK",
    name=name,
    description=None,
    value="MEDIUM",
    urgency="MEDIUM",
    effort="MEDIUM",
    statusColumnKey="BACKLOG",
    statusColumnName="Backlog",
    projectId="p1",
    projectName="Apollo",
    priorityScore=9.0,
  )
  base.update(kw)
  return BoardItem(**base)


def _board() -> list[BoardItem]:
  a = _item("Schema", value="HIGH", urgency="HIGH", effort="SMALL", priorityScore=14.5, blockedCount=1)
  b = _item("API", dependsOnId=a.id, dependsOnName=a.name)
  done = _item("Kickoff", statusColumnKey="COMPLETED", statusColumnName="Completed", isCompleted=True)
  c = _item("Docs", dependsOnId=done.id, dependsOnName=done.name, dependsOnCompleted=True, effort="LARGE", priorityScore=7.0)
  return [a, b, c, done]


@pytest.mark.anyio
async def test_board_helpers() -> None:
  a, b, c, done = _board()
  items = [a, b, c, done]
  assert identify_blocked_items(items) == [b.id]
  assert identify_blocker_items(items) == [a.id]
  dist = column_distribution(items)
  assert dist["BACKLOG"] == 3 and dist["COMPLETED"] == 1 and dist["WORKING"] == 0
  assert list(dist.keys())[0] == "PROJECTS"


@pytest.mark.anyio
async def test_blocked_follows_dependency_completion_not_item_set() -> None:
  waiting = _item("Waiting", dependsOnId=str(uuid.uuid4()), dependsOnName="Elsewhere")
  free = _item("Free", dependsOnId=str(uuid.uuid4()), dependsOnName="Shipped", dependsOnCompleted=True)
  assert identify_blocked_items([waiting, free]) == [waiting.id]


@pytest.mark.anyio
async def test_format_board_items_truncates_descriptions() -> None:
  item = _item("Long", description="x" * 250)
  data = json.loads(format_board_items([item]))
  assert data["summary"]["totalItems"] == 1
  assert len(data["items"][0]["description"]) == 100


@pytest.mark.anyio
async def test_parse_stage_output_rejects_bad_json_and_schema() -> None:
  with pytest.raises(AIOutputError) as e1:
    _parse_stage_output("triage", "not json", TriageOutput)
  assert e1.value.stage == "triage"
  bad = json.dumps({"analyzedCount": 1, "urgentTasks": ["nope"], "taskScores": []})
  with pytest.raises(AIOutputError) as e2:
    _parse_stage_output("triage", bad, TriageOutput)
  assert e2.value.details


@pytest.mark.anyio
async def test_schema_limits() -> None:
  tid = str(uuid.uuid4())
  with pytest.raises(ValidationError):
    TriageOutput.model_validate(
      {"analyzedCount": 1, "urgentTasks": [], "taskScores": [{"taskId": tid, "taskTitle": "t", "priorityScore": 21, "isUrgent": False}]}
    )
  ranked = [{"taskId": tid, "taskTitle": "t", "rank": 11, "priorityScore": 1, "rationale": "r"}]
  with pytest.raises(ValidationError):
    PrioritizerOutput.model_validate({"topTasks": ranked, "suggestedMoves": []})
  rec = {"title": "t", "description": "d", "actionItems": ["a"], "expectedImpact": "i"}
  with pytest.raises(ValidationError):
    InsightsOutput.model_validate({"summary": "s", "themes": [], "recommendations": [rec, rec]})
  with pytest.raises(ValidationError):
    InsightsOutput.model_validate({"summary": "s" * 501, "themes": [], "recommendations": [rec, rec, rec]})


@pytest.mark.anyio
async def test_local_provider_pipeline_is_valid_and_ranks_blocked_last() -> None:
  items = _board()
  a, b, c, done = items
  provider = LocalDeterministicProvider()

  triage = await run_triage(provider, items)
  assert triage.output.analyzedCount == 4
  assert a.id in triage.output.urgentTasks
  flag_types = {(f.taskId, f.type) for f in triage.output.flags or []}
  assert (b.id, "BLOCKED") in flag_types
  assert (a.id, "BLOCKER") in flag_types
  assert (c.id, "HIGH_EFFORT") in flag_types

  prioritized = await run_prioritizer(provider, items, triage.output)
  ranked = [t.taskId for t in prioritized.output.topTasks]
  assert ranked[0] == a.id
  assert ranked[-1] == b.id
  assert done.id not in ranked
  assert [t.rank for t in prioritized.output.topTasks] == list(range(1, len(ranked) + 1))
  assert all(m.suggestedColumn == "WORKING" for m in prioritized.output.suggestedMoves)
  assert b.id not in {m.taskId for m in prioritized.output.suggestedMoves}

  insights = await run_insights(provider, items, triage.output, prioritized.output)
  assert 3 <= len(insights.output.recommendations) <= 5
  assert len(insights.output.themes) <= 5
  assert insights.tokens_used > 0
