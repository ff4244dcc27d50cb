from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from time import monotonic
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.board import (
  BoardItem,
  fetch_board_items,
  format_board_items,
  identify_blocked_items,
  identify_blocker_items,
)
from app.ai.prompts import INSIGHTS_PROMPT, PRIORITIZER_PROMPT, TRIAGE_PROMPT, stage_system_prompt
from app.ai.providers import AIProvider
from app.config import settings
from app.schemas import AIPrioritizationOut, AIRunMetadata, InsightsOutput, PrioritizerOutput, TriageOutput

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class NoBoardItemsError(ValueError):
  pass


class AIOutputError(ValueError):
  def __init__(self, stage: str, message: str, details: list[Any] | None = None) -> None:
    super().__init__(f"{stage}: {message}")
    self.stage = stage
    self.details = details or []


@dataclass
class AgentResult(Generic[M]):
  output: M
  tokens_used: int
  execution_time_ms: int


def _parse_stage_output(stage: str, content: str, schema: type[M]) -> M:
  try:
    raw = json.loads(content)
  except json.JSONDecodeError as exc:
    raise AIOutputError(stage, f"response is not valid JSON ({exc.msg})") from exc
  try:
    return schema.model_validate(raw)
  except ValidationError as exc:
    raise AIOutputError(stage, "response does not match the expected schema", exc.errors(include_url=False, include_context=False)) from exc


async def _run_stage(
  provider: AIProvider,
  *,
  stage: str,
  stage_prompt: str,
  user: str,
  temperature: float,
  context: dict[str, Any],
  schema: type[M],
) -> AgentResult[M]:
  start = monotonic()
  completion = await provider.complete_json(
    stage=stage,
    system=stage_system_prompt(stage_prompt),
    user=user,
    temperature=temperature,
    context=context,
  )
  output = _parse_stage_output(stage, completion.content, schema)
  return AgentResult(output=output, tokens_used=completion.tokens_used, execution_time_ms=int((monotonic() - start) * 1000))


async def run_triage(provider: AIProvider, items: list[BoardItem]) -> AgentResult[TriageOutput]:
  blocked = identify_blocked_items(items)
  blockers = identify_blocker_items(items)
  user = (
    "Analyze the following Kanban board data and provide triage analysis:\n\n"
    f"{format_board_items(items)}\n\n"
    f"Blocked items: {', '.join(blocked) or 'None'}\n"
    f"Blocker items: {', '.join(blockers) or 'None'}"
  )
  return await _run_stage(
    provider,
    stage="triage",
    stage_prompt=TRIAGE_PROMPT,
    user=user,
    temperature=settings.ai_temperature,
    context={"items": [i.to_dict() for i in items], "blocked": blocked, "blockers": blockers},
    schema=TriageOutput,
  )


async def run_prioritizer(
  provider: AIProvider, items: list[BoardItem], triage: TriageOutput
) -> AgentResult[PrioritizerOutput]:
  triage_json = triage.model_dump(mode="json", exclude_none=True)
  user = (
    "Based on the triage analysis, prioritize tasks and suggest optimal moves.\n\n"
    f"Triage Output:\n{json.dumps(triage_json, indent=2)}"
  )
  return await _run_stage(
    provider,
    stage="prioritizer",
    stage_prompt=PRIORITIZER_PROMPT,
    user=user,
    temperature=settings.ai_temperature * 0.8,
    context={"items": [i.to_dict() for i in items], "triage": triage_json},
    schema=PrioritizerOutput,
  )


async def run_insights(
  provider: AIProvider, items: list[BoardItem], triage: TriageOutput, prioritization: PrioritizerOutput
) -> AgentResult[InsightsOutput]:
  triage_json = triage.model_dump(mode="json", exclude_none=True)
  prioritization_json = prioritization.model_dump(mode="json", exclude_none=True)
  user = (
    "Provide strategic insights and recommendations based on the analysis.\n\n"
    f"Triage:\n{json.dumps(triage_json, indent=2)}\n\n"
    f"Prioritization:\n{json.dumps(prioritization_json, indent=2)}"
  )
  return await _run_stage(
    provider,
    stage="insights",
    stage_prompt=INSIGHTS_PROMPT,
    user=user,
    temperature=settings.ai_temperature * 1.1,
    context={"items": [i.to_dict() for i in items], "triage": triage_json, "prioritization": prioritization_json},
    schema=InsightsOutput,
  )


async def run_ai_prioritization(
  db: AsyncSession,
  provider: AIProvider,
  *,
  workspace_id: str,
  include_completed: bool = False,
  focus_project_id: str | None = None,
) -> AIPrioritizationOut:
  """
  Triage -> prioritizer -> insights, strictly in sequence.

  Each stage receives the validated output of the one before it. Any stage
  failure aborts the run; nothing is retried.
  """
  start = monotonic()
  items = await fetch_board_items(
    db, workspace_id=workspace_id, include_completed=include_completed, focus_project_id=focus_project_id
  )
  if not items:
    raise NoBoardItemsError("No board items found for prioritization")

  logger.info("ai pipeline: triage of %d item(s)", len(items))
  triage = await run_triage(provider, items)
  logger.info("ai pipeline: handoff to prioritizer")
  prioritized = await run_prioritizer(provider, items, triage.output)
  logger.info("ai pipeline: handoff to insights")
  insights = await run_insights(provider, items, triage.output, prioritized.output)

  tokens = triage.tokens_used + prioritized.tokens_used + insights.tokens_used
  elapsed_ms = int((monotonic() - start) * 1000)
  logger.info("ai pipeline: complete tokens=%d duration_ms=%d", tokens, elapsed_ms)
  return AIPrioritizationOut(
    triage=triage.output,
    prioritization=prioritized.output,
    insights=insights.output,
    metadata=AIRunMetadata(
      generatedAt=datetime.now(timezone.utc),
      tokensUsed=tokens,
      executionTimeMs=elapsed_ms,
      modelVersion=provider.model,
    ),
  )
