from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from app.config import settings


class AIProviderError(RuntimeError):
  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.status_code = status_code


@dataclass
class AICompletion:
  content: str
  tokens_used: int


class AIProvider(Protocol):
  model: str

  async def complete_json(
    self,
    *,
    stage: str,
    system: str,
    user: str,
    temperature: float,
    context: dict[str, Any],
  ) -> AICompletion: ...


def _estimate_tokens(*parts: str) -> int:
  return sum(len(p) for p in parts) // 4


def _impact(score: float) -> str:
  if score >= 12:
    return "HIGH"
  if score >= 8:
    return "MEDIUM"
  return "LOW"


_REVIEW_KEYS = {"READY_TEST", "AGENT_TESTING", "DEPLOYED_TESTING"}
_TODO_KEYS = {"PROJECTS", "MILESTONES", "BACKLOG"}
_WORKING_SOFT_LIMIT = 3


@dataclass
class LocalDeterministicProvider:
  """
  Offline provider that answers every stage from the board data alone.

  Rankings follow the priority score, so results are stable across runs and
  suitable for tests and for deployments without an LLM key.
  """

  model: str = "local-deterministic"

  async def complete_json(
    self,
    *,
    stage: str,
    system: str,
    user: str,
    temperature: float,
    context: dict[str, Any],
  ) -> AICompletion:
    items = {i["id"]: i for i in context.get("items") or []}
    if stage == "triage":
      out = self._triage(items, context)
    elif stage == "prioritizer":
      out = self._prioritize(items, context["triage"])
    elif stage == "insights":
      out = self._insights(items, context["triage"], context["prioritization"])
    else:
      raise AIProviderError(f"Unknown AI stage: {stage}")
    content = json.dumps(out)
    return AICompletion(content=content, tokens_used=_estimate_tokens(system, user, content))

  def _triage(self, items: dict[str, dict], context: dict[str, Any]) -> dict:
    blocked = set(context.get("blocked") or [])
    blockers = set(context.get("blockers") or [])
    scores = []
    flags = []
    for i in items.values():
      urgent = i["urgency"] == "HIGH" or i["priorityScore"] >= 12
      reasons = [f"value {i['value']}", f"urgency {i['urgency']}", f"effort {i['effort']}"]
      if i["id"] in blockers:
        reasons.append(f"blocks {i['blockedCount']} item(s)")
      scores.append(
        {
          "taskId": i["id"],
          "taskTitle": i["name"],
          "priorityScore": i["priorityScore"],
          "isUrgent": urgent,
          "reasoning": ", ".join(reasons),
        }
      )
      if i["id"] in blocked:
        flags.append({"taskId": i["id"], "type": "BLOCKED", "message": f"Waiting on {i.get('dependsOnName') or 'a dependency'}"})
      if i["id"] in blockers:
        flags.append({"taskId": i["id"], "type": "BLOCKER", "message": f"{i['blockedCount']} item(s) depend on this"})
      if i["effort"] == "LARGE":
        flags.append({"taskId": i["id"], "type": "HIGH_EFFORT", "message": "Large effort; consider splitting"})
    scores.sort(key=lambda s: (-s["priorityScore"], s["taskTitle"]))
    return {
      "analyzedCount": len(items),
      "urgentTasks": [s["taskId"] for s in scores if s["isUrgent"]],
      "taskScores": scores,
      "flags": flags,
    }

  def _prioritize(self, items: dict[str, dict], triage: dict) -> dict:
    blocked = {f["taskId"] for f in triage.get("flags") or [] if f["type"] == "BLOCKED"}
    candidates = [s for s in triage["taskScores"] if not items.get(s["taskId"], {}).get("isCompleted")]
    # Blocked items sink below everything actionable.
    candidates.sort(key=lambda s: (s["taskId"] in blocked, -s["priorityScore"], s["taskTitle"]))
    top = []
    for rank, s in enumerate(candidates[:10], start=1):
      why = "Blocked by an open dependency" if s["taskId"] in blocked else "Highest weighted score among actionable items"
      top.append(
        {
          "taskId": s["taskId"],
          "taskTitle": s["taskTitle"],
          "rank": rank,
          "priorityScore": s["priorityScore"],
          "rationale": f"{why} ({s['priorityScore']})",
        }
      )

    columns = Counter(i["statusColumnKey"] for i in items.values())
    working = columns.get("WORKING", 0)
    moves = []
    for t in top:
      if len(moves) >= max(0, min(5, _WORKING_SOFT_LIMIT - working)):
        break
      item = items.get(t["taskId"]) or {}
      if t["taskId"] in blocked or item.get("statusColumnKey") not in _TODO_KEYS:
        continue
      moves.append(
        {
          "taskId": t["taskId"],
          "taskTitle": t["taskTitle"],
          "currentColumn": item["statusColumnKey"],
          "suggestedColumn": "WORKING",
          "reasoning": f"Ranked #{t['rank']} and not blocked",
          "impact": _impact(t["priorityScore"]),
        }
      )

    todo = sum(columns.get(k, 0) for k in _TODO_KEYS)
    review = sum(columns.get(k, 0) for k in _REVIEW_KEYS)
    if working > _WORKING_SOFT_LIMIT:
      advice = "Too much work in progress; finish WORKING items before pulling more."
    elif review > working and review > 0:
      advice = "Verification is the bottleneck; clear the testing columns first."
    else:
      advice = "Flow is healthy; pull the top-ranked backlog items."
    return {
      "topTasks": top,
      "suggestedMoves": moves,
      "flowAnalysis": {"todoCount": todo, "inProgressCount": working, "reviewCount": review, "recommendation": advice},
    }

  def _insights(self, items: dict[str, dict], triage: dict, prioritization: dict) -> dict:
    open_items = [i for i in items.values() if not i["isCompleted"]]
    blocked = [f["taskId"] for f in triage.get("flags") or [] if f["type"] == "BLOCKED"]
    quick_wins = [i["id"] for i in open_items if i["value"] == "HIGH" and i["effort"] == "SMALL"]
    large = [i["id"] for i in open_items if i["effort"] == "LARGE"]
    themes = []
    if quick_wins:
      themes.append(
        {
          "title": "Quick wins available",
          "description": f"{len(quick_wins)} high-value item(s) need only small effort.",
          "relatedTaskIds": quick_wins[:10],
          "category": "OPPORTUNITY",
          "priority": "HIGH",
        }
      )
    if blocked:
      themes.append(
        {
          "title": "Dependency chains are holding work back",
          "description": f"{len(blocked)} item(s) wait on unfinished dependencies.",
          "relatedTaskIds": blocked[:10],
          "category": "RISK",
          "priority": "HIGH" if len(blocked) > 2 else "MEDIUM",
        }
      )
    if large:
      themes.append(
        {
          "title": "Large items concentrate effort",
          "description": f"{len(large)} item(s) are rated LARGE effort.",
          "relatedTaskIds": large[:10],
          "category": "RISK",
          "priority": "MEDIUM",
        }
      )
    by_project = Counter(i["projectName"] for i in open_items)
    for project_name, n in by_project.most_common(5 - len(themes)):
      ids = [i["id"] for i in open_items if i["projectName"] == project_name]
      themes.append(
        {
          "title": f"Advance {project_name}"[:120],
          "description": f"{n} open item(s) in this project.",
          "relatedTaskIds": ids[:10],
          "category": "GOAL",
          "priority": "MEDIUM",
        }
      )

    top = prioritization.get("topTasks") or []
    first = top[0]["taskTitle"] if top else "the top-ranked item"
    recommendations = [
      {
        "title": "Start with the top-ranked item",
        "description": f"Focus on '{first}' before pulling new work.",
        "actionItems": [f"Move '{first}' to WORKING", "Confirm its acceptance criteria"],
        "expectedImpact": "Highest score delivered first",
      },
      {
        "title": "Unblock dependency chains",
        "description": "Resolve blockers so dependent items can move.",
        "actionItems": ["Review items flagged as BLOCKER", "Finish or re-scope blocking work"],
        "expectedImpact": f"Frees {len(blocked)} blocked item(s)",
      },
      {
        "title": "Keep work in progress small",
        "description": "Limit WORKING to a few items and split LARGE efforts.",
        "actionItems": ["Cap WORKING at three items", "Split LARGE items into smaller tasks"],
        "expectedImpact": "Shorter cycle time",
      },
    ]

    ratio = (len(blocked) / len(open_items)) if open_items else 0.0
    level = "HIGH" if ratio > 0.3 else "MEDIUM" if ratio > 0.1 or large else "LOW"
    factors = []
    if blocked:
      factors.append(f"{len(blocked)} blocked item(s)")
    if large:
      factors.append(f"{len(large)} large-effort item(s)")
    summary = (
      f"{len(open_items)} open item(s) analyzed; {len(triage.get('urgentTasks') or [])} urgent, "
      f"{len(blocked)} blocked, {len(quick_wins)} quick win(s). Start with '{first}'."
    )
    return {
      "summary": summary[:500],
      "themes": themes[:5],
      "recommendations": recommendations,
      "riskAssessment": {"level": level, "factors": factors},
    }


@dataclass
class OpenAICompatibleProvider:
  api_key: str
  base_url: str
  model: str = "gpt-4o"
  max_tokens: int = 4000
  timeout: float = 60.0
  transport: httpx.AsyncBaseTransport | None = None

  async def complete_json(
    self,
    *,
    stage: str,
    system: str,
    user: str,
    temperature: float,
    context: dict[str, Any],
  ) -> AICompletion:
    headers = {"Authorization": f"Bearer {self.api_key}"}
    async with httpx.AsyncClient(
      base_url=self.base_url, headers=headers, timeout=self.timeout, transport=self.transport
    ) as client:
      try:
        r = await client.post(
          "/chat/completions",
          json={
            "model": self.model,
            "messages": [
              {"role": "system", "content": system},
              {"role": "user", "content": user},
            ],
            "temperature": temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
          },
        )
        r.raise_for_status()
      except httpx.HTTPStatusError as exc:
        raise AIProviderError(
          f"{stage} request failed with HTTP {exc.response.status_code}",
          status_code=exc.response.status_code,
        ) from exc
      except httpx.HTTPError as exc:
        raise AIProviderError(f"{stage} request failed: {exc}") from exc
    try:
      data = r.json()
    except ValueError as exc:
      raise AIProviderError(f"{stage} response was not JSON") from exc
    if not isinstance(data, dict):
      raise AIProviderError(f"{stage} response had an unexpected shape")
    choices = data.get("choices") or []
    content = (choices[0].get("message") or {}).get("content") if choices else None
    if not content:
      raise AIProviderError(f"{stage} agent returned no response")
    tokens = int((data.get("usage") or {}).get("total_tokens") or 0)
    return AICompletion(content=content, tokens_used=tokens)


def get_ai_provider() -> AIProvider:
  if settings.ai_provider.lower() == "openai":
    if not settings.openai_api_key:
      raise AIProviderError("AI_PROVIDER=openai requires OPENAI_API_KEY")
    return OpenAICompatibleProvider(
      api_key=settings.openai_api_key,
      base_url=settings.openai_base_url,
      model=settings.ai_model,
      max_tokens=settings.ai_max_tokens,
      timeout=settings.ai_timeout_seconds,
    )
  return LocalDeterministicProvider()
