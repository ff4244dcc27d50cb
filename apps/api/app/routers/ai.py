from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai.agents import run_ai_prioritization
from app.ai.providers import AIProvider, get_ai_provider
from app.audit import write_audit
from app.config import settings
from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.models import AIRecommendation, as_utc
from app.schemas import (
  AILatestRecommendationOut,
  AIPrioritizationOut,
  AIPrioritizeIn,
  AIRecommendationMetaOut,
  AIRecommendationOut,
)
from app.workspace_scope import project_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/prioritize", response_model=AIPrioritizationOut)
async def prioritize(
  payload: AIPrioritizeIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
  provider: AIProvider = Depends(get_ai_provider),
) -> AIPrioritizationOut:
  if payload.focusProjectId:
    await project_or_404(db, payload.focusProjectId, ctx.workspace_id)
  logger.info(
    "ai prioritize requested user=%s workspace=%s focus=%s include_completed=%s",
    ctx.user_id,
    ctx.workspace_id,
    payload.focusProjectId,
    payload.includeCompleted,
  )

  result = await run_ai_prioritization(
    db,
    provider,
    workspace_id=ctx.workspace_id,
    include_completed=payload.includeCompleted,
    focus_project_id=payload.focusProjectId,
  )

  rec = AIRecommendation(
    workspace_id=ctx.workspace_id,
    user_id=ctx.user_id,
    input_snapshot={
      "includeCompleted": payload.includeCompleted,
      "focusProjectId": payload.focusProjectId,
      "analyzedCount": result.triage.analyzedCount,
      "urgentTasks": result.triage.urgentTasks,
    },
    top_tasks=[t.model_dump(mode="json") for t in result.prioritization.topTasks],
    suggested_moves=[m.model_dump(mode="json") for m in result.prioritization.suggestedMoves],
    themes=[t.model_dump(mode="json") for t in result.insights.themes],
    prompt_version=settings.ai_prompt_version,
    model_version=result.metadata.modelVersion,
    tokens_used=result.metadata.tokensUsed,
    duration_ms=result.metadata.executionTimeMs,
  )
  db.add(rec)
  await db.flush()
  await write_audit(
    db,
    event_type="ai.prioritized",
    entity_type="AIRecommendation",
    entity_id=rec.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"tokensUsed": rec.tokens_used, "durationMs": rec.duration_ms, "model": rec.model_version},
  )
  await db.commit()
  return result


@router.get("/prioritize", response_model=AILatestRecommendationOut)
async def latest_recommendation(
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> AILatestRecommendationOut:
  res = await db.execute(
    select(AIRecommendation)
    .where(AIRecommendation.workspace_id == ctx.workspace_id)
    .order_by(AIRecommendation.created_at.desc())
    .limit(1)
  )
  rec = res.scalar_one_or_none()
  if not rec:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No recommendations found")

  age = datetime.now(timezone.utc) - as_utc(rec.created_at)
  return AILatestRecommendationOut(
    recommendation=AIRecommendationOut(
      id=rec.id,
      topTasks=rec.top_tasks or [],
      suggestedMoves=rec.suggested_moves or [],
      themes=rec.themes or [],
      createdAt=rec.created_at,
    ),
    isFresh=age < timedelta(minutes=int(settings.ai_recommendation_fresh_minutes)),
    metadata=AIRecommendationMetaOut(
      tokensUsed=rec.tokens_used,
      durationMs=rec.duration_ms,
      promptVersion=rec.prompt_version,
      modelVersion=rec.model_version,
    ),
  )
