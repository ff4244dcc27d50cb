from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.models import AuditEvent
from app.schemas import AuditOut

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditOut])
async def list_audit(
  entityId: str | None = None,
  limit: int = Query(default=200, ge=1, le=200),
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> list[AuditOut]:
  q = select(AuditEvent).where(AuditEvent.workspace_id == ctx.workspace_id)
  if entityId:
    q = q.where(AuditEvent.entity_id == entityId)
  res = await db.execute(q.order_by(AuditEvent.created_at.desc()).limit(limit))
  return [
    AuditOut(
      id=ev.id,
      actorId=ev.actor_id,
      eventType=ev.event_type,
      entityType=ev.entity_type,
      entityId=ev.entity_id,
      payload=ev.payload,
      createdAt=ev.created_at,
    )
    for ev in res.scalars().all()
  ]
