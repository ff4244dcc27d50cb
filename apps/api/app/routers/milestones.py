from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.cascade import delete_milestones
from app.dependency_guard import milestone_lookup, would_create_cycle
from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.models import Milestone, Project, Task
from app.schemas import (
  MilestoneCreateIn,
  MilestoneDependenciesOut,
  MilestoneDependencyIn,
  MilestoneDetailOut,
  MilestoneOut,
  MilestoneUpdateIn,
  RefOut,
)
from app.scoring import priority_score
from app.views import milestone_outs, project_out, task_outs
from app.workspace_scope import column_or_404, milestone_or_404, project_or_404

router = APIRouter(prefix="/milestones", tags=["milestones"])

CIRCULAR_DETAIL = "This would create a circular dependency"


async def _check_dependency(db: AsyncSession, ctx: WorkspaceContext, milestone_id: str | None, depends_on_id: str | None) -> None:
  if not depends_on_id:
    return
  if milestone_id and depends_on_id == milestone_id:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=CIRCULAR_DETAIL)
  await milestone_or_404(db, depends_on_id, ctx.workspace_id, detail="Dependency milestone not found")
  if milestone_id and await would_create_cycle(milestone_id, depends_on_id, milestone_lookup(db)):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=CIRCULAR_DETAIL)


async def _one_out(db: AsyncSession, m: Milestone) -> MilestoneOut:
  return (await milestone_outs(db, [m]))[0]


@router.get("", response_model=list[MilestoneOut])
async def list_milestones(
  projectId: str | None = Query(default=None),
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> list[MilestoneOut]:
  if not projectId:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="projectId is required")
  p = await project_or_404(db, projectId, ctx.workspace_id)
  res = await db.execute(
    select(Milestone).where(Milestone.project_id == p.id).order_by(Milestone.sort_order.asc(), Milestone.created_at.desc())
  )
  return await milestone_outs(db, list(res.scalars().all()))


@router.post("", response_model=MilestoneOut, status_code=status.HTTP_201_CREATED)
async def create_milestone(
  payload: MilestoneCreateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> MilestoneOut:
  p = await project_or_404(db, payload.projectId, ctx.workspace_id)
  await column_or_404(db, payload.statusColumnId, ctx.workspace_id)
  await _check_dependency(db, ctx, None, payload.dependsOnMilestoneId)

  res = await db.execute(select(func.max(Milestone.sort_order)).where(Milestone.project_id == p.id))
  last = res.scalar_one()
  m = Milestone(
    project_id=p.id,
    status_column_id=payload.statusColumnId,
    depends_on_milestone_id=payload.dependsOnMilestoneId,
    name=payload.name,
    description=payload.description,
    value=payload.value,
    urgency=payload.urgency,
    effort=payload.effort,
    priority=payload.priority,
    priority_score=priority_score(payload.value, payload.urgency, payload.effort),
    sort_order=(last + 1) if last is not None else 0,
  )
  db.add(m)
  await db.flush()
  await write_audit(
    db,
    event_type="milestone.created",
    entity_type="Milestone",
    entity_id=m.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"name": m.name, "projectId": p.id},
  )
  await db.commit()
  return await _one_out(db, m)


@router.get("/{milestone_id}", response_model=MilestoneDetailOut)
async def get_milestone(
  milestone_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> MilestoneDetailOut:
  m = await milestone_or_404(db, milestone_id, ctx.workspace_id)
  pres = await db.execute(select(Project).where(Project.id == m.project_id))
  p = pres.scalar_one()
  tres = await db.execute(select(Task).where(Task.milestone_id == m.id).order_by(Task.sort_order.asc(), Task.created_at.desc()))
  tasks = await task_outs(db, list(tres.scalars().all()))
  base = await _one_out(db, m)
  return MilestoneDetailOut(**base.model_dump(), project=project_out(p), tasks=tasks)


@router.patch("/{milestone_id}", response_model=MilestoneOut)
async def update_milestone(
  milestone_id: str,
  payload: MilestoneUpdateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> MilestoneOut:
  m = await milestone_or_404(db, milestone_id, ctx.workspace_id)
  fields = payload.model_fields_set

  if payload.projectId is not None:
    await project_or_404(db, payload.projectId, ctx.workspace_id)
    m.project_id = payload.projectId
  if payload.statusColumnId is not None:
    await column_or_404(db, payload.statusColumnId, ctx.workspace_id)
    m.status_column_id = payload.statusColumnId
  if "dependsOnMilestoneId" in fields:
    await _check_dependency(db, ctx, m.id, payload.dependsOnMilestoneId)
    m.depends_on_milestone_id = payload.dependsOnMilestoneId
  if payload.name is not None:
    m.name = payload.name
  if "description" in fields:
    m.description = payload.description
  if payload.value is not None:
    m.value = payload.value
  if payload.urgency is not None:
    m.urgency = payload.urgency
  if payload.effort is not None:
    m.effort = payload.effort
  if payload.priority is not None:
    m.priority = payload.priority
  if payload.sortOrder is not None:
    m.sort_order = payload.sortOrder
  if fields & {"value", "urgency", "effort"}:
    m.priority_score = priority_score(m.value, m.urgency, m.effort)

  await write_audit(
    db,
    event_type="milestone.updated",
    entity_type="Milestone",
    entity_id=m.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload=payload.model_dump(exclude_unset=True),
  )
  await db.commit()
  await db.refresh(m)
  return await _one_out(db, m)


@router.delete("/{milestone_id}")
async def delete_milestone(
  milestone_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> dict:
  m = await milestone_or_404(db, milestone_id, ctx.workspace_id)
  name = m.name
  await delete_milestones(db, [milestone_id])
  await write_audit(
    db,
    event_type="milestone.deleted",
    entity_type="Milestone",
    entity_id=milestone_id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"name": name},
  )
  await db.commit()
  return {"ok": True}


@router.get("/{milestone_id}/dependencies", response_model=MilestoneDependenciesOut)
async def get_milestone_dependencies(
  milestone_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> MilestoneDependenciesOut:
  m = await milestone_or_404(db, milestone_id, ctx.workspace_id)
  depends_on = None
  if m.depends_on_milestone_id:
    dres = await db.execute(select(Milestone).where(Milestone.id == m.depends_on_milestone_id))
    d = dres.scalar_one_or_none()
    if d:
      depends_on = RefOut(id=d.id, name=d.name)
  bres = await db.execute(select(Milestone).where(Milestone.depends_on_milestone_id == m.id).order_by(Milestone.name.asc()))
  blocks = [RefOut(id=b.id, name=b.name) for b in bres.scalars().all()]
  return MilestoneDependenciesOut(dependsOn=depends_on, blocks=blocks)


@router.put("/{milestone_id}/dependencies", response_model=MilestoneOut)
async def set_milestone_dependency(
  milestone_id: str,
  payload: MilestoneDependencyIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> MilestoneOut:
  m = await milestone_or_404(db, milestone_id, ctx.workspace_id)
  await _check_dependency(db, ctx, m.id, payload.dependsOnMilestoneId)
  m.depends_on_milestone_id = payload.dependsOnMilestoneId
  await write_audit(
    db,
    event_type="milestone.dependency.updated",
    entity_type="Milestone",
    entity_id=m.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"dependsOnMilestoneId": payload.dependsOnMilestoneId},
  )
  await db.commit()
  await db.refresh(m)
  return await _one_out(db, m)
