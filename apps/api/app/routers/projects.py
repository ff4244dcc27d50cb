from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.cascade import delete_projects
from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.models import Milestone, Project
from app.schemas import ProjectCreateIn, ProjectDetailOut, ProjectOut, ProjectUpdateIn
from app.views import milestone_outs, project_out
from app.workspace_scope import project_or_404

router = APIRouter(prefix="/projects", tags=["projects"])


async def _milestone_count(db: AsyncSession, project_id: str) -> int:
  res = await db.execute(select(func.count()).select_from(Milestone).where(Milestone.project_id == project_id))
  return int(res.scalar_one() or 0)


@router.get("", response_model=list[ProjectOut])
async def list_projects(
  status_filter: str | None = Query(default=None, alias="status"),
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> list[ProjectOut]:
  q = select(Project).where(Project.workspace_id == ctx.workspace_id)
  if status_filter:
    q = q.where(Project.status == status_filter.upper())
  res = await db.execute(q.order_by(Project.sort_order.asc(), Project.created_at.desc()))
  projects = list(res.scalars().all())
  counts: dict[str, int] = {}
  if projects:
    cres = await db.execute(
      select(Milestone.project_id, func.count())
      .where(Milestone.project_id.in_([p.id for p in projects]))
      .group_by(Milestone.project_id)
    )
    counts = {pid: int(n) for pid, n in cres.all()}
  return [project_out(p, counts.get(p.id, 0)) for p in projects]


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
  payload: ProjectCreateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> ProjectOut:
  res = await db.execute(select(func.max(Project.sort_order)).where(Project.workspace_id == ctx.workspace_id))
  last = res.scalar_one()
  p = Project(
    workspace_id=ctx.workspace_id,
    created_by_id=ctx.user_id,
    name=payload.name,
    description=payload.description,
    status=payload.status,
    priority=payload.priority,
    sort_order=(last + 1) if last is not None else 0,
  )
  db.add(p)
  await db.flush()
  await write_audit(
    db,
    event_type="project.created",
    entity_type="Project",
    entity_id=p.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"name": p.name},
  )
  await db.commit()
  return project_out(p)


@router.get("/{project_id}", response_model=ProjectDetailOut)
async def get_project(
  project_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> ProjectDetailOut:
  p = await project_or_404(db, project_id, ctx.workspace_id)
  res = await db.execute(
    select(Milestone).where(Milestone.project_id == p.id).order_by(Milestone.sort_order.asc(), Milestone.created_at.desc())
  )
  milestones = await milestone_outs(db, list(res.scalars().all()))
  return ProjectDetailOut(**project_out(p, len(milestones)).model_dump(), milestones=milestones)


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project(
  project_id: str,
  payload: ProjectUpdateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> ProjectOut:
  p = await project_or_404(db, project_id, ctx.workspace_id)
  fields = payload.model_fields_set
  if payload.name is not None:
    p.name = payload.name
  if "description" in fields:
    p.description = payload.description
  if payload.status is not None:
    p.status = payload.status
  if payload.priority is not None:
    p.priority = payload.priority
  if payload.sortOrder is not None:
    p.sort_order = payload.sortOrder
  await write_audit(
    db,
    event_type="project.updated",
    entity_type="Project",
    entity_id=p.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload=payload.model_dump(exclude_unset=True),
  )
  await db.commit()
  await db.refresh(p)
  return project_out(p, await _milestone_count(db, p.id))


@router.delete("/{project_id}")
async def delete_project(
  project_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> dict:
  p = await project_or_404(db, project_id, ctx.workspace_id)
  name = p.name
  await delete_projects(db, [project_id])
  await write_audit(
    db,
    event_type="project.deleted",
    entity_type="Project",
    entity_id=project_id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"name": name},
  )
  await db.commit()
  return {"ok": True}
