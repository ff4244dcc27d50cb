from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.importer import parse_outline
from app.models import Column, Milestone, Project, Task
from app.schemas import OutlineImportIn, OutlineImportOut, RefOut
from app.scoring import priority_score

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/import", tags=["import"])


@router.post("/text", response_model=OutlineImportOut, status_code=status.HTTP_201_CREATED)
async def import_outline(
  payload: OutlineImportIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> OutlineImportOut:
  project_name = payload.projectName
  if not payload.content.strip():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project name and content are required")

  cres = await db.execute(select(Column).where(Column.workspace_id == ctx.workspace_id, Column.key == "BACKLOG"))
  backlog = cres.scalar_one_or_none()
  if not backlog:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Backlog column not found")

  outline = parse_outline(payload.content)

  pres = await db.execute(select(Project).where(Project.workspace_id == ctx.workspace_id, Project.name == project_name))
  project = pres.scalars().first()
  created = project is None
  if project is None:
    sres = await db.execute(select(func.max(Project.sort_order)).where(Project.workspace_id == ctx.workspace_id))
    last = sres.scalar_one()
    project = Project(
      workspace_id=ctx.workspace_id,
      created_by_id=ctx.user_id,
      name=project_name,
      status="ACTIVE",
      priority=0,
      sort_order=(last + 1) if last is not None else 0,
    )
    db.add(project)
    await db.flush()

  mres = await db.execute(select(func.max(Milestone.sort_order)).where(Milestone.project_id == project.id))
  last_m = mres.scalar_one()
  next_order = (last_m + 1) if last_m is not None else 0
  score = priority_score("MEDIUM", "MEDIUM", "MEDIUM")
  task_count = 0
  for offset, om in enumerate(outline):
    m = Milestone(
      project_id=project.id,
      status_column_id=backlog.id,
      name=om.name,
      value="MEDIUM",
      urgency="MEDIUM",
      effort="MEDIUM",
      priority_score=score,
      sort_order=next_order + offset,
    )
    db.add(m)
    await db.flush()
    for idx, name in enumerate(om.tasks):
      db.add(
        Task(
          milestone_id=m.id,
          status_column_id=backlog.id,
          name=name,
          value="MEDIUM",
          urgency="MEDIUM",
          effort="MEDIUM",
          priority_score=score,
          sort_order=idx,
        )
      )
    task_count += len(om.tasks)

  await write_audit(
    db,
    event_type="project.imported",
    entity_type="Project",
    entity_id=project.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"created": created, "milestones": len(outline), "tasks": task_count},
  )
  await db.commit()
  logger.info("imported %d milestone(s), %d task(s) into project %s", len(outline), task_count, project.id)
  return OutlineImportOut(
    project=RefOut(id=project.id, name=project.name),
    created=created,
    milestoneCount=len(outline),
    taskCount=task_count,
  )
