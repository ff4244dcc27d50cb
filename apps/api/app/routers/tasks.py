from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.cascade import delete_tasks
from app.dependency_guard import task_lookup, would_create_cycle
from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.models import Column, Milestone, Project, Tag, Task, TaskTag, utcnow
from app.schemas import TaskCreateIn, TaskOut, TaskTagsIn, TaskUpdateIn
from app.scoring import priority_score
from app.views import task_outs
from app.workspace_scope import column_or_404, milestone_or_404, task_or_404

router = APIRouter(prefix="/tasks", tags=["tasks"])


async def _one_out(db: AsyncSession, t: Task) -> TaskOut:
  return (await task_outs(db, [t]))[0]


def _apply_column_completion(t: Task, column: Column) -> None:
  if column.key == "COMPLETED":
    if t.completed_at is None:
      t.completed_at = utcnow()
  else:
    t.completed_at = None


@router.get("", response_model=list[TaskOut])
async def list_tasks(
  milestoneId: str | None = Query(default=None),
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> list[TaskOut]:
  q = (
    select(Task)
    .join(Milestone, Milestone.id == Task.milestone_id)
    .join(Project, Project.id == Milestone.project_id)
    .where(Project.workspace_id == ctx.workspace_id)
  )
  if milestoneId:
    await milestone_or_404(db, milestoneId, ctx.workspace_id)
    q = q.where(Task.milestone_id == milestoneId)
  res = await db.execute(q.order_by(Task.sort_order.asc(), Task.created_at.desc()))
  return await task_outs(db, list(res.scalars().all()))


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
  payload: TaskCreateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  m = await milestone_or_404(db, payload.milestoneId, ctx.workspace_id)
  column = await column_or_404(db, payload.statusColumnId, ctx.workspace_id)
  if payload.dependsOnTaskId:
    await task_or_404(db, payload.dependsOnTaskId, ctx.workspace_id, detail="Dependency task not found")

  res = await db.execute(select(func.max(Task.sort_order)).where(Task.milestone_id == m.id))
  last = res.scalar_one()
  t = Task(
    milestone_id=m.id,
    status_column_id=column.id,
    depends_on_task_id=payload.dependsOnTaskId,
    name=payload.name,
    description=payload.description,
    value=payload.value,
    urgency=payload.urgency,
    effort=payload.effort,
    priority=payload.priority,
    priority_score=priority_score(payload.value, payload.urgency, payload.effort),
    sort_order=(last + 1) if last is not None else 0,
  )
  if column.key == "COMPLETED":
    t.completed_at = utcnow()
  db.add(t)
  await db.flush()
  await write_audit(
    db,
    event_type="task.created",
    entity_type="Task",
    entity_id=t.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"name": t.name, "milestoneId": m.id},
  )
  await db.commit()
  return await _one_out(db, t)


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
  task_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  t = await task_or_404(db, task_id, ctx.workspace_id)
  return await _one_out(db, t)


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: str,
  payload: TaskUpdateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  t = await task_or_404(db, task_id, ctx.workspace_id)
  fields = payload.model_fields_set

  if payload.milestoneId is not None:
    await milestone_or_404(db, payload.milestoneId, ctx.workspace_id)
    t.milestone_id = payload.milestoneId
  if "dependsOnTaskId" in fields:
    dep = payload.dependsOnTaskId
    if dep and dep != t.id:
      await task_or_404(db, dep, ctx.workspace_id, detail="Dependency task not found")
    if await would_create_cycle(t.id, dep, task_lookup(db)):
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This would create a circular dependency")
    t.depends_on_task_id = dep
  if payload.statusColumnId is not None and payload.statusColumnId != t.status_column_id:
    column = await column_or_404(db, payload.statusColumnId, ctx.workspace_id)
    t.status_column_id = column.id
    _apply_column_completion(t, column)
  if "completedAt" in fields:
    t.completed_at = payload.completedAt
  if payload.name is not None:
    t.name = payload.name
  if "description" in fields:
    t.description = payload.description
  if payload.value is not None:
    t.value = payload.value
  if payload.urgency is not None:
    t.urgency = payload.urgency
  if payload.effort is not None:
    t.effort = payload.effort
  if payload.priority is not None:
    t.priority = payload.priority
  if payload.sortOrder is not None:
    t.sort_order = payload.sortOrder
  if fields & {"value", "urgency", "effort"}:
    t.priority_score = priority_score(t.value, t.urgency, t.effort)

  await write_audit(
    db,
    event_type="task.updated",
    entity_type="Task",
    entity_id=t.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload=payload.model_dump(exclude_unset=True),
  )
  await db.commit()
  await db.refresh(t)
  return await _one_out(db, t)


@router.delete("/{task_id}")
async def delete_task(
  task_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> dict:
  t = await task_or_404(db, task_id, ctx.workspace_id)
  name = t.name
  await delete_tasks(db, [task_id])
  await write_audit(
    db,
    event_type="task.deleted",
    entity_type="Task",
    entity_id=task_id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"name": name},
  )
  await db.commit()
  return {"ok": True}


@router.put("/{task_id}/tags", response_model=TaskOut)
async def set_task_tags(
  task_id: str,
  payload: TaskTagsIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  t = await task_or_404(db, task_id, ctx.workspace_id)
  tag_ids = list(dict.fromkeys(payload.tagIds))
  if tag_ids:
    res = await db.execute(select(Tag.id).where(Tag.id.in_(tag_ids), Tag.workspace_id == ctx.workspace_id))
    if len(set(res.scalars().all())) != len(tag_ids):
      raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="One or more tags not found")

  await db.execute(delete(TaskTag).where(TaskTag.task_id == t.id))
  for tag_id in tag_ids:
    db.add(TaskTag(task_id=t.id, tag_id=tag_id))
  await write_audit(
    db,
    event_type="task.tags.updated",
    entity_type="Task",
    entity_id=t.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"tagIds": tag_ids},
  )
  await db.commit()
  return await _one_out(db, t)
