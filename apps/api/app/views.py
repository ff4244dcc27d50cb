from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Column, Milestone, Project, Tag, Task, TaskTag
from app.schemas import ColumnOut, MilestoneOut, ProjectOut, RefOut, TagOut, TaskOut


def column_out(c: Column) -> ColumnOut:
  return ColumnOut(id=c.id, key=c.key, name=c.name, sortOrder=c.sort_order)


def tag_out(t: Tag, task_count: int = 0) -> TagOut:
  return TagOut(id=t.id, name=t.name, color=t.color, taskCount=task_count)


def project_out(p: Project, milestone_count: int = 0) -> ProjectOut:
  return ProjectOut(
    id=p.id,
    workspaceId=p.workspace_id,
    name=p.name,
    description=p.description,
    status=p.status,
    priority=p.priority,
    sortOrder=p.sort_order,
    milestoneCount=milestone_count,
    createdAt=p.created_at,
    updatedAt=p.updated_at,
  )


def milestone_out(
  m: Milestone,
  *,
  column: Column | None = None,
  depends_on: Milestone | None = None,
  task_count: int = 0,
) -> MilestoneOut:
  return MilestoneOut(
    id=m.id,
    projectId=m.project_id,
    name=m.name,
    description=m.description,
    value=m.value,
    urgency=m.urgency,
    effort=m.effort,
    priority=m.priority,
    priorityScore=m.priority_score,
    sortOrder=m.sort_order,
    statusColumnId=m.status_column_id,
    statusColumn=column_out(column) if column else None,
    dependsOnMilestoneId=m.depends_on_milestone_id,
    dependsOn=RefOut(id=depends_on.id, name=depends_on.name) if depends_on else None,
    taskCount=task_count,
    createdAt=m.created_at,
    updatedAt=m.updated_at,
  )


def task_out(
  t: Task,
  *,
  column: Column | None = None,
  depends_on: Task | None = None,
  milestone: Milestone | None = None,
  tags: list[Tag] | None = None,
) -> TaskOut:
  return TaskOut(
    id=t.id,
    milestoneId=t.milestone_id,
    milestone=RefOut(id=milestone.id, name=milestone.name) if milestone else None,
    projectId=milestone.project_id if milestone else None,
    name=t.name,
    description=t.description,
    value=t.value,
    urgency=t.urgency,
    effort=t.effort,
    priority=t.priority,
    priorityScore=t.priority_score,
    sortOrder=t.sort_order,
    statusColumnId=t.status_column_id,
    statusColumn=column_out(column) if column else None,
    dependsOnTaskId=t.depends_on_task_id,
    dependsOn=RefOut(id=depends_on.id, name=depends_on.name) if depends_on else None,
    completedAt=t.completed_at,
    tags=[tag_out(tg) for tg in sorted(tags or [], key=lambda x: x.name.lower())],
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


async def _columns_by_id(db: AsyncSession, ids: set[str]) -> dict[str, Column]:
  if not ids:
    return {}
  res = await db.execute(select(Column).where(Column.id.in_(list(ids))))
  return {c.id: c for c in res.scalars().all()}


async def milestone_outs(db: AsyncSession, milestones: list[Milestone]) -> list[MilestoneOut]:
  if not milestones:
    return []
  columns = await _columns_by_id(db, {m.status_column_id for m in milestones})
  dep_ids = {m.depends_on_milestone_id for m in milestones if m.depends_on_milestone_id}
  deps: dict[str, Milestone] = {}
  if dep_ids:
    dres = await db.execute(select(Milestone).where(Milestone.id.in_(list(dep_ids))))
    deps = {d.id: d for d in dres.scalars().all()}
  cres = await db.execute(
    select(Task.milestone_id, func.count())
    .where(Task.milestone_id.in_([m.id for m in milestones]))
    .group_by(Task.milestone_id)
  )
  counts = {mid: int(n) for mid, n in cres.all()}
  return [
    milestone_out(
      m,
      column=columns.get(m.status_column_id),
      depends_on=deps.get(m.depends_on_milestone_id) if m.depends_on_milestone_id else None,
      task_count=counts.get(m.id, 0),
    )
    for m in milestones
  ]


async def task_outs(db: AsyncSession, tasks: list[Task]) -> list[TaskOut]:
  if not tasks:
    return []
  columns = await _columns_by_id(db, {t.status_column_id for t in tasks})
  mres = await db.execute(select(Milestone).where(Milestone.id.in_(list({t.milestone_id for t in tasks}))))
  milestones = {m.id: m for m in mres.scalars().all()}
  dep_ids = {t.depends_on_task_id for t in tasks if t.depends_on_task_id}
  deps: dict[str, Task] = {}
  if dep_ids:
    dres = await db.execute(select(Task).where(Task.id.in_(list(dep_ids))))
    deps = {d.id: d for d in dres.scalars().all()}
  tres = await db.execute(
    select(TaskTag.task_id, Tag).join(Tag, Tag.id == TaskTag.tag_id).where(TaskTag.task_id.in_([t.id for t in tasks]))
  )
  tags: dict[str, list[Tag]] = {}
  for task_id, tag in tres.all():
    tags.setdefault(task_id, []).append(tag)
  return [
    task_out(
      t,
      column=columns.get(t.status_column_id),
      depends_on=deps.get(t.depends_on_task_id) if t.depends_on_task_id else None,
      milestone=milestones.get(t.milestone_id),
      tags=tags.get(t.id, []),
    )
    for t in tasks
  ]
