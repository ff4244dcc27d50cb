from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.models import Column, Milestone, Project, Task, as_utc
from app.schemas import (
  ActivityOut,
  AnalyticsOut,
  AnalyticsOverviewOut,
  ColumnCountOut,
  EffortCountOut,
  PriorityCountOut,
  ProjectBreakdownOut,
  TrendPointOut,
)

router = APIRouter(prefix="/analytics", tags=["analytics"])

TREND_DAYS = 7
RECENT_PER_KIND = 5
RECENT_LIMIT = 10


def _parse_date(raw: str | None, name: str) -> datetime | None:
  if not raw:
    return None
  try:
    dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
  except ValueError:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {name}")
  return as_utc(dt)


def _trend_label(day: datetime) -> str:
  return f"{day:%a}, {day:%b} {day.day}"


def completion_trend(completed_at: list[datetime], *, today: datetime, days: int = TREND_DAYS) -> list[TrendPointOut]:
  start_of_today = datetime.combine(today.date(), time.min, tzinfo=timezone.utc)
  out: list[TrendPointOut] = []
  for i in range(days - 1, -1, -1):
    lo = start_of_today - timedelta(days=i)
    hi = lo + timedelta(days=1)
    out.append(TrendPointOut(date=_trend_label(lo), completed=sum(1 for c in completed_at if lo <= c < hi)))
  return out


@router.get("", response_model=AnalyticsOut)
async def get_analytics(
  projectId: str | None = Query(default=None),
  startDate: str | None = Query(default=None),
  endDate: str | None = Query(default=None),
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> AnalyticsOut:
  start = _parse_date(startDate, "startDate")
  end = _parse_date(endDate, "endDate")

  pq = select(Project).where(Project.workspace_id == ctx.workspace_id, Project.status == "ACTIVE")
  if projectId:
    pq = pq.where(Project.id == projectId)
  pres = await db.execute(pq.order_by(Project.sort_order.asc(), Project.created_at.desc()))
  projects = list(pres.scalars().all())
  project_ids = [p.id for p in projects]

  cres = await db.execute(select(Column).where(Column.workspace_id == ctx.workspace_id).order_by(Column.sort_order.asc()))
  columns = list(cres.scalars().all())
  column_keys = {c.id: c.key for c in columns}
  column_names = {c.id: c.name for c in columns}

  milestones: list[Milestone] = []
  tasks: list[tuple[Task, str]] = []
  if project_ids:
    mq = select(Milestone).where(Milestone.project_id.in_(project_ids))
    tq = (
      select(Task, Milestone.project_id)
      .join(Milestone, Milestone.id == Task.milestone_id)
      .where(Milestone.project_id.in_(project_ids))
    )
    if start:
      mq = mq.where(Milestone.created_at >= start)
      tq = tq.where(Task.created_at >= start)
    if end:
      mq = mq.where(Milestone.created_at <= end)
      tq = tq.where(Task.created_at <= end)
    milestones = list((await db.execute(mq)).scalars().all())
    tasks = [(t, pid) for t, pid in (await db.execute(tq)).all()]

  def is_done(t: Task) -> bool:
    return column_keys.get(t.status_column_id) == "COMPLETED"

  total = len(tasks)
  completed = sum(1 for t, _ in tasks if is_done(t))
  overview = AnalyticsOverviewOut(
    totalProjects=len(projects),
    totalMilestones=len(milestones),
    totalTasks=total,
    completedTasks=completed,
    completionRate=round(completed / total * 100) if total else 0,
  )

  by_column = [
    ColumnCountOut(column=c.name, columnKey=c.key, count=sum(1 for t, _ in tasks if t.status_column_id == c.id))
    for c in columns
  ]
  by_priority = [PriorityCountOut(priority=v, count=sum(1 for t, _ in tasks if t.value == v)) for v in ("HIGH", "MEDIUM", "LOW")]
  by_effort = [EffortCountOut(effort=e, count=sum(1 for t, _ in tasks if t.effort == e)) for e in ("SMALL", "MEDIUM", "LARGE")]

  trend = completion_trend(
    [as_utc(t.completed_at) for t, _ in tasks if t.completed_at is not None],
    today=datetime.now(timezone.utc),
  )

  breakdown = []
  for p in projects:
    p_tasks = [t for t, pid in tasks if pid == p.id]
    breakdown.append(
      ProjectBreakdownOut(
        projectId=p.id,
        projectName=p.name,
        milestones=sum(1 for m in milestones if m.project_id == p.id),
        tasks=len(p_tasks),
        completedTasks=sum(1 for t in p_tasks if is_done(t)),
      )
    )

  activity: list[ActivityOut] = []
  all_active = select(Project.id).where(Project.workspace_id == ctx.workspace_id, Project.status == "ACTIVE")
  rm = await db.execute(
    select(Milestone).where(Milestone.project_id.in_(all_active)).order_by(Milestone.updated_at.desc()).limit(RECENT_PER_KIND)
  )
  for m in rm.scalars().all():
    activity.append(
      ActivityOut(
        type="milestone",
        name=m.name,
        action=f"Moved to {column_names.get(m.status_column_id, 'Unknown')}",
        timestamp=as_utc(m.updated_at),
      )
    )
  rt = await db.execute(
    select(Task)
    .join(Milestone, Milestone.id == Task.milestone_id)
    .where(Milestone.project_id.in_(all_active))
    .order_by(Task.updated_at.desc())
    .limit(RECENT_PER_KIND)
  )
  for t in rt.scalars().all():
    activity.append(
      ActivityOut(
        type="task",
        name=t.name,
        action="Completed" if t.completed_at else f"Moved to {column_names.get(t.status_column_id, 'Unknown')}",
        timestamp=as_utc(t.updated_at),
      )
    )
  activity.sort(key=lambda a: a.timestamp, reverse=True)

  return AnalyticsOut(
    overview=overview,
    tasksByColumn=by_column,
    tasksByPriority=by_priority,
    tasksByEffort=by_effort,
    completionTrend=trend,
    projectBreakdown=breakdown,
    recentActivity=activity[:RECENT_LIMIT],
  )
