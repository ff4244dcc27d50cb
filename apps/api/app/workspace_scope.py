from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Column, Milestone, Project, Task


async def project_or_404(db: AsyncSession, project_id: str, workspace_id: str, *, detail: str = "Project not found") -> Project:
  res = await db.execute(select(Project).where(Project.id == project_id, Project.workspace_id == workspace_id))
  p = res.scalar_one_or_none()
  if not p:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
  return p


async def milestone_or_404(db: AsyncSession, milestone_id: str, workspace_id: str, *, detail: str = "Milestone not found") -> Milestone:
  res = await db.execute(
    select(Milestone)
    .join(Project, Project.id == Milestone.project_id)
    .where(Milestone.id == milestone_id, Project.workspace_id == workspace_id)
  )
  m = res.scalar_one_or_none()
  if not m:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
  return m


async def task_or_404(db: AsyncSession, task_id: str, workspace_id: str, *, detail: str = "Task not found") -> Task:
  res = await db.execute(
    select(Task)
    .join(Milestone, Milestone.id == Task.milestone_id)
    .join(Project, Project.id == Milestone.project_id)
    .where(Task.id == task_id, Project.workspace_id == workspace_id)
  )
  t = res.scalar_one_or_none()
  if not t:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
  return t


async def column_or_404(db: AsyncSession, column_id: str, workspace_id: str) -> Column:
  res = await db.execute(select(Column).where(Column.id == column_id, Column.workspace_id == workspace_id))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Column not found")
  return c
