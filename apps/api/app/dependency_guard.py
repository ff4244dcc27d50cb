from __future__ import annotations

from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Milestone, Task

DependencyLookup = Callable[[str], Awaitable[str | None]]


async def would_create_cycle(node_id: str, depends_on_id: str | None, lookup: DependencyLookup) -> bool:
  """
  True when pointing `node_id` at `depends_on_id` closes a loop.

  Each node has at most one outgoing edge, so the chain starting at the
  proposed target is walked until it ends, reaches `node_id`, or repeats.
  """
  if not depends_on_id:
    return False
  if depends_on_id == node_id:
    return True

  visited: set[str] = set()
  current: str | None = depends_on_id
  while current:
    if current == node_id or current in visited:
      return True
    visited.add(current)
    current = await lookup(current)
  return False


def milestone_lookup(db: AsyncSession) -> DependencyLookup:
  async def _next(milestone_id: str) -> str | None:
    res = await db.execute(select(Milestone.depends_on_milestone_id).where(Milestone.id == milestone_id))
    return res.scalar_one_or_none()

  return _next


def task_lookup(db: AsyncSession) -> DependencyLookup:
  async def _next(task_id: str) -> str | None:
    res = await db.execute(select(Task.depends_on_task_id).where(Task.id == task_id))
    return res.scalar_one_or_none()

  return _next
