from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import COLUMN_KEYS, Column, Milestone, Project, Tag, Task, TaskTag
from app.scoring import priority_score


@dataclass
class BoardItem:
  id: str
  type: Literal["MILESTONE", "TASK"]
  name: str
  description: str | None
  value: str
  urgency: str
  effort: str
  statusColumnKey: str
  statusColumnName: str
  projectId: str
  projectName: str
  milestoneId: str | None = None
  milestoneName: str | None = None
  dependsOnId: str | None = None
  dependsOnName: str | None = None
  dependsOnCompleted: bool = False
  blockedCount: int = 0
  priorityScore: float = 0.0
  tags: list[str] = field(default_factory=list)
  isCompleted: bool = False

  def to_dict(self) -> dict[str, Any]:
    return asdict(self)


async def _dependency_state(
  db: AsyncSession,
  columns: dict[str, Column],
  *,
  milestone_ids: set[str],
  task_ids: set[str],
) -> dict[str, tuple[str, bool]]:
  """Name and completion of each dependency target, whether or not it is in the analyzed scope."""
  state: dict[str, tuple[str, bool]] = {}
  if milestone_ids:
    res = await db.execute(
      select(Milestone.id, Milestone.name, Milestone.status_column_id).where(Milestone.id.in_(list(milestone_ids)))
    )
    for mid, name, column_id in res.all():
      col = columns.get(column_id)
      state[mid] = (name, col is not None and col.key == "COMPLETED")
  if task_ids:
    res = await db.execute(
      select(Task.id, Task.name, Task.status_column_id, Task.completed_at).where(Task.id.in_(list(task_ids)))
    )
    for tid, name, column_id, completed_at in res.all():
      col = columns.get(column_id)
      state[tid] = (name, completed_at is not None or (col is not None and col.key == "COMPLETED"))
  return state


async def fetch_board_items(
  db: AsyncSession,
  *,
  workspace_id: str,
  include_completed: bool = False,
  focus_project_id: str | None = None,
) -> list[BoardItem]:
  """Milestones and tasks of the workspace's ACTIVE projects, flattened for the AI pipeline."""
  pq = select(Project).where(Project.workspace_id == workspace_id, Project.status == "ACTIVE")
  if focus_project_id:
    pq = pq.where(Project.id == focus_project_id)
  projects = {p.id: p for p in (await db.execute(pq)).scalars().all()}
  if not projects:
    return []

  cres = await db.execute(select(Column).where(Column.workspace_id == workspace_id))
  columns = {c.id: c for c in cres.scalars().all()}

  mres = await db.execute(
    select(Milestone).where(Milestone.project_id.in_(list(projects.keys()))).order_by(Milestone.sort_order.asc())
  )
  milestones = list(mres.scalars().all())
  milestone_map = {m.id: m for m in milestones}

  tasks: list[Task] = []
  if milestone_map:
    tres = await db.execute(
      select(Task).where(Task.milestone_id.in_(list(milestone_map.keys()))).order_by(Task.sort_order.asc())
    )
    tasks = list(tres.scalars().all())
  task_map = {t.id: t for t in tasks}

  dep_state = await _dependency_state(
    db,
    columns,
    milestone_ids={m.depends_on_milestone_id for m in milestones if m.depends_on_milestone_id},
    task_ids={t.depends_on_task_id for t in tasks if t.depends_on_task_id},
  )

  tag_names: dict[str, list[str]] = {}
  if task_map:
    tgres = await db.execute(
      select(TaskTag.task_id, Tag.name).join(Tag, Tag.id == TaskTag.tag_id).where(TaskTag.task_id.in_(list(task_map.keys())))
    )
    for task_id, tag_name in tgres.all():
      tag_names.setdefault(task_id, []).append(tag_name)

  blocked_counts: Counter[str] = Counter()
  for m in milestones:
    if m.depends_on_milestone_id:
      blocked_counts[m.depends_on_milestone_id] += 1
  for t in tasks:
    if t.depends_on_task_id:
      blocked_counts[t.depends_on_task_id] += 1

  items: list[BoardItem] = []
  for m in milestones:
    col = columns.get(m.status_column_id)
    if col is None:
      continue
    done = col.key == "COMPLETED"
    if done and not include_completed:
      continue
    project = projects[m.project_id]
    dep_name, dep_done = dep_state.get(m.depends_on_milestone_id, (None, True))
    items.append(
      BoardItem(
        id=m.id,
        type="MILESTONE",
        name=m.name,
        description=m.description,
        value=m.value,
        urgency=m.urgency,
        effort=m.effort,
        statusColumnKey=col.key,
        statusColumnName=col.name,
        projectId=project.id,
        projectName=project.name,
        dependsOnId=m.depends_on_milestone_id,
        dependsOnName=dep_name,
        dependsOnCompleted=dep_done,
        blockedCount=blocked_counts.get(m.id, 0),
        priorityScore=priority_score(m.value, m.urgency, m.effort),
        isCompleted=done,
      )
    )

  for t in tasks:
    col = columns.get(t.status_column_id)
    if col is None:
      continue
    done = col.key == "COMPLETED" or t.completed_at is not None
    if done and not include_completed:
      continue
    milestone = milestone_map[t.milestone_id]
    project = projects[milestone.project_id]
    dep_name, dep_done = dep_state.get(t.depends_on_task_id, (None, True))
    items.append(
      BoardItem(
        id=t.id,
        type="TASK",
        name=t.name,
        description=t.description,
        value=t.value,
        urgency=t.urgency,
        effort=t.effort,
        statusColumnKey=col.key,
        statusColumnName=col.name,
        projectId=project.id,
        projectName=project.name,
        milestoneId=milestone.id,
        milestoneName=milestone.name,
        dependsOnId=t.depends_on_task_id,
        dependsOnName=dep_name,
        dependsOnCompleted=dep_done,
        blockedCount=blocked_counts.get(t.id, 0),
        priorityScore=priority_score(t.value, t.urgency, t.effort),
        tags=sorted(tag_names.get(t.id, [])),
        isCompleted=done,
      )
    )
  return items


def column_distribution(items: list[BoardItem]) -> dict[str, int]:
  counts = Counter(i.statusColumnKey for i in items)
  return {key: counts.get(key, 0) for key in COLUMN_KEYS}


def identify_blocked_items(items: list[BoardItem]) -> list[str]:
  return [i.id for i in items if i.dependsOnId and not i.dependsOnCompleted]


def identify_blocker_items(items: list[BoardItem]) -> list[str]:
  return [i.id for i in items if i.blockedCount > 0]


def format_board_items(items: list[BoardItem]) -> str:
  summary = {
    "totalItems": len(items),
    "milestones": sum(1 for i in items if i.type == "MILESTONE"),
    "tasks": sum(1 for i in items if i.type == "TASK"),
    "distribution": column_distribution(items),
    "blockedItems": identify_blocked_items(items),
    "blockerItems": identify_blocker_items(items),
  }
  formatted = [
    {
      "id": i.id,
      "type": i.type,
      "name": i.name,
      "description": (i.description or "")[:100] or None,
      "value": i.value,
      "urgency": i.urgency,
      "effort": i.effort,
      "column": i.statusColumnKey,
      "priorityScore": i.priorityScore,
      "project": i.projectName,
      "milestone": i.milestoneName,
      "dependsOn": i.dependsOnName,
      "blocks": i.blockedCount,
      "tags": i.tags,
    }
    for i in items
  ]
  return json.dumps({"summary": summary, "items": formatted}, indent=2, ensure_ascii=False)
