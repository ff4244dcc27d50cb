from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Column, Milestone, Project, Tag, Task, User, Workspace, WorkspaceMember
from app.scoring import priority_score

logger = logging.getLogger(__name__)

WELCOME_PROJECT_NAME = "Welcome to AI-Powered Kanban! 👋"


def default_columns() -> list[dict]:
  return [
    {"key": "PROJECTS", "name": "Projects", "sort_order": 0},
    {"key": "MILESTONES", "name": "Milestones", "sort_order": 1},
    {"key": "BACKLOG", "name": "Backlog", "sort_order": 2},
    {"key": "WORKING", "name": "Working", "sort_order": 3},
    {"key": "READY_TEST", "name": "Ready for Test", "sort_order": 4},
    {"key": "AGENT_TESTING", "name": "Agent Testing", "sort_order": 5},
    {"key": "DEPLOYED_TESTING", "name": "Deployed/Testing", "sort_order": 6},
    {"key": "COMPLETED", "name": "Completed", "sort_order": 7},
  ]


def default_tags() -> list[dict]:
  return [
    {"name": "Frontend", "color": "#3b82f6"},
    {"name": "Backend", "color": "#8b5cf6"},
    {"name": "Bug", "color": "#ef4444"},
    {"name": "Feature", "color": "#10b981"},
    {"name": "Urgent", "color": "#f59e0b"},
  ]


@dataclass
class InitResult:
  workspace_id: str
  columns_created: int
  tags_created: int
  welcome_project_id: str | None


async def ensure_workspace_columns(db: AsyncSession, *, workspace_id: str) -> int:
  """
  Ensure a workspace has every workflow column.

  Idempotent: existing keys keep their name and position.
  """
  res = await db.execute(select(Column.key).where(Column.workspace_id == workspace_id))
  existing = set(res.scalars().all())
  created = 0
  for item in default_columns():
    if item["key"] in existing:
      continue
    db.add(Column(workspace_id=workspace_id, key=item["key"], name=item["name"], sort_order=item["sort_order"]))
    created += 1
  if created:
    await db.flush()
  return created


async def ensure_workspace_tags(db: AsyncSession, *, workspace_id: str) -> int:
  # Only seeds a workspace that has no tags at all; deleted defaults stay deleted.
  res = await db.execute(select(Tag.id).where(Tag.workspace_id == workspace_id).limit(1))
  if res.scalar_one_or_none():
    return 0
  for item in default_tags():
    db.add(Tag(workspace_id=workspace_id, name=item["name"], color=item["color"]))
  await db.flush()
  return len(default_tags())


async def ensure_welcome_project(db: AsyncSession, *, workspace_id: str, user_id: str) -> str | None:
  res = await db.execute(select(Project.id).where(Project.workspace_id == workspace_id).limit(1))
  if res.scalar_one_or_none():
    return None

  cres = await db.execute(
    select(Column).where(Column.workspace_id == workspace_id, Column.key.in_(["MILESTONES", "BACKLOG"]))
  )
  cols = {c.key: c for c in cres.scalars().all()}
  if "MILESTONES" not in cols or "BACKLOG" not in cols:
    logger.error("workspace %s is missing default columns; skipping welcome project", workspace_id)
    return None

  project = Project(
    workspace_id=workspace_id,
    created_by_id=user_id,
    name=WELCOME_PROJECT_NAME,
    description="Get started with your intelligent task management system",
    status="ACTIVE",
    priority=1,
    sort_order=0,
  )
  db.add(project)
  await db.flush()

  milestone = Milestone(
    project_id=project.id,
    name="Learn the basics",
    description="Explore the features of your new Kanban board",
    value="HIGH",
    urgency="MEDIUM",
    effort="SMALL",
    priority=1,
    priority_score=priority_score("HIGH", "MEDIUM", "SMALL"),
    status_column_id=cols["MILESTONES"].id,
    sort_order=0,
  )
  db.add(milestone)
  await db.flush()

  db.add(
    Task(
      milestone_id=milestone.id,
      name="Explore the Kanban board",
      description="Drag cards between columns, open items for details, and try AI Prioritize.",
      value="MEDIUM",
      urgency="LOW",
      effort="SMALL",
      priority=1,
      priority_score=priority_score("MEDIUM", "LOW", "SMALL"),
      status_column_id=cols["BACKLOG"].id,
      sort_order=0,
    )
  )
  await db.flush()
  return project.id


async def initialize_user_workspace(db: AsyncSession, *, user: User) -> InitResult:
  """
  Create the user's workspace (as OWNER) when they have none, then seed
  columns, tags and the welcome project. Safe to call repeatedly.
  """
  res = await db.execute(
    select(WorkspaceMember).where(WorkspaceMember.user_id == user.id).order_by(WorkspaceMember.joined_at.asc()).limit(1)
  )
  membership = res.scalar_one_or_none()
  if membership:
    workspace_id = membership.workspace_id
  else:
    ws = Workspace(name=f"{user.name}'s Workspace")
    db.add(ws)
    await db.flush()
    db.add(WorkspaceMember(workspace_id=ws.id, user_id=user.id, role="OWNER"))
    await db.flush()
    workspace_id = ws.id
    logger.info("created workspace %s for user %s", workspace_id, user.id)

  columns_created = await ensure_workspace_columns(db, workspace_id=workspace_id)
  tags_created = await ensure_workspace_tags(db, workspace_id=workspace_id)
  welcome_id = await ensure_welcome_project(db, workspace_id=workspace_id, user_id=user.id)
  return InitResult(
    workspace_id=workspace_id,
    columns_created=columns_created,
    tags_created=tags_created,
    welcome_project_id=welcome_id,
  )
