from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
  AIRecommendation,
  Column,
  Milestone,
  Project,
  Session as DbSession,
  Tag,
  Task,
  TaskTag,
  User,
  Workspace,
  WorkspaceInvitation,
  WorkspaceMember,
)


async def delete_tasks(db: AsyncSession, task_ids: list[str]) -> int:
  if not task_ids:
    return 0
  await db.execute(delete(TaskTag).where(TaskTag.task_id.in_(task_ids)))
  # Dependents lose their edge rather than blocking the delete.
  await db.execute(update(Task).where(Task.depends_on_task_id.in_(task_ids)).values(depends_on_task_id=None))
  await db.execute(delete(Task).where(Task.id.in_(task_ids)))
  return len(task_ids)


async def delete_milestones(db: AsyncSession, milestone_ids: list[str]) -> int:
  if not milestone_ids:
    return 0
  tres = await db.execute(select(Task.id).where(Task.milestone_id.in_(milestone_ids)))
  await delete_tasks(db, list(tres.scalars().all()))
  await db.execute(
    update(Milestone).where(Milestone.depends_on_milestone_id.in_(milestone_ids)).values(depends_on_milestone_id=None)
  )
  await db.execute(delete(Milestone).where(Milestone.id.in_(milestone_ids)))
  return len(milestone_ids)


async def delete_projects(db: AsyncSession, project_ids: list[str]) -> int:
  if not project_ids:
    return 0
  mres = await db.execute(select(Milestone.id).where(Milestone.project_id.in_(project_ids)))
  await delete_milestones(db, list(mres.scalars().all()))
  await db.execute(delete(Project).where(Project.id.in_(project_ids)))
  return len(project_ids)


@dataclass
class AccountDeletion:
  workspace_deleted: bool
  projects_deleted: int


async def delete_workspace(db: AsyncSession, workspace_id: str) -> int:
  pres = await db.execute(select(Project.id).where(Project.workspace_id == workspace_id))
  projects = await delete_projects(db, list(pres.scalars().all()))
  tres = await db.execute(select(Tag.id).where(Tag.workspace_id == workspace_id))
  tag_ids = list(tres.scalars().all())
  if tag_ids:
    await db.execute(delete(TaskTag).where(TaskTag.tag_id.in_(tag_ids)))
    await db.execute(delete(Tag).where(Tag.id.in_(tag_ids)))
  await db.execute(delete(Column).where(Column.workspace_id == workspace_id))
  await db.execute(delete(AIRecommendation).where(AIRecommendation.workspace_id == workspace_id))
  await db.execute(delete(WorkspaceInvitation).where(WorkspaceInvitation.workspace_id == workspace_id))
  await db.execute(delete(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace_id))
  await db.execute(delete(Workspace).where(Workspace.id == workspace_id))
  return projects


async def delete_account(db: AsyncSession, user: User) -> AccountDeletion:
  """
  Remove a user and everything they own.

  Workspaces the user owns go with them (board data, columns, tags,
  invitations, memberships). Memberships elsewhere are simply dropped.
  """
  mres = await db.execute(select(WorkspaceMember).where(WorkspaceMember.user_id == user.id))
  memberships = list(mres.scalars().all())
  workspace_deleted = False
  projects = 0
  for m in memberships:
    if m.role == "OWNER":
      projects += await delete_workspace(db, m.workspace_id)
      workspace_deleted = True
  await db.execute(delete(WorkspaceMember).where(WorkspaceMember.user_id == user.id))
  await db.execute(delete(AIRecommendation).where(AIRecommendation.user_id == user.id))
  await db.execute(delete(DbSession).where(DbSession.user_id == user.id))
  await db.execute(delete(User).where(User.id == user.id))
  return AccountDeletion(workspace_deleted=workspace_deleted, projects_deleted=projects)
