from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.deps import find_membership, get_current_user, get_db
from app.models import Column, User
from app.schemas import InitOut, InitStatusOut
from app.workspace_defaults import default_columns, initialize_user_workspace

router = APIRouter(prefix="/init", tags=["init"])


@router.get("", response_model=InitStatusOut)
async def init_status(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> InitStatusOut:
  m = await find_membership(db, user.id)
  if not m:
    return InitStatusOut(isInitialized=False, hasWorkspace=False, workspaceId=None, columnsCount=0)
  res = await db.execute(select(func.count()).select_from(Column).where(Column.workspace_id == m.workspace_id))
  count = int(res.scalar_one() or 0)
  return InitStatusOut(
    isInitialized=count >= len(default_columns()),
    hasWorkspace=True,
    workspaceId=m.workspace_id,
    columnsCount=count,
  )


@router.post("", response_model=InitOut)
async def initialize(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> InitOut:
  result = await initialize_user_workspace(db, user=user)
  if result.columns_created or result.tags_created or result.welcome_project_id:
    await write_audit(
      db,
      event_type="workspace.initialized",
      entity_type="Workspace",
      entity_id=result.workspace_id,
      workspace_id=result.workspace_id,
      actor_id=user.id,
      payload={
        "columnsCreated": result.columns_created,
        "tagsCreated": result.tags_created,
        "welcomeProjectId": result.welcome_project_id,
      },
    )
  await db.commit()
  return InitOut(
    workspaceId=result.workspace_id,
    columnsCreated=result.columns_created,
    tagsCreated=result.tags_created,
    welcomeProjectId=result.welcome_project_id,
  )
