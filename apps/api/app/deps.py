from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Cookie, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import SessionLocal
from app.models import Session as DbSession, User, WorkspaceMember, as_utc
from app.security import SESSION_COOKIE_NAME


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


async def get_current_user(
  db: AsyncSession = Depends(get_db),
  session_id: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> User:
  if not session_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

  res = await db.execute(select(DbSession).where(DbSession.id == session_id))
  s = res.scalar_one_or_none()
  if not s:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
  if as_utc(s.expires_at) < datetime.now(timezone.utc):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")

  ures = await db.execute(select(User).where(User.id == s.user_id))
  u = ures.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return u


@dataclass
class WorkspaceContext:
  workspace_id: str
  user: User
  role: str

  @property
  def user_id(self) -> str:
    return self.user.id

  @property
  def is_owner(self) -> bool:
    return self.role == "OWNER"


async def find_membership(db: AsyncSession, user_id: str) -> WorkspaceMember | None:
  res = await db.execute(
    select(WorkspaceMember).where(WorkspaceMember.user_id == user_id).order_by(WorkspaceMember.joined_at.asc()).limit(1)
  )
  return res.scalar_one_or_none()


async def get_workspace_context(
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> WorkspaceContext:
  m = await find_membership(db, user.id)
  if not m:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workspace not found")
  return WorkspaceContext(workspace_id=m.workspace_id, user=user, role=m.role)


def client_ip(request: Request) -> str | None:
  return request.client.host if request.client else None
