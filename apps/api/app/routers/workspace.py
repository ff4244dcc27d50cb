from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.deps import WorkspaceContext, get_current_user, get_db, get_workspace_context
from app.models import Project, User, Workspace, WorkspaceInvitation, WorkspaceMember, as_utc
from app.schemas import (
  InvitationOut,
  InviteAcceptOut,
  InviteCreatedOut,
  InviteIn,
  InvitePreviewOut,
  RefOut,
  UserOut,
  WorkspaceCountsOut,
  WorkspaceMemberOut,
  WorkspaceOut,
)
from app.security import invite_url, new_invite_expires_at, new_invite_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspace", tags=["workspace"])


def _invitation_out(inv: WorkspaceInvitation) -> InvitationOut:
  return InvitationOut(
    id=inv.id,
    email=inv.email,
    role=inv.role,
    invitedById=inv.invited_by_id,
    expiresAt=inv.expires_at,
    createdAt=inv.created_at,
  )


async def _pending_invitations(db: AsyncSession, workspace_id: str) -> list[WorkspaceInvitation]:
  now = datetime.now(timezone.utc)
  res = await db.execute(
    select(WorkspaceInvitation)
    .where(WorkspaceInvitation.workspace_id == workspace_id, WorkspaceInvitation.accepted_at.is_(None))
    .order_by(WorkspaceInvitation.created_at.desc())
  )
  return [inv for inv in res.scalars().all() if as_utc(inv.expires_at) > now]


async def _invitation_by_token(db: AsyncSession, token: str) -> WorkspaceInvitation:
  res = await db.execute(select(WorkspaceInvitation).where(WorkspaceInvitation.token == token))
  inv = res.scalar_one_or_none()
  if not inv:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
  if inv.accepted_at is not None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation has already been accepted")
  if as_utc(inv.expires_at) < datetime.now(timezone.utc):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invitation has expired")
  return inv


@router.get("", response_model=WorkspaceOut)
async def get_workspace(ctx: WorkspaceContext = Depends(get_workspace_context), db: AsyncSession = Depends(get_db)) -> WorkspaceOut:
  wres = await db.execute(select(Workspace).where(Workspace.id == ctx.workspace_id))
  ws = wres.scalar_one_or_none()
  if not ws:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workspace not found")

  mres = await db.execute(
    select(WorkspaceMember, User)
    .join(User, User.id == WorkspaceMember.user_id)
    .where(WorkspaceMember.workspace_id == ws.id)
    .order_by(WorkspaceMember.joined_at.asc())
  )
  members = [
    WorkspaceMemberOut(
      id=m.id,
      userId=u.id,
      role=m.role,
      joinedAt=m.joined_at,
      user=UserOut(id=u.id, email=u.email, name=u.name, avatarUrl=u.avatar_url, createdAt=u.created_at),
    )
    for m, u in mres.all()
  ]
  invitations = await _pending_invitations(db, ws.id)
  pres = await db.execute(select(func.count()).select_from(Project).where(Project.workspace_id == ws.id))

  return WorkspaceOut(
    id=ws.id,
    name=ws.name,
    role=ctx.role,
    createdAt=ws.created_at,
    members=members,
    invitations=[_invitation_out(inv) for inv in invitations],
    counts=WorkspaceCountsOut(
      members=len(members),
      projects=int(pres.scalar_one() or 0),
      pendingInvitations=len(invitations),
    ),
  )


@router.post("/invite", response_model=InviteCreatedOut, status_code=status.HTTP_201_CREATED)
async def create_invitation(
  payload: InviteIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> InviteCreatedOut:
  email = payload.email.strip().lower()
  mres = await db.execute(
    select(WorkspaceMember.id)
    .join(User, User.id == WorkspaceMember.user_id)
    .where(WorkspaceMember.workspace_id == ctx.workspace_id, User.email == email)
  )
  if mres.first():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is already a member of this workspace")
  if any(inv.email == email for inv in await _pending_invitations(db, ctx.workspace_id)):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="An invitation has already been sent to this email")

  inv = WorkspaceInvitation(
    workspace_id=ctx.workspace_id,
    email=email,
    token=new_invite_token(),
    invited_by_id=ctx.user_id,
    role="MEMBER",
    expires_at=new_invite_expires_at(),
  )
  db.add(inv)
  await db.flush()
  await write_audit(
    db,
    event_type="workspace.invitation.created",
    entity_type="WorkspaceInvitation",
    entity_id=inv.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"email": email},
  )
  await db.commit()

  # No mail transport; the link is logged and returned to the inviter.
  url = invite_url(inv.token)
  logger.info("invitation created for %s in workspace %s: %s", email, ctx.workspace_id, url)
  return InviteCreatedOut(invitation=_invitation_out(inv), inviteUrl=url)


@router.get("/invite/{token}", response_model=InvitePreviewOut)
async def get_invitation(token: str, db: AsyncSession = Depends(get_db)) -> InvitePreviewOut:
  inv = await _invitation_by_token(db, token)
  wres = await db.execute(select(Workspace).where(Workspace.id == inv.workspace_id))
  ws = wres.scalar_one()
  invited_by = None
  if inv.invited_by_id:
    ures = await db.execute(select(User).where(User.id == inv.invited_by_id))
    u = ures.scalar_one_or_none()
    if u:
      invited_by = u.name or u.email
  return InvitePreviewOut(
    email=inv.email,
    workspace=RefOut(id=ws.id, name=ws.name),
    invitedBy=invited_by,
    expiresAt=inv.expires_at,
  )


@router.post("/invite/{token}", response_model=InviteAcceptOut)
async def accept_invitation(
  token: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> InviteAcceptOut:
  inv = await _invitation_by_token(db, token)
  if user.email.lower() != inv.email.lower():
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This invitation was sent to a different email address")

  mres = await db.execute(
    select(WorkspaceMember.id).where(WorkspaceMember.workspace_id == inv.workspace_id, WorkspaceMember.user_id == user.id)
  )
  if mres.first():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You are already a member of this workspace")

  db.add(WorkspaceMember(workspace_id=inv.workspace_id, user_id=user.id, role=inv.role))
  inv.accepted_at = datetime.now(timezone.utc)
  await write_audit(
    db,
    event_type="workspace.invitation.accepted",
    entity_type="WorkspaceInvitation",
    entity_id=inv.id,
    workspace_id=inv.workspace_id,
    actor_id=user.id,
    payload={"email": inv.email},
  )
  await db.commit()
  logger.info("user %s joined workspace %s", user.id, inv.workspace_id)
  return InviteAcceptOut(workspaceId=inv.workspace_id, role=inv.role)


@router.delete("/members/{member_id}")
async def remove_member(
  member_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> dict:
  res = await db.execute(select(WorkspaceMember).where(WorkspaceMember.id == member_id))
  m = res.scalar_one_or_none()
  if not m:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
  if m.workspace_id != ctx.workspace_id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Member does not belong to this workspace")
  if m.role == "OWNER":
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot remove workspace owner")
  if m.user_id != ctx.user_id and not ctx.is_owner:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You do not have permission to remove this member")

  removed_user_id = m.user_id
  await db.execute(delete(WorkspaceMember).where(WorkspaceMember.id == member_id))
  await write_audit(
    db,
    event_type="workspace.member.removed",
    entity_type="WorkspaceMember",
    entity_id=member_id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"userId": removed_user_id},
  )
  await db.commit()
  return {"ok": True}
