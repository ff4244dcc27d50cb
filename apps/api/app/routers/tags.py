from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.models import Tag, TaskTag
from app.schemas import TagCreateIn, TagOut, TagUpdateIn
from app.views import tag_out

router = APIRouter(prefix="/tags", tags=["tags"])


async def _tag_or_404(db: AsyncSession, tag_id: str, workspace_id: str) -> Tag:
  res = await db.execute(select(Tag).where(Tag.id == tag_id, Tag.workspace_id == workspace_id))
  t = res.scalar_one_or_none()
  if not t:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
  return t


async def _ensure_name_free(db: AsyncSession, workspace_id: str, name: str, *, exclude_id: str | None = None) -> None:
  q = select(Tag.id).where(Tag.workspace_id == workspace_id, func.lower(Tag.name) == name.lower())
  if exclude_id:
    q = q.where(Tag.id != exclude_id)
  res = await db.execute(q)
  if res.first():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Tag name already exists")


async def _task_count(db: AsyncSession, tag_id: str) -> int:
  res = await db.execute(select(func.count()).select_from(TaskTag).where(TaskTag.tag_id == tag_id))
  return int(res.scalar_one() or 0)


@router.get("", response_model=list[TagOut])
async def list_tags(ctx: WorkspaceContext = Depends(get_workspace_context), db: AsyncSession = Depends(get_db)) -> list[TagOut]:
  res = await db.execute(select(Tag).where(Tag.workspace_id == ctx.workspace_id).order_by(Tag.name.asc()))
  tags = list(res.scalars().all())
  counts: dict[str, int] = {}
  if tags:
    cres = await db.execute(
      select(TaskTag.tag_id, func.count()).where(TaskTag.tag_id.in_([t.id for t in tags])).group_by(TaskTag.tag_id)
    )
    counts = {tid: int(n) for tid, n in cres.all()}
  return [tag_out(t, counts.get(t.id, 0)) for t in tags]


@router.post("", response_model=TagOut, status_code=status.HTTP_201_CREATED)
async def create_tag(
  payload: TagCreateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> TagOut:
  name = payload.name
  await _ensure_name_free(db, ctx.workspace_id, name)
  t = Tag(workspace_id=ctx.workspace_id, name=name, color=payload.color)
  db.add(t)
  await db.flush()
  await write_audit(
    db,
    event_type="tag.created",
    entity_type="Tag",
    entity_id=t.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"name": name, "color": t.color},
  )
  await db.commit()
  return tag_out(t)


@router.patch("/{tag_id}", response_model=TagOut)
async def update_tag(
  tag_id: str,
  payload: TagUpdateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> TagOut:
  t = await _tag_or_404(db, tag_id, ctx.workspace_id)
  if payload.name is not None:
    name = payload.name
    await _ensure_name_free(db, ctx.workspace_id, name, exclude_id=t.id)
    t.name = name
  if payload.color is not None:
    t.color = payload.color
  await write_audit(
    db,
    event_type="tag.updated",
    entity_type="Tag",
    entity_id=t.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload=payload.model_dump(exclude_unset=True),
  )
  await db.commit()
  return tag_out(t, await _task_count(db, t.id))


@router.delete("/{tag_id}")
async def delete_tag(
  tag_id: str,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> dict:
  t = await _tag_or_404(db, tag_id, ctx.workspace_id)
  name = t.name
  await db.execute(delete(TaskTag).where(TaskTag.tag_id == tag_id))
  await db.execute(delete(Tag).where(Tag.id == tag_id))
  await write_audit(
    db,
    event_type="tag.deleted",
    entity_type="Tag",
    entity_id=tag_id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"name": name},
  )
  await db.commit()
  return {"ok": True}
