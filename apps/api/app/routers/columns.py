from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.deps import WorkspaceContext, get_db, get_workspace_context
from app.models import Column
from app.schemas import ColumnOut, ColumnReorderIn, ColumnUpdateIn
from app.views import column_out
from app.workspace_scope import column_or_404

router = APIRouter(prefix="/columns", tags=["columns"])


async def _ordered_columns(db: AsyncSession, workspace_id: str) -> list[Column]:
  res = await db.execute(select(Column).where(Column.workspace_id == workspace_id).order_by(Column.sort_order.asc()))
  return list(res.scalars().all())


@router.get("", response_model=list[ColumnOut])
async def list_columns(ctx: WorkspaceContext = Depends(get_workspace_context), db: AsyncSession = Depends(get_db)) -> list[ColumnOut]:
  return [column_out(c) for c in await _ordered_columns(db, ctx.workspace_id)]


@router.post("/reorder", response_model=list[ColumnOut])
async def reorder_columns(
  payload: ColumnReorderIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> list[ColumnOut]:
  columns = {c.id: c for c in await _ordered_columns(db, ctx.workspace_id)}
  ids = payload.columnIds
  if len(ids) != len(set(ids)) or set(ids) != set(columns):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="columnIds must list every column exactly once")
  for idx, cid in enumerate(ids):
    columns[cid].sort_order = idx
  await write_audit(
    db,
    event_type="columns.reordered",
    entity_type="Column",
    entity_id=None,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"columnIds": ids},
  )
  await db.commit()
  return [column_out(columns[cid]) for cid in ids]


@router.patch("/{column_id}", response_model=ColumnOut)
async def rename_column(
  column_id: str,
  payload: ColumnUpdateIn,
  ctx: WorkspaceContext = Depends(get_workspace_context),
  db: AsyncSession = Depends(get_db),
) -> ColumnOut:
  c = await column_or_404(db, column_id, ctx.workspace_id)
  before = c.name
  c.name = payload.name
  await write_audit(
    db,
    event_type="column.renamed",
    entity_type="Column",
    entity_id=c.id,
    workspace_id=ctx.workspace_id,
    actor_id=ctx.user_id,
    payload={"key": c.key, "from": before, "to": c.name},
  )
  await db.commit()
  return column_out(c)
