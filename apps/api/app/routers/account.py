from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.cascade import delete_account
from app.deps import get_current_user, get_db
from app.models import User
from app.security import SESSION_COOKIE_NAME

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/account", tags=["account"])


@router.delete("")
async def delete_my_account(response: Response, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  user_id, email = user.id, user.email
  result = await delete_account(db, user)
  await write_audit(
    db,
    event_type="account.deleted",
    entity_type="User",
    entity_id=user_id,
    actor_id=user_id,
    payload={"email": email, "workspaceDeleted": result.workspace_deleted, "projectsDeleted": result.projects_deleted},
  )
  await db.commit()
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  logger.info("deleted account %s (projects=%d)", user_id, result.projects_deleted)
  return {"ok": True}
