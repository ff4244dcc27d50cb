from __future__ import annotations

import asyncio
import logging
import os
import secrets

from sqlalchemy import select

from app.db import SessionLocal
from app.logging_setup import configure_logging
from app.models import User
from app.security import hash_password
from app.workspace_defaults import initialize_user_workspace

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@kanban.local"


def _bootstrap_password(env_key: str) -> tuple[str, bool]:
  configured = (os.getenv(env_key) or "").strip()
  if configured:
    return configured, False
  return secrets.token_urlsafe(14), True


async def seed() -> None:
  async with SessionLocal() as db:
    res = await db.execute(select(User).where(User.email == DEMO_EMAIL))
    user = res.scalar_one_or_none()
    password, generated = _bootstrap_password("SEED_DEMO_PASSWORD")
    if not user:
      user = User(email=DEMO_EMAIL, name="Demo", password_hash=hash_password(password))
      db.add(user)
      await db.flush()
      logger.info("seeded %s password=%s (generated=%s)", DEMO_EMAIL, password, str(generated).lower())

    result = await initialize_user_workspace(db, user=user)
    await db.commit()
    logger.info(
      "workspace %s ready: columns+%d tags+%d welcome=%s",
      result.workspace_id,
      result.columns_created,
      result.tags_created,
      result.welcome_project_id or "-",
    )


def main() -> None:
  configure_logging()
  asyncio.run(seed())


if __name__ == "__main__":
  main()
