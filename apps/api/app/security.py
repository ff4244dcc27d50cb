from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext

from app.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_COOKIE_NAME = "kb_session"


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
  return pwd_context.verify(password, password_hash)


def new_session_expires_at() -> datetime:
  return datetime.now(timezone.utc) + timedelta(days=int(settings.session_ttl_days))


def new_invite_token() -> str:
  # 32 random bytes, hex encoded
  return secrets.token_hex(32)


def new_invite_expires_at() -> datetime:
  return datetime.now(timezone.utc) + timedelta(days=int(settings.invite_ttl_days))


def invite_url(token: str) -> str:
  return f"{settings.app_url.rstrip('/')}/invite/{token}"
