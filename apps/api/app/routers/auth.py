from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.audit import write_audit
from app.config import settings
from app.deps import client_ip, get_current_user, get_db
from app.models import Session as DbSession, User
from app.rate_limit import limiter
from app.schemas import LoginIn, RegisterIn, UserOut
from app.security import SESSION_COOKIE_NAME, hash_password, new_session_expires_at, verify_password
from app.workspace_defaults import initialize_user_workspace

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_out(u: User) -> UserOut:
  return UserOut(id=u.id, email=u.email, name=u.name, avatarUrl=u.avatar_url, createdAt=u.created_at)


async def _email_taken(db: AsyncSession, email: str) -> bool:
  res = await db.execute(select(User.id).where(User.email == email))
  return res.scalar_one_or_none() is not None


async def _start_session(db: AsyncSession, request: Request, response: Response, user: User) -> None:
  s = DbSession(
    user_id=user.id,
    expires_at=new_session_expires_at(),
    created_ip=client_ip(request),
    user_agent=request.headers.get("user-agent"),
  )
  db.add(s)
  await db.flush()
  response.set_cookie(
    key=SESSION_COOKIE_NAME,
    value=s.id,
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(settings.session_ttl_days * 86400),
    expires=s.expires_at,
    path="/",
  )


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  ip = client_ip(request) or "unknown"
  limiter.enforce(f"auth:register:ip:{ip}", limit=int(settings.rate_limit_register_ip_per_minute))

  email = payload.email.strip().lower()
  if await _email_taken(db, email):
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

  u = User(email=email, name=payload.name, password_hash=hash_password(payload.password))
  db.add(u)
  try:
    await db.flush()
  except IntegrityError as e:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered") from e
  init = await initialize_user_workspace(db, user=u)
  await write_audit(
    db,
    event_type="auth.registered",
    entity_type="User",
    entity_id=u.id,
    workspace_id=init.workspace_id,
    actor_id=u.id,
    payload={"email": email},
  )
  await _start_session(db, request, response, u)
  await db.commit()
  return _user_out(u)


@router.post("/login", response_model=UserOut)
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  ip = client_ip(request) or "unknown"
  email = (payload.email or "").strip().lower()
  limiter.enforce(f"auth:login:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute))
  if email:
    limiter.enforce(f"auth:login:email:{email}", limit=int(settings.rate_limit_login_email_per_minute))

  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if not u or not verify_password(payload.password, u.password_hash):
    await write_audit(db, event_type="auth.login.failed", entity_type="Auth", entity_id=None, payload={"email": email, "ip": ip})
    await db.commit()
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

  await _start_session(db, request, response, u)
  await write_audit(db, event_type="auth.login.success", entity_type="User", entity_id=u.id, actor_id=u.id, payload={"ip": ip})
  await db.commit()
  return _user_out(u)


@router.post("/logout")
async def logout(response: Response, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await db.execute(delete(DbSession).where(DbSession.user_id == user.id))
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  await db.commit()
  return {"ok": True}


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)) -> UserOut:
  return _user_out(user)
